"""HTTP and WebSocket surface of the debate platform."""
