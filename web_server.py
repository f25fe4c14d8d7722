#!/usr/bin/env python3
"""Web server entry point for the Joust debate platform."""

from main import setup_logging

from joust.engine.config.settings import get_default_config
from joust.web.api import create_app

if __name__ == "__main__":
    config = get_default_config()
    setup_logging(config.system.log_level)

    import uvicorn

    print("🎭 Starting Joust Debate Platform...")
    print("📡 API Documentation: http://localhost:8000/docs")
    print("🔌 WebSocket: ws://localhost:8000/v1/ws/debates/{id}")

    uvicorn.run(create_app(config), host="0.0.0.0", port=8000, log_level="info", access_log=True)
