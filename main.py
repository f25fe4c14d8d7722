#!/usr/bin/env python3
"""Main entry point for the Joust debate platform."""

import logging
import os
import sys

from joust.engine.config.settings import get_default_config


def setup_logging(level: str = "INFO"):
    """Configure logging for the web server."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def print_usage():
    """Print usage information for local development."""

    print("Joust Debate Platform")
    print("=" * 40)
    print("Available entry points:")
    print()
    print("🌐 Web Server (API + WebSocket):")
    print("   python main.py --web")
    print("   python web_server.py")
    print()
    print("🔑 Moderation needs a Gemini key:")
    print("   export GEMINI_API_KEY=...")
    print()


def start_web_server():
    """Start the FastAPI web server."""
    config = get_default_config()
    setup_logging(config.system.log_level)

    import uvicorn

    from joust.web.api import create_app

    port = int(os.environ.get("PORT", 8000))

    print("🎭 Starting Joust Debate Platform...")
    print(f"📡 API Documentation: http://localhost:{port}/docs")
    print(f"🔌 WebSocket: ws://localhost:{port}/v1/ws/debates/{{id}}")

    uvicorn.run(create_app(config), host="0.0.0.0", port=port, log_level="info", access_log=True)


def main():
    """Main entry point."""
    # Check for production environment (Railway, Docker, Heroku, etc.)
    is_production = any([
        "RAILWAY_ENVIRONMENT" in os.environ,
        "PORT" in os.environ,
        "DYNO" in os.environ,  # Heroku
        os.environ.get("ENVIRONMENT") == "production"
    ])

    if is_production or "--web" in sys.argv:
        start_web_server()
    else:
        print_usage()
        print("💡 Tip: Use 'python main.py --web' to start the server")


if __name__ == "__main__":
    main()
