"""FastAPI web application for the Joust debate platform."""

import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from joust.engine.config.settings import AppConfig, get_default_config
from joust.engine.core import DebateEngine
from joust.web.endpoints.debates import router as debates_router, ws_router as debates_ws_router
from joust.web.endpoints.system import router as system_router
from joust.web.endpoints.topics import router as topics_router, ws_router as topics_ws_router

logger: logging.Logger = logging.getLogger(__name__)


def get_allowed_origins(config: AppConfig) -> list[str] | None:
    """Get CORS origins from environment or config, None for development defaults."""
    env_origins: str | None = os.environ.get("ALLOWED_ORIGINS")
    if env_origins:
        return [origin.strip() for origin in env_origins.split(",")]
    return config.system.allowed_origins or None


def create_app(config: AppConfig | None = None, engine: DebateEngine | None = None) -> FastAPI:
    """Build the application.

    Args:
        config: Application configuration; loaded from joust_config.json when omitted
        engine: Pre-built engine, otherwise one is built from ``config`` at startup
    """
    if config is None:
        config = engine.config if engine is not None else get_default_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage application lifespan - startup and shutdown."""
        # A missing Gemini key raises ConfigurationError here and aborts startup
        app.state.engine = engine if engine is not None else DebateEngine.from_config(config)
        logger.info(f"Debate engine ready (store: {config.store.db_path})")

        yield

        await app.state.engine.shutdown()

    app = FastAPI(
        title="Joust Debate Platform",
        description="Real-time one-on-one debates with AI moderation",
        version="1.0.0",
        lifespan=lifespan,
    )

    allowed_origins = get_allowed_origins(config)
    if allowed_origins:
        logger.info(f"Setting CORS allowed origins: {allowed_origins}")
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    else:
        logger.info("No allowed origins configured, using development CORS settings")
        app.add_middleware(
            CORSMiddleware,
            allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(system_router, prefix="/v1")
    app.include_router(topics_router, prefix="/v1")
    app.include_router(topics_ws_router, prefix="/v1")
    app.include_router(debates_router, prefix="/v1")
    app.include_router(debates_ws_router, prefix="/v1")

    return app
