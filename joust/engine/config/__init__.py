"""Configuration package."""

from .settings import (
    AppConfig,
    GeminiConfig,
    ModerationConfig,
    RulesConfig,
    StoreConfig,
    SystemConfig,
    get_default_config,
    get_template_config,
)

__all__ = [
    "AppConfig",
    "GeminiConfig",
    "ModerationConfig",
    "RulesConfig",
    "StoreConfig",
    "SystemConfig",
    "get_default_config",
    "get_template_config",
]
