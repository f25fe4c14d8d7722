"""Configuration settings and data models."""

import json
import os
import shutil
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator

from joust.engine.exceptions import ConfigurationError


class RulesConfig(BaseModel):
    """Word budgets and reserved tokens for debates."""

    max_words_per_reply: int = Field(
        default=500, description="Maximum words in a single reply"
    )
    max_words_per_debate_total: int = Field(
        default=2000, description="Maximum words a participant may use in one debate"
    )
    mention_token: str = Field(
        default="@gemini", description="Message prefix that asks the assistant a question"
    )
    no_fallacy_token: str = Field(
        default="NO_FALLACIES_DETECTED",
        description="Moderator reply meaning the statement is clean",
    )

    @field_validator("max_words_per_reply", "max_words_per_debate_total")
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("Word limits must be positive")
        return v


class StoreConfig(BaseModel):
    """Document store configuration."""

    db_path: str = Field(default="joust.db", description="SQLite database file")
    app_id: str = Field(
        default="geminijoust-app", description="Namespace for all collections"
    )
    max_transaction_attempts: int = Field(
        default=5, description="Attempts before a conflicting transaction is abandoned"
    )
    busy_timeout: float = Field(
        default=30.0, description="Seconds to wait on a locked database"
    )

    @field_validator("max_transaction_attempts")
    @classmethod
    def validate_attempts(cls, v):
        if v < 1:
            raise ValueError("max_transaction_attempts must be at least 1")
        return v


class GeminiConfig(BaseModel):
    """Gemini text completion configuration."""

    api_key: str | None = Field(
        default=None, description="Gemini API key (can also be set via GEMINI_API_KEY env var)"
    )
    base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini API base URL",
    )
    fallacy_model: str = Field(
        default="gemini-2.0-flash", description="Model used for fallacy detection"
    )
    qa_model: str = Field(
        default="gemini-2.0-flash", description="Model used to answer questions"
    )
    timeout: float = Field(default=60.0, description="HTTP request timeout in seconds")

    def resolve_api_key(self) -> str:
        """Return the configured key, falling back to the environment."""
        api_key = os.getenv("GEMINI_API_KEY") or self.api_key
        if not api_key:
            raise ConfigurationError(
                "Gemini API key is missing. Set GEMINI_API_KEY or configure gemini.api_key."
            )
        return api_key


class ModerationConfig(BaseModel):
    """Moderation pipeline switches."""

    enabled: bool = Field(default=True, description="Run moderation after each turn")
    fallacy_detection: bool = Field(default=True, description="Check turns for fallacies")
    question_answering: bool = Field(
        default=True, description="Answer messages addressed to the assistant"
    )
    deadline: float = Field(
        default=30.0, description="Seconds allowed for each completion call"
    )


class SystemConfig(BaseModel):
    """System-wide configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    allowed_origins: list[str] = Field(
        default=[], description="CORS origins; empty means localhost only"
    )


class AppConfig(BaseModel):
    """Complete application configuration."""

    rules: RulesConfig = Field(default_factory=RulesConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    gemini: GeminiConfig = Field(default_factory=GeminiConfig)
    moderation: ModerationConfig = Field(default_factory=ModerationConfig)
    system: SystemConfig = Field(default_factory=SystemConfig)

    @classmethod
    def load_from_file(cls, config_path: Path) -> "AppConfig":
        """Load configuration from JSON file."""
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        unknown_sections = set(data) - set(cls.model_fields)
        if unknown_sections:
            raise ValueError(f"Unknown config sections: {sorted(unknown_sections)}")

        return cls(**data)

    def save_to_file(self, config_path: Path) -> None:
        """Save configuration to YAML file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.model_dump(exclude_unset=True),
                f,
                default_flow_style=False,
                indent=2,
            )


def get_default_config() -> AppConfig:
    """Load default configuration from joust_config.json, creating it if needed."""
    config_path = Path("joust_config.json")
    if not config_path.exists():
        example_path = Path("joust_config.example.json")
        if example_path.exists():
            shutil.copy2(example_path, config_path)
        else:
            template_config = get_template_config()
            with open(config_path, "w", encoding="utf-8") as f:
                json.dump(template_config.model_dump(), f, indent=2)
    return AppConfig.load_from_file(config_path)


def get_template_config() -> AppConfig:
    """Get template configuration for config file generation."""
    return AppConfig(
        rules=RulesConfig(
            max_words_per_reply=500,
            max_words_per_debate_total=2000,
        ),
        store=StoreConfig(
            db_path="joust.db",
            app_id="geminijoust-app",
            max_transaction_attempts=5,
        ),
        gemini=GeminiConfig(
            api_key=None,  # Set here or use GEMINI_API_KEY env var
            fallacy_model="gemini-2.0-flash",
            qa_model="gemini-2.0-flash",
            timeout=60.0,
        ),
        moderation=ModerationConfig(enabled=True, deadline=30.0),
        system=SystemConfig(log_level="INFO"),
    )
