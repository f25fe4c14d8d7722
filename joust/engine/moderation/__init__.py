"""Moderation of debate turns through a text completion service."""

from .gemini_client import BaseCompletionClient, GeminiClient
from .pipeline import ModerationPipeline

__all__ = ["BaseCompletionClient", "GeminiClient", "ModerationPipeline"]
