"""Gemini text completion client."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from joust.engine.config.settings import GeminiConfig
from joust.engine.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)


class BaseCompletionClient(ABC):
    """Abstract base class for text completion services."""

    @abstractmethod
    async def complete(self, prompt: str, model_id: str) -> str:
        """Return the completion text for a single-turn prompt."""
        pass

    async def aclose(self) -> None:
        """Release any underlying connections."""
        return None


class GeminiClient(BaseCompletionClient):
    """Calls the Gemini ``generateContent`` REST endpoint."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_config(
        cls, config: GeminiConfig, http_client: httpx.AsyncClient | None = None
    ) -> GeminiClient:
        """Build a client from settings.

        Raises:
            ConfigurationError: if no API key is configured
        """
        return cls(
            api_key=config.resolve_api_key(),
            base_url=config.base_url,
            timeout=config.timeout,
            http_client=http_client,
        )

    async def complete(self, prompt: str, model_id: str) -> str:
        """Send ``prompt`` to ``model_id`` and return the first candidate's text.

        Raises:
            ExternalServiceError: on transport errors, non-2xx responses or
                bodies without a candidate text
        """
        if not prompt:
            return ""

        url = f"{self.base_url}/models/{model_id}:generateContent"
        payload = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}

        try:
            response = await self._client.post(url, params={"key": self.api_key}, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Could not connect to Gemini API: {e}")
            raise ExternalServiceError(f"Could not connect to Gemini API: {e}") from e

        if response.is_error:
            logger.error(f"Gemini API error {response.status_code}: {response.text[:500]}")
            raise ExternalServiceError(
                f"Gemini API request failed with status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ExternalServiceError("Gemini API returned a non-JSON body") from e

        return self.extract_text(body)

    @staticmethod
    def extract_text(body: Any) -> str:
        """Pull ``candidates[0].content.parts[0].text`` out of a response body."""
        try:
            text = body["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            logger.error(f"Unexpected Gemini response structure: {str(body)[:500]}")
            raise ExternalServiceError("Unexpected response structure from Gemini") from e

        if not isinstance(text, str):
            raise ExternalServiceError("Gemini candidate text is not a string")
        return text

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
