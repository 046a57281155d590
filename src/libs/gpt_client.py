"""
GPT Client for recommendation generation.

Provides an async HTTP client for the OpenAI chat completions API. Each call
issues exactly one request, so a completion never makes more than one model call.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Protocol

import httpx
import structlog
from src.core.config import get_settings

logger = structlog.get_logger(__name__)


class GPTClientError(Exception):
    """Base exception for GPT client errors."""


class GPTConfigurationError(GPTClientError):
    """Raised when the client is missing its API key."""


class GPTRateLimitError(GPTClientError):
    """Raised when rate limited by OpenAI."""


class GPTTimeoutError(GPTClientError):
    """Raised when request times out."""


class GPTAPIError(GPTClientError):
    """Raised for other API errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(slots=True)
class GPTResponse:
    """Parsed GPT response."""

    content: str
    model: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    latency_ms: int
    finish_reason: str


class GPTClientProtocol(Protocol):
    """Protocol for GPT client (allows mocking)."""

    @property
    def is_configured(self) -> bool:
        """Whether an API key is available."""
        ...

    async def chat_completion(
        self,
        messages: list[dict[str, str]],
        temperature: float = 0.0,
        max_tokens: int = 1000,
        response_format: dict[str, str] | None = None,
    ) -> GPTResponse:
        """Send chat completion request."""
        ...


class OpenAIClient:
    """Async OpenAI API client."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout_seconds: int | None = None,
    ) -> None:
        settings = get_settings()
        self.api_key = api_key or settings.openai_api_key
        self.base_url = base_url or settings.openai_base_url
        self.model = model or settings.openai_model
        self.timeout = (
            timeout_seconds if timeout_seconds is not None else settings.gpt_timeout_seconds
        )

        if not self.api_key:
            logger.warning("openai_api_key_missing", msg="OPENAI_API_KEY not configured")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def chat_completion(
        self,
        messages: list[dict[str, str]],
        temperature: float = 0.0,
        max_tokens: int = 1000,
        response_format: dict[str, str] | None = None,
    ) -> GPTResponse:
        """
        Send one chat completion request.

        Rate limits, server errors, timeouts and transport failures are raised
        as ``GPTClientError`` subclasses; nothing is retried here.
        """
        if not self.api_key:
            raise GPTConfigurationError("OPENAI_API_KEY not configured")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        payload: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if response_format:
            payload["response_format"] = response_format

        start_time = datetime.now(UTC)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers=headers,
                    json=payload,
                )
        except httpx.TimeoutException as exc:
            await logger.awarning("gpt_timeout", timeout_seconds=self.timeout)
            raise GPTTimeoutError("Request timed out") from exc
        except httpx.RequestError as exc:
            await logger.awarning("gpt_request_error", error=str(exc))
            raise GPTClientError(f"Request failed: {exc}") from exc

        latency_ms = int((datetime.now(UTC) - start_time).total_seconds() * 1000)

        if response.status_code == 200:
            try:
                data = response.json()
            except ValueError as exc:
                raise GPTAPIError("Malformed chat completion response") from exc
            return self._parse_response(data, latency_ms)

        if response.status_code == 429:
            await logger.awarning("gpt_rate_limited")
            raise GPTRateLimitError("Rate limited")

        await logger.awarning("gpt_api_error", status_code=response.status_code)
        if response.status_code >= 500:
            raise GPTAPIError(
                f"Server error: {response.status_code}", status_code=response.status_code
            )
        raise GPTAPIError(
            f"API error {response.status_code}: {response.text}",
            status_code=response.status_code,
        )

    def _parse_response(self, data: dict[str, Any], latency_ms: int) -> GPTResponse:
        """Parse OpenAI API response."""
        try:
            choice = data["choices"][0]
            content = choice["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as exc:
            raise GPTAPIError("Malformed chat completion response") from exc
        usage = data.get("usage", {})

        return GPTResponse(
            content=content,
            model=data.get("model", self.model),
            prompt_tokens=usage.get("prompt_tokens", 0),
            completion_tokens=usage.get("completion_tokens", 0),
            total_tokens=usage.get("total_tokens", 0),
            latency_ms=latency_ms,
            finish_reason=choice.get("finish_reason", "unknown"),
        )
