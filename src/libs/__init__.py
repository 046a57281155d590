"""Shared library helpers."""

from src.libs.gpt_client import (
    GPTClientError,
    GPTClientProtocol,
    GPTConfigurationError,
    GPTResponse,
    OpenAIClient,
)
from src.libs.resend_client import (
    EmailAttachment,
    ResendClient,
    ResendClientError,
    ResendClientProtocol,
)

__all__ = [
    "EmailAttachment",
    "GPTClientError",
    "GPTClientProtocol",
    "GPTConfigurationError",
    "GPTResponse",
    "OpenAIClient",
    "ResendClient",
    "ResendClientError",
    "ResendClientProtocol",
]
