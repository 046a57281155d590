"""Domain layer: scoring, recommendation documents and pipeline services."""

from src.domain.errors import (
    ConfigurationError,
    NotFoundError,
    PipelineError,
    TransientExternalError,
    ValidationError,
)
from src.domain.models import Answer, GuestIdentity, OwnerContext

__all__ = [
    "Answer",
    "ConfigurationError",
    "GuestIdentity",
    "NotFoundError",
    "OwnerContext",
    "PipelineError",
    "TransientExternalError",
    "ValidationError",
]
