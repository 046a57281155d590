"""
Error taxonomy shared by the completion and recovery pipeline.

Service modules declare their own exceptions on top of these bases so that
callers can branch on the category (surface, degrade, or report) without
knowing every concrete failure.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for pipeline failures."""


class ValidationError(PipelineError):
    """Malformed input; surfaces immediately to the caller."""


class ConfigurationError(PipelineError):
    """A required external-service setting is missing."""


class TransientExternalError(PipelineError):
    """An external call timed out or returned a non-success response."""


class NotFoundError(PipelineError):
    """A referenced assessment or artifact does not exist."""
