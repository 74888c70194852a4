"""Rubrica grading service.

Rubric criteria extraction and AI-assisted submission grading behind a small
HTTP API.
"""

from __future__ import annotations

from .errors import (
    RubricaError,
    AuthRequiredError,
    ForbiddenError,
    NotFoundError,
    InvalidInputError,
    FileTooLargeError,
    UnsupportedFileTypeError,
    InsufficientContentError,
    RateLimitedError,
    AIUpstreamRateLimitedError,
    AIUpstreamQuotaExceededError,
    AIResponseInvalidError,
    ProcessingFailedError,
    TimeoutError,
    InvalidTransitionError,
)

__all__ = [
    "__version__",
    "RubricaError",
    "AuthRequiredError",
    "ForbiddenError",
    "NotFoundError",
    "InvalidInputError",
    "FileTooLargeError",
    "UnsupportedFileTypeError",
    "InsufficientContentError",
    "RateLimitedError",
    "AIUpstreamRateLimitedError",
    "AIUpstreamQuotaExceededError",
    "AIResponseInvalidError",
    "ProcessingFailedError",
    "TimeoutError",
    "InvalidTransitionError",
]

__version__ = "0.1.0"
