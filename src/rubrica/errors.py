"""Centralized structured exception hierarchy for Rubrica.

Every error the pipelines raise on purpose is a ``RubricaError``. Each class
carries the HTTP status code it maps to and a short public message that is
safe to show to callers; the exception text itself may hold internal detail
and is only ever logged.

Design:
  - RubricaError is the common base (subclass of RuntimeError for ergonomics).
  - ForbiddenError covers both "not yours" and "does not exist" for rows so
    callers cannot probe for existence.
  - TimeoutError also inherits from ``asyncio.TimeoutError`` so code catching
    the builtin still works while gaining the structured variant.
"""

from __future__ import annotations

import asyncio

__all__ = [
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

AI_UNAVAILABLE = "Service temporarily unavailable"


class RubricaError(RuntimeError):
    """Base class for all structured Rubrica errors."""

    status_code: int = 500
    public_message: str = "Processing failed"


class AuthRequiredError(RubricaError):
    """No bearer token, or the token could not be resolved to a user."""

    status_code = 401
    public_message = "Authentication required"


class ForbiddenError(RubricaError):
    """The row does not exist or is owned by someone else."""

    status_code = 403
    public_message = "Resource not found"


class NotFoundError(RubricaError):
    """The stored file is missing or its directory could not be listed."""

    status_code = 404
    public_message = "Resource not found"


class InvalidInputError(RubricaError):
    status_code = 400
    public_message = "Invalid request"


class FileTooLargeError(RubricaError):
    status_code = 400
    public_message = "File size exceeds limit"


class UnsupportedFileTypeError(RubricaError):
    status_code = 400
    public_message = "Unsupported file type"


class InsufficientContentError(RubricaError):
    """Extraction finished but produced too little text to work with."""

    status_code = 400
    public_message = (
        "Could not extract text from document. Please ensure the file is readable."
    )


class RateLimitedError(RubricaError):
    status_code = 429
    public_message = "Too many requests"


class AIUpstreamRateLimitedError(RubricaError):
    status_code = 429
    public_message = AI_UNAVAILABLE


class AIUpstreamQuotaExceededError(RubricaError):
    status_code = 402
    public_message = AI_UNAVAILABLE


class AIResponseInvalidError(RubricaError):
    """The model reply did not match the expected schema."""

    status_code = 500
    public_message = AI_UNAVAILABLE


class ProcessingFailedError(RubricaError):
    """Catch-all for storage, database and upstream failures."""


class TimeoutError(asyncio.TimeoutError, ProcessingFailedError):
    """An external call exceeded its configured timeout.

    Subclasses ``asyncio.TimeoutError`` so ``except asyncio.TimeoutError``
    keeps working.
    """


class InvalidTransitionError(RubricaError):
    """A submission status change is not allowed from its current state."""

    status_code = 409
    public_message = "Submission is not in a state that allows this action"
