"""Application-level exception types.

Domain errors raised by services, adapters and dependencies. The HTTP status
and JSON shape for each type are decided in ``app.core.exception_handlers``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    field_errors: dict[str, str]
    retry_after: int
    limit: int
    remaining: int
    reset_at: int
    hint: str


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when request input fails validation."""


class AuthenticationAppError(AppError):
    """Raised when the caller is not authenticated."""


class RateLimitAppError(AppError):
    """Raised when the admission controller rejects a request."""


class GenerationAppError(AppError):
    """Raised when a tracking number cannot be produced by any strategy."""
