"""FastAPI Depends() providers.

``create_app()`` builds the long-lived collaborators and stores them on
``app.state``; routes receive them through these providers, which keeps
every collaborator overridable in tests.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Request

from app.core.config import Settings, settings

if TYPE_CHECKING:
    from app.adapters.rate_limit.base import AbstractRateLimiter
    from app.services.generation_metrics import GenerationMetrics
    from app.services.tracking_number_service import TrackingNumberGenerator


def get_settings(request: Request) -> Settings:
    """Settings the app was built with; the module-level settings otherwise."""
    return getattr(request.app.state, "settings", settings)


def get_tracking_number_generator(request: Request) -> "TrackingNumberGenerator":
    return request.app.state.tracking_number_generator


def get_rate_limiter(request: Request) -> "AbstractRateLimiter":
    return request.app.state.rate_limiter


def get_generation_metrics(request: Request) -> "GenerationMetrics":
    return request.app.state.generation_metrics
