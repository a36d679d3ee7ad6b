from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.api.dependencies import (
    get_generation_metrics,
    get_rate_limiter,
    get_tracking_number_generator,
)
from app.services.generation_metrics import GenerationMetrics
from app.services.tracking_number_service import TrackingNumberGenerator

router = APIRouter(tags=["Monitoring"])


@router.get("/metrics")
def metrics(
    generation_metrics: Annotated[GenerationMetrics, Depends(get_generation_metrics)],
    limiter: Annotated[AbstractRateLimiter, Depends(get_rate_limiter)],
    generator: Annotated[TrackingNumberGenerator, Depends(get_tracking_number_generator)],
) -> dict[str, Any]:
    """Generation counters and rate limiter statistics.

    Not authenticated and not rate limited, like the health check.
    """

    return {
        "strategy": generator.strategy_name,
        "generation": generation_metrics.snapshot(),
        "rate_limit": limiter.stats(),
    }
