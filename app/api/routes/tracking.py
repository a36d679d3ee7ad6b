from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.api.dependencies import get_tracking_number_generator
from app.core.auth import verify_credentials
from app.core.rate_limit import enforce_rate_limit
from app.schemas.tracking import ErrorResponse, TrackingNumberQuery, TrackingNumberResponse
from app.services.tracking_number_service import TrackingNumberGenerator

router = APIRouter(tags=["Tracking"])


@router.get(
    "/next-tracking-number",
    response_model=TrackingNumberResponse,
    # Admission control runs before authentication and validation
    dependencies=[Depends(enforce_rate_limit), Depends(verify_credentials)],
    responses={
        400: {"model": ErrorResponse, "description": "Invalid or missing query parameters"},
        401: {"model": ErrorResponse, "description": "Missing or invalid credentials"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
        500: {"model": ErrorResponse, "description": "Tracking number generation failed"},
    },
)
def next_tracking_number(
    query: Annotated[TrackingNumberQuery, Query()],
    generator: Annotated[TrackingNumberGenerator, Depends(get_tracking_number_generator)],
) -> TrackingNumberResponse:
    """Generate the next tracking number for a shipment.

    Declared sync so generation runs on the worker thread pool.

    Args:
        query: Validated shipment parameters. ``customer_name``,
            ``customer_slug`` and ``created_at`` are accepted but unused.
        generator: Shared tracking number generator.

    Returns:
        TrackingNumberResponse: The code, server-side creation time and the
            echoed country codes.

    Raises:
        GenerationAppError: 500 when no strategy could produce a code.
    """
    tracking_number = generator.generate(
        query.origin_country_id,
        query.destination_country_id,
        query.weight,
        query.customer_id,
    )

    return TrackingNumberResponse(
        tracking_number=tracking_number,
        created_at=datetime.now(timezone.utc),
        origin_country_id=query.origin_country_id,
        destination_country_id=query.destination_country_id,
    )
