"""Pydantic schemas for the tracking number endpoint."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

COUNTRY_CODE_PATTERN = r"^[A-Z]{2}$"
CUSTOMER_ID_PATTERN = r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"
KEBAB_CASE_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


class TrackingNumberQuery(BaseModel):
    """Query parameters of ``GET /next-tracking-number``."""

    origin_country_id: str = Field(
        ...,
        pattern=COUNTRY_CODE_PATTERN,
        description="Origin country code in ISO 3166-1 alpha-2 format (e.g. 'MY').",
    )
    destination_country_id: str = Field(
        ...,
        pattern=COUNTRY_CODE_PATTERN,
        description="Destination country code in ISO 3166-1 alpha-2 format (e.g. 'ID').",
    )
    weight: float = Field(
        ...,
        gt=0,
        allow_inf_nan=False,
        description="Package weight in kilograms.",
    )
    customer_id: str = Field(
        ...,
        pattern=CUSTOMER_ID_PATTERN,
        description="Customer UUID (lowercase, hyphenated).",
    )
    customer_name: str | None = Field(
        default=None,
        max_length=255,
        description="Optional customer display name. Accepted but not used for generation.",
    )
    customer_slug: str | None = Field(
        default=None,
        pattern=KEBAB_CASE_PATTERN,
        description="Optional kebab-case customer slug. Accepted but not used for generation.",
    )
    created_at: str | None = Field(
        default=None,
        description="Optional client timestamp. Ignored; the response carries server time.",
    )


class TrackingNumberResponse(BaseModel):
    """Successful generation response."""

    tracking_number: str = Field(
        ..., description="16-character tracking number over [A-Z0-9]."
    )
    created_at: datetime = Field(
        ..., description="Server-side generation time (ISO-8601, UTC)."
    )
    origin_country_id: str = Field(..., description="Echo of the origin country code.")
    destination_country_id: str = Field(..., description="Echo of the destination country code.")


class ErrorResponse(BaseModel):
    """Error body shared by all non-2xx responses (documentation only)."""

    error: str = Field(..., description="Stable machine-readable error code.")
    message: str = Field(..., description="Human-readable error message.")
    timestamp: str = Field(..., description="ISO-8601 time the error was produced.")
    correlation_id: str | None = Field(default=None, description="Request correlation id.")
    fieldErrors: dict[str, str] | None = Field(
        default=None, description="Offending field names mapped to messages (400 only)."
    )
    retryAfter: int | None = Field(
        default=None, description="Seconds until the client's bucket refills (429 only)."
    )
