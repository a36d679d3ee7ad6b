"""Rate limiting dependency for the generation endpoint.

Wires the rate limiting adapter into the HTTP layer. Only routes that declare
``Depends(enforce_rate_limit)`` are throttled; health, metrics and docs are not.

Strategy:
- Token bucket per client identity (default 100 requests, refilled in one
  batch every 60 seconds).
- Client identity: first X-Forwarded-For entry, then X-Real-IP, then the
  peer address.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Annotated

from fastapi import Depends, Request

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.in_memory import InMemoryTokenBucketRateLimiter
from app.api.dependencies import get_rate_limiter, get_settings
from app.core.config import AppSettings, Settings, settings
from app.core.errors import RateLimitAppError

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


def build_rate_limiter(app_settings: AppSettings | None = None) -> AbstractRateLimiter:
    """Create the process-wide limiter from configuration."""

    cfg = app_settings or settings.app
    return InMemoryTokenBucketRateLimiter(
        capacity=cfg.rate_limit_capacity,
        refill_interval_seconds=cfg.rate_limit_refill_seconds,
        idle_ttl_seconds=max(cfg.rate_limit_idle_ttl_seconds, cfg.rate_limit_refill_seconds),
        max_buckets=cfg.rate_limit_max_clients,
    )


def resolve_client_identity(request: Request) -> str:
    """Derive the rate limit key for a request.

    Precedence: X-Forwarded-For (first comma-separated entry, trimmed),
    X-Real-IP, raw peer address. The first non-empty value wins.
    """

    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = (request.headers.get("X-Real-IP") or "").strip()
    if real_ip:
        return real_ip

    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


def _hash_client_identity(identity: str) -> str:
    """Hash the client identity for logging without exposing addresses."""
    return hashlib.sha256(identity.encode("utf-8", errors="surrogatepass")).hexdigest()[:16]


def enforce_rate_limit(
    request: Request,
    limiter: Annotated[AbstractRateLimiter, Depends(get_rate_limiter)],
    cfg: Annotated[Settings, Depends(get_settings)],
) -> None:
    """FastAPI dependency consuming one token for the calling client.

    Raises:
        RateLimitAppError: Mapped to 429 when the client's bucket is empty.
    """

    if not cfg.app.rate_limit_enabled:
        return

    identity = resolve_client_identity(request)
    identity_hash = _hash_client_identity(identity)

    result = limiter.consume(identity)
    if result.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "client_hash": identity_hash,
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
        return

    retry_after = result.retry_after_seconds or cfg.app.rate_limit_refill_seconds
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "client_hash": identity_hash,
            "limit": result.limit,
            "remaining": result.remaining,
            "retry_after_s": retry_after,
        },
    )

    raise RateLimitAppError(
        code="RATE_LIMIT_EXCEEDED",
        message="Too many requests. Please try again later.",
        details={
            "retry_after": retry_after,
            "limit": result.limit,
            "remaining": result.remaining,
            "reset_at": result.reset_at,
        },
    )
