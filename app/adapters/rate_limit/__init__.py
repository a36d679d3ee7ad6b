"""Rate limiting adapters.

A small abstraction layer so the service can start with an in-memory token
bucket limiter and later move to a shared store without changing the API
layer.
"""

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from app.adapters.rate_limit.in_memory import InMemoryTokenBucketRateLimiter, TokenBucket

__all__ = [
    "AbstractRateLimiter",
    "InMemoryTokenBucketRateLimiter",
    "RateLimitResult",
    "TokenBucket",
]
