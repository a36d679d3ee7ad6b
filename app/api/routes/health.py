from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict[str, str]:
    """Liveness probe.

    Needs no credentials and never consumes rate limit tokens, so load
    balancers can poll it freely.
    """

    return {"status": "ok"}
