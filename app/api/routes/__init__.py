from __future__ import annotations

from app.api.routes.health import router as health_router
from app.api.routes.metrics import router as metrics_router
from app.api.routes.tracking import router as tracking_router

__all__ = ["health_router", "metrics_router", "tracking_router"]
