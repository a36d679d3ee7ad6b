"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers and the
long-lived collaborators stored on ``app.state``) so tests can build isolated
app instances.
"""

from __future__ import annotations

from fastapi import FastAPI

from app.api.routes import health_router, metrics_router, tracking_router
from app.core.config import Settings, settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import correlation_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.rate_limit import build_rate_limiter
from app.services.generation_metrics import GenerationMetrics
from app.services.tracking_number_service import TrackingNumberGenerator


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Optional settings; defaults to the global settings.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    cfg = app_settings or settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log, debug=cfg.app.debug)

    app = FastAPI(
        title="Tracking Number API",
        description=(
            "Generates short, unique, URL-safe tracking numbers for shipments. "
            "Requires HTTP Basic authentication and applies a per-client token "
            "bucket rate limit on the generation endpoint."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )

    # Long-lived collaborators, injected via app.api.dependencies
    app.state.settings = cfg
    app.state.generation_metrics = GenerationMetrics()
    app.state.tracking_number_generator = TrackingNumberGenerator(
        observer=app.state.generation_metrics,
    )
    app.state.rate_limiter = build_rate_limiter(cfg.app)

    # Middleware
    app.middleware("http")(correlation_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(tracking_router)
    app.include_router(health_router)
    app.include_router(metrics_router)

    # OpenAPI customizations (tags, public paths)
    apply_openapi_customizations(app)

    return app
