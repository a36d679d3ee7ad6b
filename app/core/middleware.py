"""HTTP middleware for correlation ID propagation.

Every request/response pair carries a correlation ID (``X-Correlation-ID`` by
default, configurable via LOG_CORRELATION_ID_HEADER):
- an incoming non-blank header value is reused, otherwise a UUID4 is generated
- the ID is stored in contextvars so log records pick it up
- the ID and the total request duration are added to the response headers,
  including on 500s produced for unhandled exceptions

Usage:
    app.middleware("http")(correlation_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from app.api.dependencies import get_settings
from app.core.exception_handlers import general_exception_handler
from app.core.logging import clear_correlation_id, set_correlation_id


async def correlation_id_middleware(request: Request, call_next) -> Response:
    """Assign a correlation ID to the request and echo it on the response.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with ``X-Correlation-ID`` and
            ``X-Request-Duration-ms`` headers added.
    """

    header_name = get_settings(request).log.correlation_id_header
    correlation_id = (request.headers.get(header_name) or "").strip() or str(uuid.uuid4())
    set_correlation_id(correlation_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    except Exception as exc:
        # Render the 500 here; the server error middleware runs outside this one
        response = await general_exception_handler(request, exc)
    finally:
        clear_correlation_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = correlation_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
