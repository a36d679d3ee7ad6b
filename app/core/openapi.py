"""OpenAPI metadata and customization utilities.

Enriches the generated OpenAPI schema with tags metadata and marks the
monitoring endpoints as unauthenticated, keeping documentation concerns out
of the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_PUBLIC_PATHS = ("/health", "/metrics")


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and public paths.

    - Adds tags metadata if not present
    - Sets ``security: []`` on health and metrics operations
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {
                "name": "Tracking",
                "description": "Tracking number generation (HTTP Basic auth, rate limited per client).",
            },
            {
                "name": "Health",
                "description": "Liveness check.",
            },
            {
                "name": "Monitoring",
                "description": "Generation counters and rate limiter statistics.",
            },
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        paths = schema.get("paths", {})
        for path, methods in paths.items():
            if path.endswith(_PUBLIC_PATHS):
                for method_obj in methods.values():
                    if isinstance(method_obj, dict):
                        method_obj["security"] = []

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
