"""HTTP Basic authentication for the generation endpoint.

A single username/password pair is read from configuration
(APP_AUTH_USERNAME / APP_AUTH_PASSWORD). Authentication can be switched off
with APP_AUTH_REQUIRED=false for local development.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from app.api.dependencies import get_settings
from app.core.config import AppSettings, Settings, settings
from app.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)

_basic_auth = HTTPBasic(auto_error=False, description="Service credentials")


def _hash_username(username: str) -> str:
    return hashlib.sha256(username.encode("utf-8", errors="surrogatepass")).hexdigest()[:16]


def validate_credentials(username: str, password: str, app_settings: AppSettings | None = None) -> None:
    """Check a username/password pair against the configured credentials.

    Pure validation logic without FastAPI dependencies for easy testing.

    Raises:
        AuthenticationAppError: If credentials are wrong or none are configured.
    """
    cfg = app_settings or settings.app
    if not cfg.auth_required:
        return

    expected_password = cfg.auth_password
    if not expected_password:
        logger.error(
            "auth.validation_failed",
            extra={"reason": "credentials_not_configured"},
        )
        raise AuthenticationAppError(
            code="UNAUTHENTICATED",
            message="Authentication is enabled but no credentials are configured",
            details={"hint": "Set APP_AUTH_PASSWORD or disable auth with APP_AUTH_REQUIRED=false"},
        )

    # Compare both fields even when the first one fails, in constant time
    username_ok = secrets.compare_digest(
        username.encode("utf-8", errors="surrogatepass"),
        cfg.auth_username.encode("utf-8"),
    )
    password_ok = secrets.compare_digest(
        password.encode("utf-8", errors="surrogatepass"),
        expected_password.encode("utf-8"),
    )
    if not (username_ok and password_ok):
        logger.warning(
            "auth.validation_failed",
            extra={"reason": "invalid_credentials", "username_hash": _hash_username(username)},
        )
        raise AuthenticationAppError(
            code="UNAUTHENTICATED",
            message="Invalid username or password",
        )


async def verify_credentials(
    credentials: Annotated[HTTPBasicCredentials | None, Depends(_basic_auth)],
    cfg: Annotated[Settings, Depends(get_settings)],
) -> None:
    """FastAPI dependency enforcing HTTP Basic authentication.

    Usage:
        @router.get("/protected", dependencies=[Depends(verify_credentials)])

    Raises:
        AuthenticationAppError: Mapped to 401 with ``WWW-Authenticate: Basic``.
    """
    if not cfg.app.auth_required:
        logger.debug("auth.skipped", extra={"reason": "auth_required_false"})
        return

    if credentials is None:
        logger.warning("auth.missing_credentials", extra={"auth_required": True})
        raise AuthenticationAppError(
            code="UNAUTHENTICATED",
            message="Authentication required. Provide HTTP Basic credentials.",
        )

    validate_credentials(credentials.username, credentials.password, cfg.app)
    logger.debug(
        "auth.success",
        extra={"username_hash": _hash_username(credentials.username)},
    )
