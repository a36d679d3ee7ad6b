"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before any test module, so the
environment below is in place before ``app.core.config.settings`` is built.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"

os.environ.setdefault("APP_AUTH_REQUIRED", "true")
os.environ.setdefault("APP_AUTH_USERNAME", "developer")
os.environ.setdefault("APP_AUTH_PASSWORD", "test123")
os.environ.setdefault("APP_RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.app_factory import create_app

VALID_CUSTOMER_ID = "de619854-b59b-425e-9db4-943979e1bd49"


@pytest.fixture
def app() -> FastAPI:
    """Fresh app per test so every test starts with empty rate limit buckets."""
    return create_app()


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture
def auth() -> tuple[str, str]:
    """HTTP Basic credentials matching the test environment."""
    return ("developer", "test123")


@pytest.fixture
def valid_params() -> dict[str, str]:
    return {
        "origin_country_id": "MY",
        "destination_country_id": "ID",
        "weight": "1.234",
        "customer_id": VALID_CUSTOMER_ID,
    }
