"""End-to-end tests for GET /next-tracking-number.

Each test gets a fresh app (see conftest.py), so rate limit buckets never
leak between tests. Credentials come from the test environment.
"""

import re
from datetime import datetime

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.dependencies import get_tracking_number_generator
from app.core.app_factory import create_app
from app.core.config import AppSettings, LogSettings, Settings
from app.services.tracking_number_service import (
    CodeStrategy,
    EntropySample,
    ShipmentFields,
    TrackingNumberGenerator,
)

TRACKING_NUMBER_RE = re.compile(r"^[A-Z0-9]{16}$")
URL = "/next-tracking-number"


class _BrokenStrategy(CodeStrategy):
    name = "broken"

    def build(self, fields: ShipmentFields, entropy: EntropySample) -> str:
        raise RuntimeError("boom")


class TestGenerateTrackingNumber:
    def test_valid_request_returns_tracking_number(self, client: TestClient, auth, valid_params):
        response = client.get(URL, params=valid_params, auth=auth)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/json")
        data = response.json()
        assert TRACKING_NUMBER_RE.match(data["tracking_number"])
        assert data["origin_country_id"] == "MY"
        assert data["destination_country_id"] == "ID"
        assert datetime.fromisoformat(data["created_at"].replace("Z", "+00:00"))

    def test_created_at_is_server_time_not_client_value(self, client: TestClient, auth, valid_params):
        params = {**valid_params, "created_at": "2000-01-01T00:00:00Z"}

        response = client.get(URL, params=params, auth=auth)

        assert response.status_code == 200
        assert not response.json()["created_at"].startswith("2000-01-01")

    def test_optional_customer_fields_are_accepted(self, client: TestClient, auth, valid_params):
        params = {**valid_params, "customer_name": "RedBox Logistics", "customer_slug": "redbox-logistics"}

        response = client.get(URL, params=params, auth=auth)

        assert response.status_code == 200
        assert "customer_slug" not in response.json()

    def test_consecutive_requests_return_different_numbers(self, client: TestClient, auth, valid_params):
        first = client.get(URL, params=valid_params, auth=auth).json()["tracking_number"]
        second = client.get(URL, params=valid_params, auth=auth).json()["tracking_number"]

        assert first != second

    def test_generation_failure_returns_500(self, app: FastAPI, client: TestClient, auth, valid_params):
        broken = TrackingNumberGenerator(strategy=_BrokenStrategy(), fallback=_BrokenStrategy())
        app.dependency_overrides[get_tracking_number_generator] = lambda: broken

        response = client.get(URL, params=valid_params, auth=auth)

        assert response.status_code == 500
        data = response.json()
        assert data["error"] == "TRACKING_NUMBER_GENERATION_FAILED"
        assert "boom" not in data["message"]


class TestValidation:
    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("origin_country_id", "INVALID"),
            ("origin_country_id", "my"),
            ("destination_country_id", "I1"),
            ("weight", "-1.0"),
            ("weight", "0"),
            ("weight", "inf"),
            ("weight", "heavy"),
            ("customer_id", "invalid-uuid"),
            ("customer_id", "DE619854-B59B-425E-9DB4-943979E1BD49"),
            ("customer_slug", "Not_Kebab"),
        ],
    )
    def test_invalid_parameter_returns_400(self, client: TestClient, auth, valid_params, field, value):
        response = client.get(URL, params={**valid_params, field: value}, auth=auth)

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "VALIDATION_FAILED"
        assert field in data["fieldErrors"]
        assert "timestamp" in data

    def test_missing_parameters_are_all_reported(self, client: TestClient, auth):
        response = client.get(URL, params={"origin_country_id": "MY"}, auth=auth)

        assert response.status_code == 400
        assert set(response.json()["fieldErrors"]) == {
            "destination_country_id",
            "weight",
            "customer_id",
        }


class TestAuthentication:
    def test_missing_credentials_returns_401(self, client: TestClient, valid_params):
        response = client.get(URL, params=valid_params)

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Basic"
        assert response.json()["error"] == "UNAUTHENTICATED"

    def test_wrong_password_returns_401(self, client: TestClient, valid_params):
        response = client.get(URL, params=valid_params, auth=("developer", "wrong"))

        assert response.status_code == 401

    def test_undecodable_basic_header_returns_structured_401(self, client: TestClient, valid_params):
        response = client.get(URL, params=valid_params, headers={"Authorization": "Basic !!!notbase64"})

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Basic"
        data = response.json()
        assert data["error"] == "UNAUTHENTICATED"
        assert data["message"]
        assert "timestamp" in data
        assert "detail" not in data


class TestUnknownRoutes:
    def test_unknown_path_returns_structured_404(self, client: TestClient):
        response = client.get("/nope", headers={"X-Correlation-ID": "cid-404"})

        assert response.status_code == 404
        data = response.json()
        assert data["error"] == "NOT_FOUND"
        assert data["correlation_id"] == "cid-404"
        assert response.headers["X-Correlation-ID"] == "cid-404"


class TestRateLimiting:
    def test_101st_request_is_rejected(self, client: TestClient, auth, valid_params):
        for _ in range(100):
            assert client.get(URL, params=valid_params, auth=auth).status_code == 200

        response = client.get(URL, params=valid_params, auth=auth)

        assert response.status_code == 429
        data = response.json()
        assert data["error"] == "RATE_LIMIT_EXCEEDED"
        assert data["retryAfter"] == 60
        assert data["message"]
        assert 0 < int(response.headers["Retry-After"]) <= 60
        assert response.headers["X-RateLimit-Remaining"] == "0"

    def test_clients_are_limited_independently(self, client: TestClient, auth, valid_params):
        for _ in range(100):
            client.get(URL, params=valid_params, auth=auth, headers={"X-Forwarded-For": "203.0.113.7"})

        blocked = client.get(URL, params=valid_params, auth=auth, headers={"X-Forwarded-For": "203.0.113.7"})
        other = client.get(URL, params=valid_params, auth=auth, headers={"X-Forwarded-For": "203.0.113.8"})

        assert blocked.status_code == 429
        assert other.status_code == 200

    def test_other_endpoints_bypass_rate_limit(self, client: TestClient, auth, valid_params):
        for _ in range(101):
            client.get(URL, params=valid_params, auth=auth)

        assert client.get("/health").status_code == 200
        assert client.get("/metrics").status_code == 200


class TestMetricsEndpoint:
    def test_reports_generation_and_limiter_stats(self, client: TestClient, auth, valid_params):
        client.get(URL, params=valid_params, auth=auth)
        client.get(URL, params=valid_params, auth=auth)

        response = client.get("/metrics")

        assert response.status_code == 200
        data = response.json()
        assert data["strategy"] == "sha256"
        assert data["generation"]["generated_total"] == 2
        assert data["rate_limit"]["buckets"] == 1
        assert data["rate_limit"]["capacity"] == 100


class TestCustomSettings:
    def test_app_settings_drive_limiter_and_error_body(self, auth, valid_params):
        custom = Settings(
            app=AppSettings(
                auth_username="developer",
                auth_password="test123",
                rate_limit_capacity=2,
                rate_limit_refill_seconds=30,
            ),
            log=LogSettings(level="WARNING"),
        )
        client = TestClient(create_app(custom))

        for _ in range(2):
            assert client.get(URL, params=valid_params, auth=auth).status_code == 200
        response = client.get(URL, params=valid_params, auth=auth)

        assert response.status_code == 429
        assert response.json()["retryAfter"] == 30
        assert 0 < int(response.headers["Retry-After"]) <= 30
        assert response.headers["X-RateLimit-Limit"] == "2"

    def test_app_settings_drive_authentication(self, valid_params):
        custom = Settings(
            app=AppSettings(auth_username="ops", auth_password="rotated"),
            log=LogSettings(level="WARNING"),
        )
        client = TestClient(create_app(custom))

        assert client.get(URL, params=valid_params, auth=("ops", "rotated")).status_code == 200
        assert client.get(URL, params=valid_params, auth=("developer", "test123")).status_code == 401

    def test_auth_can_be_disabled_per_app(self, valid_params):
        custom = Settings(app=AppSettings(auth_required=False), log=LogSettings(level="WARNING"))
        client = TestClient(create_app(custom))

        assert client.get(URL, params=valid_params).status_code == 200
