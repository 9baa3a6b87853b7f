"""
Tests for the application wiring in purifier_billing.main.
"""

from fastapi.testclient import TestClient

from purifier_billing.config import settings
from conftest import ADMIN_HEADERS


class TestRootEndpoints:
    def test_root(self, client: TestClient):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json() == {
            "service": settings.api_title,
            "version": settings.api_version,
            "status": "running",
        }

    def test_metrics_exposed(self, client: TestClient):
        client.get("/")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]
        assert "purifier_" in response.text


class TestValidationHandler:
    def test_missing_fields_return_sanitized_errors(self, db_client: TestClient):
        response = db_client.post(
            "/v1/customers",
            json={"generated_customer_id": "JH09d01301"},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 422
        errors = response.json()["detail"]
        locations = {tuple(error["loc"]) for error in errors}
        assert ("body", "customer_name") in locations
        assert ("body", "plan_id") in locations
        assert all(set(error) >= {"type", "loc", "msg"} for error in errors)

    def test_invalid_phone_is_422(self, db_client: TestClient):
        response = db_client.post(
            "/v1/customers",
            json={
                "generated_customer_id": "JH09d01301",
                "customer_name": "Asha Kumari",
                "customer_phone": "98765abcde",
                "installation_date": "2024-01-01",
                "plan_id": "25L_1M",
            },
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 422

