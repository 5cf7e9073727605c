"""Unit tests for the rating API endpoints."""

import json

import pytest
from fastapi.testclient import TestClient

from policy_rating.main import create_app
from policy_rating.models import RatingProgram
from policy_rating.services.rating_service import InMemoryRatingProgramStore, RatingService

EVALUATE_PAYLOAD = {
    "steps": [
        {"kind": "factor", "id": "base", "order": 1, "name": "Base", "raw_value": "500"},
        {"kind": "operand", "id": "times", "order": 2, "operator": "*"},
        {
            "kind": "factor",
            "id": "territory",
            "order": 3,
            "name": "Territory Factor",
            "value_type": "multiplier",
            "raw_value": "1.10",
        },
    ],
    "context": {"inputs": {"territory": "001"}, "effective_date": "2025-07-01"},
}


@pytest.fixture
def client(territory_table):
    """Client for an app serving one HOME dwelling program."""
    program = RatingProgram.model_validate(
        {
            "product_id": "HOME",
            "coverage_id": "DWELL",
            "version_id": "2025-01",
            "steps": [
                {"kind": "factor", "id": "base", "order": 1, "name": "Base", "raw_value": "500"},
                {"kind": "operand", "id": "times", "order": 2, "operator": "*"},
                {
                    "kind": "factor",
                    "id": "territory",
                    "order": 3,
                    "name": "Territory",
                    "value_type": "table",
                    "table_ref": "territory_pc",
                },
            ],
            "tables": {"territory_pc": territory_table},
        }
    )
    service = RatingService(InMemoryRatingProgramStore([program]))
    return TestClient(create_app(service))


class TestRootEndpoint:
    """Application info."""

    def test_root(self, client):
        """The root endpoint describes the API."""
        response = client.get("/")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "operational"
        assert body["environment"] == "development"


class TestEvaluateEndpoint:
    """POST /api/v1/rating/evaluate."""

    def test_evaluate(self, client):
        """Inline steps are rated with the full trace."""
        response = client.post("/api/v1/rating/evaluate", json=EVALUATE_PAYLOAD)

        assert response.status_code == 200
        body = response.json()
        assert body["final_premium"] == "550.00"
        assert body["final_rounding_mode"] == "nearest"
        assert len(body["trace"]) == 3
        assert body["trace"][2]["running_total"] == "550.00"
        assert len(body["result_hash"]) == 16

    def test_structural_error(self, client):
        """Malformed programs are rejected with 400."""
        payload = json.loads(json.dumps(EVALUATE_PAYLOAD))
        payload["steps"][2]["order"] = 1

        response = client.post("/api/v1/rating/evaluate", json=payload)

        assert response.status_code == 400
        assert "DUPLICATE_ORDER" in response.json()["detail"]

    def test_invalid_payload(self, client):
        """Schema violations are rejected with 422."""
        payload = json.loads(json.dumps(EVALUATE_PAYLOAD))
        payload["steps"][1]["operator"] = "%"

        response = client.post("/api/v1/rating/evaluate", json=payload)

        assert response.status_code == 422

    def test_export(self, client):
        """The export is canonical JSON of the evaluation."""
        response = client.post("/api/v1/rating/export", json=EVALUATE_PAYLOAD)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/json")
        document = response.json()
        assert document["final_premium"] == "550.00"
        assert list(document) == sorted(document)


class TestValidateEndpoint:
    """POST /api/v1/rating/validate."""

    def test_publishable(self, client):
        """Clean programs are publishable."""
        response = client.post(
            "/api/v1/rating/validate", json={"steps": EVALUATE_PAYLOAD["steps"]}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["publishable"] is True
        assert body["issues"] == []
        assert body["formula"] == "500 (Base) * 1.10 (Territory Factor)"

    def test_errors_block_publishing(self, client):
        """Errors are counted and block publishing."""
        steps = [
            {"kind": "factor", "id": "base", "order": 1, "name": "", "raw_value": "500"},
            {"kind": "operand", "id": "plus", "order": 2, "operator": "+"},
        ]

        body = client.post("/api/v1/rating/validate", json={"steps": steps}).json()

        assert body["publishable"] is False
        assert body["error_count"] == 1
        assert body["warning_count"] == 1
        assert {issue["code"] for issue in body["issues"]} == {
            "MISSING_NAME",
            "TRAILING_OPERAND",
        }


class TestStoredProgramEndpoints:
    """Coverage and package rating against stored programs."""

    def test_rate_coverage(self, client):
        """Stored programs are rated by product and coverage."""
        response = client.post(
            "/api/v1/rating/coverages/rate",
            json={
                "product_id": "HOME",
                "coverage_id": "DWELL",
                "inputs": {"territory": "002", "protection_class": 3},
                "effective_date": "2025-07-01",
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["final_premium"] == "525.00"
        assert body["version_id"] == "2025-01"
        assert body["breakdown"][1]["step_id"] == "territory"

    def test_rate_unknown_coverage(self, client):
        """Unknown programs are 404."""
        response = client.post(
            "/api/v1/rating/coverages/rate",
            json={"product_id": "HOME", "coverage_id": "FLOOD", "effective_date": "2025-07-01"},
        )

        assert response.status_code == 404

    def test_rate_package(self, client):
        """Packages report totals and failed coverages."""
        response = client.post(
            "/api/v1/rating/packages/rate",
            json={
                "product_id": "HOME",
                "coverage_ids": ["DWELL", "FLOOD"],
                "discount_percent": "10",
                "inputs": {"territory": "001", "protection_class": 6},
                "effective_date": "2025-07-01",
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["subtotal"] == "550.00"
        assert body["total"] == "495.00"
        assert body["complete"] is False
        assert "FLOOD" in body["coverage_errors"]

    def test_package_discount_out_of_range(self, client):
        """Discounts above 100 percent are rejected."""
        response = client.post(
            "/api/v1/rating/packages/rate",
            json={
                "product_id": "HOME",
                "coverage_ids": ["DWELL"],
                "discount_percent": "150",
                "effective_date": "2025-07-01",
            },
        )

        assert response.status_code == 422


class TestServiceDependency:
    """Applications without a rating service."""

    def test_missing_service(self):
        """Requests fail with 503 when no service is configured."""
        app = create_app()
        app.state.rating_service = None
        client = TestClient(app)

        response = client.post("/api/v1/rating/evaluate", json=EVALUATE_PAYLOAD)

        assert response.status_code == 503
