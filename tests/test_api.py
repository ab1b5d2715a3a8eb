"""Integration tests for the /v1/risk endpoints"""

import pytest
from fastapi.testclient import TestClient

from app.api.risk_endpoint import get_risk_service
from app.main import app
from app.models.database import get_db
from app.services.event_publisher import RISK_ASSESSED
from app.services.risk_service import MAX_BULK_CLIENTS
from factories import CLIENT_ID

UNKNOWN_CLIENT = "99999999-9999-9999-9999-999999999999"


class FakeSession:
    def __init__(self):
        self.commits = 0
        self.fail = False

    async def commit(self):
        if self.fail:
            raise RuntimeError("commit failed")
        self.commits += 1


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def client(env, session):
    """Create FastAPI test client wired to the in-memory service"""
    app.dependency_overrides[get_risk_service] = lambda: env.service()
    app.dependency_overrides[get_db] = lambda: session
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health_endpoint(client: TestClient):
    response = client.get("/v1/risk/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["service"] == "crm-risk-engine"


def test_metrics_endpoint(client: TestClient):
    client.post(f"/v1/risk/clients/{CLIENT_ID}/assess", json={})
    response = client.get("/metrics/")
    assert response.status_code == 200
    assert "risk_assessments_total" in response.text


class TestAssessEndpoint:

    def test_assess(self, client: TestClient, session: FakeSession):
        response = client.post(f"/v1/risk/clients/{CLIENT_ID}/assess", json={})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["cached"] is False
        assert body["assessment"]["overall_score"] == 7
        assert body["assessment"]["risk_level"] == "low"
        assert len(body["assessment"]["factors"]) == 7
        assert "score_trend" not in body["assessment"]
        assert session.commits == 1

    def test_second_call_is_cached(self, client: TestClient):
        client.post(f"/v1/risk/clients/{CLIENT_ID}/assess", json={})
        response = client.post(f"/v1/risk/clients/{CLIENT_ID}/assess", json={"include_history": True})

        assert response.json()["cached"] is True

    def test_unknown_client_404(self, client: TestClient, session: FakeSession):
        response = client.post(f"/v1/risk/clients/{UNKNOWN_CLIENT}/assess", json={})

        assert response.status_code == 404
        assert response.json()["detail"] == f"Client {UNKNOWN_CLIENT} not found"
        assert session.commits == 0

    def test_audit_published_after_commit(self, client: TestClient, env, session: FakeSession):
        client.post(f"/v1/risk/clients/{CLIENT_ID}/assess", json={})

        assert session.commits == 1
        assert [event_type for event_type, _ in env.audit.events] == [RISK_ASSESSED]

    def test_failed_commit_publishes_no_audit(self, client: TestClient, env, session: FakeSession):
        session.fail = True

        with pytest.raises(RuntimeError, match="commit failed"):
            client.post(f"/v1/risk/clients/{CLIENT_ID}/assess", json={})

        assert env.audit.events == []


class TestHistoryEndpoint:

    def test_history(self, client: TestClient):
        client.post(f"/v1/risk/clients/{CLIENT_ID}/assess", json={})
        response = client.get(f"/v1/risk/clients/{CLIENT_ID}/history")

        assert response.status_code == 200
        assert response.json()["total"] == 1
        assert response.json()["history"][0]["triggered_by"] == "manual"

    def test_limit_bounds(self, client: TestClient):
        assert client.get(f"/v1/risk/clients/{CLIENT_ID}/history?limit=0").status_code == 422

    def test_unknown_client_404(self, client: TestClient):
        assert client.get(f"/v1/risk/clients/{UNKNOWN_CLIENT}/history").status_code == 404


class TestConfigEndpoint:

    def test_default_config(self, client: TestClient):
        response = client.get("/v1/risk/config")

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Using default risk configuration"
        assert body["config"]["factor_weights"]["tax_status"] == 25
        assert body["config"]["thresholds"] == {"low": 25, "medium": 50, "high": 75}

    def test_update(self, client: TestClient, session: FakeSession):
        response = client.put("/v1/risk/config", json={"factor_weights": {"payment_history": 30}})

        assert response.status_code == 200
        assert response.json()["config"]["factor_weights"]["payment_history"] == 30
        assert session.commits == 1
        assert client.get("/v1/risk/config").json()["message"] == "Risk configuration loaded"

    def test_invalid_thresholds_422(self, client: TestClient, session: FakeSession):
        response = client.put("/v1/risk/config", json={"thresholds": {"low": 60}})

        assert response.status_code == 422
        assert session.commits == 0

    def test_negative_weight_422(self, client: TestClient):
        response = client.put("/v1/risk/config", json={"factor_weights": {"tax_status": -5}})
        assert response.status_code == 422


class TestBulkEndpoint:

    def test_partial_success(self, client: TestClient):
        response = client.post("/v1/risk/bulk-assess", json={"client_ids": [CLIENT_ID, UNKNOWN_CLIENT]})

        assert response.status_code == 200
        body = response.json()
        assert (body["assessed"], body["failed"]) == (1, 1)
        assert body["errors"][0]["client_id"] == UNKNOWN_CLIENT

    def test_too_many_clients_422(self, client: TestClient):
        response = client.post("/v1/risk/bulk-assess", json={"client_ids": [CLIENT_ID] * (MAX_BULK_CLIENTS + 1)})
        assert response.status_code == 422

    def test_empty_batch_422(self, client: TestClient):
        assert client.post("/v1/risk/bulk-assess", json={"client_ids": []}).status_code == 422

    def test_malformed_client_id_422(self, client: TestClient):
        assert client.post("/v1/risk/bulk-assess", json={"client_ids": ["not-a-uuid"]}).status_code == 422


class TestHighRiskEndpoint:

    def test_empty(self, client: TestClient):
        response = client.get("/v1/risk/high-risk")

        assert response.status_code == 200
        assert response.json() == {
            "clients": [], "total": 0, "page": 1, "limit": 20, "total_pages": 0, "has_more": False,
        }

    def test_invalid_level_422(self, client: TestClient):
        assert client.get("/v1/risk/high-risk?min_level=severe").status_code == 422
