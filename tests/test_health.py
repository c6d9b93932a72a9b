"""Tests for /health, / and the server error envelope."""

from fastapi.testclient import TestClient

from casegate.core.auth import get_thresholds
from casegate.core.config import Environment, settings
from casegate.main import app
from casegate.models.user import AuditLog

from tests.conftest import bearer


class TestHealth:

    def test_health_returns_200(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert data["db"] == "ok"
        assert "uptime_seconds" in data
        assert "version" in data
        assert data["user_count"] == 0

    def test_root_returns_api_info(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.json()["name"] == "CaseGate API"


class TestResponseHeaders:

    def test_response_includes_middleware_headers(self, client):
        resp = client.get("/health")
        assert "x-request-id" in resp.headers
        assert "x-response-time" in resp.headers

    def test_request_id_is_propagated(self, client):
        resp = client.get("/health", headers={"X-Request-ID": "abc123"})
        assert resp.headers["x-request-id"] == "abc123"


def _thresholds_unavailable():
    raise RuntimeError("threshold store offline")


class TestServerErrors:

    def test_unhandled_error_hides_details_outside_development(
        self, client, db, collaborator, clock, monkeypatch
    ):
        monkeypatch.setattr(settings, "environment", Environment.PRODUCTION)
        app.dependency_overrides[get_thresholds] = _thresholds_unavailable
        tolerant = TestClient(app, raise_server_exceptions=False)

        resp = tolerant.get("/api/auth/verify", headers=bearer(db, collaborator, clock))
        assert resp.status_code == 500
        error = resp.json()["error"]
        assert error["code"] == "INTERNAL_ERROR"
        assert "details" not in error

        db.expire_all()
        assert db.query(AuditLog).filter(AuditLog.action == "ERROR").count() == 1
