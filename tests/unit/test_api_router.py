"""Tests for the HTTP interface."""

import pytest
from fastapi.testclient import TestClient

from src.core.errors import ErrorCode
from src.main import create_app
from src.services.notification_service import QueueNotifier
from src.services.session_service import SessionManager
from tests.unit.mocks import InMemoryLedgerStore


@pytest.fixture
def client(local_sessions: SessionManager) -> TestClient:
    """Create a test client for an app running on the local backend."""
    return TestClient(create_app(local_sessions))


def _create_task(client: TestClient, **overrides) -> dict:
    body = {"title": "Exercise", "description": "30 minutes", "frequency": "daily", "points": 10, **overrides}
    response = client.post("/tasks", json=body)
    assert response.status_code == 201
    return response.json()


@pytest.mark.unit
def test_health_endpoint_returns_healthy(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.unit
class TestTaskRoutes:
    def test_create_and_list_tasks(self, client):
        created = _create_task(client, frequency="weekly")

        response = client.get("/tasks")

        assert response.status_code == 200
        assert response.json() == [created]
        assert created["completed"] is False
        assert created["lastCompleted"] is None
        assert created["nextDue"].endswith("Z")

    def test_blank_title_is_unprocessable(self, client):
        response = client.post("/tasks", json={"title": "  "})

        assert response.status_code == 422
        body = response.json()
        assert body["code"] == ErrorCode.ERR_INVALID_INPUT
        assert set(body) == {"code", "message", "suggestion", "severity"}
        assert "detail" not in body

    def test_complete_task_updates_stats(self, client):
        task = _create_task(client, points=30)

        response = client.post(f"/tasks/{task['id']}/complete")

        assert response.status_code == 200
        assert response.json()["completed"] is True
        stats = client.get("/stats").json()
        assert stats["total_points"] == 30
        assert stats["completion_rate"] == 100

    def test_complete_unknown_task_is_not_found(self, client):
        response = client.post("/tasks/unknowntask0000/complete")

        assert response.status_code == 404
        assert response.json()["code"] == ErrorCode.ERR_NOT_FOUND

    def test_status_filter(self, client):
        done = _create_task(client, title="Done")
        _create_task(client, title="Pending")
        client.post(f"/tasks/{done['id']}/complete")

        pending = client.get("/tasks", params={"status": "pending"}).json()
        completed = client.get("/tasks", params={"status": "completed"}).json()

        assert [t["title"] for t in pending] == ["Pending"]
        assert [t["title"] for t in completed] == ["Done"]
        assert client.get("/tasks", params={"status": "archived"}).status_code == 422

    def test_reset_tasks(self, client):
        task = _create_task(client)
        client.post(f"/tasks/{task['id']}/complete")

        response = client.post("/tasks/reset")

        assert response.status_code == 204
        assert client.get("/tasks", params={"status": "completed"}).json() == []
        assert client.get("/stats").json()["total_points"] == 10


@pytest.mark.unit
class TestRewardRoutes:
    def test_claim_with_insufficient_points_conflicts(self, client):
        reward = client.post("/rewards", json={"title": "Movie night", "cost": 100}).json()

        response = client.post(f"/rewards/{reward['id']}/claim")

        assert response.status_code == 409
        body = response.json()
        assert body["code"] == ErrorCode.ERR_INSUFFICIENT_POINTS
        assert body["suggestion"]

    def test_claim_reward(self, client):
        task = _create_task(client, points=120)
        client.post(f"/tasks/{task['id']}/complete")
        reward = client.post("/rewards", json={"title": "Movie night", "cost": 100}).json()

        response = client.post(f"/rewards/{reward['id']}/claim")

        assert response.status_code == 200
        assert response.json()["claimed"] is True
        assert client.get("/stats").json()["total_points"] == 20
        assert [r["title"] for r in client.get("/rewards", params={"status": "claimed"}).json()] == ["Movie night"]
        assert client.get("/rewards", params={"status": "available"}).json() == []

    def test_claim_twice_conflicts(self, client):
        task = _create_task(client, points=100)
        client.post(f"/tasks/{task['id']}/complete")
        reward = client.post("/rewards", json={"title": "Coffee", "cost": 10}).json()
        client.post(f"/rewards/{reward['id']}/claim")

        response = client.post(f"/rewards/{reward['id']}/claim")

        assert response.status_code == 409
        assert response.json()["code"] == ErrorCode.ERR_ALREADY_CLAIMED


@pytest.mark.unit
class TestSessionRoutes:
    def test_me_is_anonymous_in_local_mode(self, client):
        response = client.get("/auth/me")

        assert response.status_code == 200
        assert response.json()["anonymous"] is True

    def test_sign_in_unavailable_in_local_mode(self, client):
        response = client.post("/auth/sign-in", json={"email": "a@example.com", "password": "secret123"})

        assert response.status_code == 401
        assert response.json()["code"] == ErrorCode.ERR_AUTHENTICATION_FAILED

    def test_notifications_are_drained(self, client):
        _create_task(client)

        first = client.get("/notifications").json()
        second = client.get("/notifications").json()

        assert [n["title"] for n in first] == ["Task added!"]
        assert second == []


@pytest.mark.unit
def test_missing_storage_returns_service_unavailable(local_settings) -> None:
    """Test an uninitialized backend surfaces as 503 with the init hint."""
    store = InMemoryLedgerStore()
    store.missing.add("tasks")
    sessions = SessionManager(config=local_settings, store=store, notifier=QueueNotifier(maxlen=10))
    client = TestClient(create_app(sessions))

    response = client.get("/tasks")

    assert response.status_code == 503
    assert response.json()["code"] == ErrorCode.ERR_BACKEND_UNAVAILABLE
    assert "Initialize storage" in response.json()["suggestion"]
