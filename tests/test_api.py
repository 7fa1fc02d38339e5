"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from conftest import model_reply
from smart_intake.api import create_app

HEADERS = {"X-User-Id": "user-1"}


@pytest.fixture
def client(orchestrator):
    app = create_app(orchestrator, start_sweeper=False)
    with TestClient(app) as test_client:
        yield test_client


class TestSmartInputRoutes:
    """Conversation endpoints."""

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "ok"

    def test_requires_user_header(self, client):
        response = client.post("/api/v1/smart-input", json={"text": "hello"})
        assert response.status_code == 422

    def test_empty_input_is_400(self, client):
        response = client.post("/api/v1/smart-input", json={"text": " "}, headers=HEADERS)
        assert response.status_code == 400

    def test_ready_turn(self, client, model):
        model.complete.return_value = model_reply(
            intent="bill", draft={"vendor": "City Power", "amount": 120, "dueDate": "2025-03-03"}
        )
        response = client.post(
            "/api/v1/smart-input", json={"text": "Pay electricity bill $120 due March 3"}, headers=HEADERS
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "READY"
        assert body["intent_type"] == "bill"
        assert body["draft"]["amount"] == 120
        assert body["draft"]["due_date"] == "2025-03-03"
        assert body["clarification_flow"] is None

    def test_clarify_round_trip(self, client, model):
        model.complete.return_value = model_reply(
            status="NEEDS_CLARIFICATION", intent="task", draft={"title": "Something for next week"}
        )
        turn = client.post("/api/v1/smart-input", json={"text": "something for next week"}, headers=HEADERS).json()
        question = turn["clarification_flow"]["questions"][0]
        assert question["target_field"] == "life_area"

        response = client.post(
            "/api/v1/smart-input/clarify",
            json={
                "sessionId": turn["session_id"],
                "flowId": turn["clarification_flow"]["flow_id"],
                "answers": [{"questionId": question["id"], "value": "career"}],
            },
            headers=HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "READY"
        assert response.json()["draft"]["life_area"] == "career"

        again = client.post(
            "/api/v1/smart-input/clarify",
            json={"session_id": turn["session_id"], "answers": []},
            headers=HEADERS,
        )
        assert again.status_code == 404
        assert again.json()["session_id"] == turn["session_id"]

    def test_confirm_alternative(self, client, model):
        model.complete.return_value = model_reply(
            status="SUGGEST_ALTERNATIVE", intent="challenge", originalIntent="task", draft={"title": "Meditate"}
        )
        turn = client.post("/api/v1/smart-input", json={"text": "meditate daily"}, headers=HEADERS).json()

        response = client.post(
            f"/api/v1/smart-input/{turn['session_id']}/confirm-alternative",
            json={"accepted": False},
            headers=HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["intent_type"] == "task"

    def test_save_to_pending_then_approve(self, client, model):
        model.complete.return_value = model_reply(
            status="NEEDS_CLARIFICATION", intent="task", draft={"title": "Plan trip"}
        )
        turn = client.post("/api/v1/smart-input", json={"text": "plan trip"}, headers=HEADERS).json()

        pending = client.post(f"/api/v1/smart-input/{turn['session_id']}/save-to-pending", headers=HEADERS).json()
        assert pending["status"] == "pending_approval"

        listed = client.get("/api/v1/drafts/pending", headers=HEADERS).json()
        assert listed["total"] == 1

        result = client.post(
            f"/api/v1/drafts/{pending['draft_id']}/action", json={"action": "approve"}, headers=HEADERS
        ).json()
        assert result["success"] is True
        assert result["created_entity_kind"] == "task"


class TestDraftRoutes:
    """Pending draft endpoints."""

    def test_create_and_get(self, client):
        created = client.post(
            "/api/v1/drafts",
            json={"type": "note", "draft": {"content": "remember the milk", "tags": "shopping"}},
            headers=HEADERS,
        ).json()
        assert created["draft"]["tags"] == ["shopping"]

        fetched = client.get(f"/api/v1/drafts/{created['draft_id']}", headers=HEADERS)
        assert fetched.status_code == 200
        assert fetched.json()["draft"]["content"] == "remember the milk"

    def test_other_user_forbidden(self, client):
        created = client.post(
            "/api/v1/drafts", json={"type": "task", "draft": {"title": "x"}}, headers=HEADERS
        ).json()

        response = client.post(
            f"/api/v1/drafts/{created['draft_id']}/action",
            json={"action": "approve"},
            headers={"X-User-Id": "user-2"},
        )
        assert response.status_code == 403

    def test_modify(self, client):
        created = client.post(
            "/api/v1/drafts", json={"type": "task", "draft": {"title": "old"}}, headers=HEADERS
        ).json()

        result = client.post(
            f"/api/v1/drafts/{created['draft_id']}/action",
            json={"action": "modify", "modifiedDraft": {"title": "new", "lifeArea": "fun"}},
            headers=HEADERS,
        ).json()
        assert result["success"] is True
        assert client.get(f"/api/v1/drafts/{created['draft_id']}", headers=HEADERS).json()["draft"]["title"] == "new"

    def test_modify_without_draft_is_400(self, client):
        created = client.post(
            "/api/v1/drafts", json={"type": "task", "draft": {"title": "old"}}, headers=HEADERS
        ).json()
        response = client.post(
            f"/api/v1/drafts/{created['draft_id']}/action", json={"action": "modify"}, headers=HEADERS
        )
        assert response.status_code == 400

    def test_unknown_draft_404(self, client):
        assert client.get("/api/v1/drafts/missing", headers=HEADERS).status_code == 404


class TestSystemRoutes:
    """Operational endpoints."""

    def test_turns(self, client):
        client.post("/api/v1/smart-input", json={"text": "hello"}, headers=HEADERS)
        body = client.get("/api/v1/system/turns").json()
        assert body["total"] == 1
        assert body["entries"][0]["user_id"] == "user-1"

    def test_model_status(self, client):
        body = client.get("/api/v1/system/model").json()
        assert body["question_budget"] == 5
        assert body["active_sessions"] == 0
