"""
Integration tests for the adaptive assessment endpoints.
"""
import time

import pytest
from fastapi.testclient import TestClient

from portal.core.assessment.service import AssessmentService
from portal.core.assessment.session_store import SessionStore
from portal.core.auth import USER_ID_HEADER
from portal.main import create_application
from tests.conftest import answer_toward

PREFIX = "/v1/assessment/sessions"


def _start(client, headers):
    response = client.post(PREFIX, headers=headers)
    assert response.status_code == 200
    return response.json()


def _answer_all(client, headers, service, session_id, first_item, type_code):
    """Answer every item toward ``type_code``; returns the last response body."""
    item = first_item
    body = None
    answered = 0
    while item is not None:
        bank_item = service.engine.item_bank.item(item["id"])
        response = client.post(
            f"{PREFIX}/{session_id}/responses",
            json={
                "item_id": item["id"],
                "selected_value": answer_toward(bank_item, type_code),
            },
            headers=headers,
        )
        assert response.status_code == 200, response.json()
        body = response.json()
        item = body["next_item"]
        answered += 1
        assert answered <= 40
    return body


class TestHealth:
    def test_health(self, client):
        response = client.get("/v1/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["item_bank_size"] == 48
        assert data["active_sessions"] == 0
        assert "timestamp" in data

    def test_ping(self, client):
        assert client.get("/v1/ping").json() == {"message": "pong"}

    def test_root(self, client):
        data = client.get("/").json()
        assert data["docs"] == "/v1/docs"
        assert "version" in data

    def test_request_id_echoed(self, client):
        response = client.get("/v1/ping", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"

    def test_request_id_generated(self, client):
        response = client.get("/v1/ping")
        assert response.headers["X-Request-ID"]


class TestAuthentication:
    def test_missing_user_header(self, client):
        response = client.post(PREFIX)
        assert response.status_code == 401

    def test_blank_user_header(self, client):
        response = client.post(PREFIX, headers={USER_ID_HEADER: "   "})
        assert response.status_code == 401

    def test_other_users_session_forbidden(self, client, auth_headers):
        session_id = _start(client, auth_headers)["session"]["session_id"]
        response = client.get(
            f"{PREFIX}/{session_id}", headers={USER_ID_HEADER: "user-2"}
        )
        assert response.status_code == 403


class TestStartSession:
    def test_start_returns_first_item(self, client, auth_headers):
        data = _start(client, auth_headers)
        session = data["session"]
        assert session["respondent_id"] == "user-1"
        assert session["status"] == "in_progress"
        assert session["state"] == "in_progress"
        assert session["current_dimension"] == "EI"
        assert session["total_items"] == 0
        assert [d["dimension"] for d in session["dimensions"]] == ["EI", "SN", "TF", "JP"]
        assert session["dimensions"][0]["theta"] is None
        assert session["dimensions"][0]["standard_error"] is None
        assert data["next_item"]["dimension"] == "EI"
        assert data["next_item"]["text"]

    def test_item_parameters_not_exposed(self, client, auth_headers):
        item = _start(client, auth_headers)["next_item"]
        assert set(item) == {"id", "dimension", "text"}

    def test_session_registered(self, client, auth_headers, assessment_service):
        session_id = _start(client, auth_headers)["session"]["session_id"]
        assert session_id in assessment_service.sessions


class TestNextItem:
    def test_idempotent_while_pending(self, client, auth_headers):
        data = _start(client, auth_headers)
        session_id = data["session"]["session_id"]
        first = client.get(f"{PREFIX}/{session_id}/next-item", headers=auth_headers)
        second = client.get(f"{PREFIX}/{session_id}/next-item", headers=auth_headers)
        assert first.status_code == 200
        assert first.json()["next_item"]["id"] == data["next_item"]["id"]
        assert second.json() == first.json()
        assert first.json()["complete"] is False

    def test_unknown_session(self, client, auth_headers):
        response = client.get(f"{PREFIX}/missing/next-item", headers=auth_headers)
        assert response.status_code == 404


class TestSubmitResponse:
    def test_step_reports_estimate(self, client, auth_headers):
        data = _start(client, auth_headers)
        session_id = data["session"]["session_id"]
        response = client.post(
            f"{PREFIX}/{session_id}/responses",
            json={"item_id": data["next_item"]["id"], "selected_value": 1},
            headers=auth_headers,
        )
        assert response.status_code == 200
        step = response.json()["step"]
        assert step["dimension"] == "EI"
        assert step["items_administered"] == 1
        assert step["dimension_complete"] is False
        assert step["assessment_complete"] is False
        assert -4.0 <= step["theta"] <= 4.0
        assert response.json()["next_item"]["id"] != data["next_item"]["id"]

    def test_unknown_item(self, client, auth_headers):
        session_id = _start(client, auth_headers)["session"]["session_id"]
        response = client.post(
            f"{PREFIX}/{session_id}/responses",
            json={"item_id": "XX-99", "selected_value": 1},
            headers=auth_headers,
        )
        assert response.status_code == 404

    def test_item_not_pending(self, client, auth_headers):
        data = _start(client, auth_headers)
        session_id = data["session"]["session_id"]
        response = client.post(
            f"{PREFIX}/{session_id}/responses",
            json={"item_id": "JP-01", "selected_value": 1},
            headers=auth_headers,
        )
        assert response.status_code == 409
        assert data["next_item"]["id"] in response.json()["detail"]

    def test_value_off_scale(self, client, auth_headers):
        data = _start(client, auth_headers)
        session_id = data["session"]["session_id"]
        response = client.post(
            f"{PREFIX}/{session_id}/responses",
            json={"item_id": data["next_item"]["id"], "selected_value": 3},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert "between 0 and 1" in response.json()["detail"]

        # The rejected answer leaves the item pending
        retry = client.get(f"{PREFIX}/{session_id}/next-item", headers=auth_headers)
        assert retry.json()["next_item"]["id"] == data["next_item"]["id"]

    def test_unknown_session(self, client, auth_headers):
        response = client.post(
            f"{PREFIX}/missing/responses",
            json={"item_id": "EI-01", "selected_value": 1},
            headers=auth_headers,
        )
        assert response.status_code == 404

    def test_malformed_body(self, client, auth_headers):
        session_id = _start(client, auth_headers)["session"]["session_id"]
        response = client.post(
            f"{PREFIX}/{session_id}/responses",
            json={"selected_value": "agree"},
            headers=auth_headers,
        )
        assert response.status_code == 422
        detail = response.json()["detail"]
        assert isinstance(detail, list)
        assert {"loc", "msg", "type"} <= set(detail[0])


class TestFullAssessment:
    def test_complete_flow(self, client, auth_headers, assessment_service):
        data = _start(client, auth_headers)
        session_id = data["session"]["session_id"]

        last = _answer_all(
            client, auth_headers, assessment_service, session_id, data["next_item"], "ENTJ"
        )
        assert last["step"]["assessment_complete"] is True
        assert last["next_item"] is None

        session = client.get(f"{PREFIX}/{session_id}", headers=auth_headers).json()
        assert session["status"] == "complete"
        assert session["completed_at"] is not None
        assert all(d["stopped"] for d in session["dimensions"])

        next_item = client.get(f"{PREFIX}/{session_id}/next-item", headers=auth_headers)
        assert next_item.json() == {"next_item": None, "complete": True}

        result = client.get(f"{PREFIX}/{session_id}/result", headers=auth_headers)
        assert result.status_code == 200
        profile = result.json()
        assert profile["type_code"] == "ENTJ"
        assert profile["session_id"] == session_id
        assert [d["preference"] for d in profile["dimensions"]] == ["E", "N", "T", "J"]
        assert len(profile["type_probabilities"]) == 16
        assert profile["total_items"] == session["total_items"]

        assert assessment_service.results.get(session_id) is not None

    def test_response_after_completion_rejected(
        self, client, auth_headers, assessment_service
    ):
        data = _start(client, auth_headers)
        session_id = data["session"]["session_id"]
        _answer_all(
            client, auth_headers, assessment_service, session_id, data["next_item"], "ISFP"
        )

        response = client.post(
            f"{PREFIX}/{session_id}/responses",
            json={"item_id": "EI-01", "selected_value": 1},
            headers=auth_headers,
        )
        assert response.status_code == 409

        profile = client.get(f"{PREFIX}/{session_id}/result", headers=auth_headers)
        assert profile.json()["type_code"] == "ISFP"

    def test_result_not_ready(self, client, auth_headers):
        session_id = _start(client, auth_headers)["session"]["session_id"]
        response = client.get(f"{PREFIX}/{session_id}/result", headers=auth_headers)
        assert response.status_code == 409

    def test_result_unknown_session(self, client, auth_headers):
        response = client.get(f"{PREFIX}/missing/result", headers=auth_headers)
        assert response.status_code == 404

    def test_sessions_are_independent(self, client, auth_headers):
        first = _start(client, auth_headers)
        second = _start(client, {USER_ID_HEADER: "user-2"})
        assert first["session"]["session_id"] != second["session"]["session_id"]
        assert first["next_item"]["id"] == second["next_item"]["id"]


class TestReleasedSessions:
    """Completed sessions leave memory; their profile stays readable."""

    @pytest.fixture
    def short_lived_service(self, default_engine):
        return AssessmentService(
            engine=default_engine,
            sessions=SessionStore(completed_ttl_seconds=0.05),
        )

    @pytest.fixture
    def short_lived_client(self, short_lived_service):
        with TestClient(create_application(service=short_lived_service)) as client:
            yield client

    def test_result_served_after_release(
        self, short_lived_client, short_lived_service, auth_headers
    ):
        client = short_lived_client
        data = _start(client, auth_headers)
        session_id = data["session"]["session_id"]
        _answer_all(
            client, auth_headers, short_lived_service, session_id, data["next_item"], "ENTJ"
        )

        time.sleep(0.1)

        assert session_id not in short_lived_service.sessions
        status = client.get(f"{PREFIX}/{session_id}", headers=auth_headers)
        assert status.status_code == 404

        result = client.get(f"{PREFIX}/{session_id}/result", headers=auth_headers)
        assert result.status_code == 200
        assert result.json()["type_code"] == "ENTJ"

        other = client.get(
            f"{PREFIX}/{session_id}/result", headers={USER_ID_HEADER: "user-2"}
        )
        assert other.status_code == 403

        health = client.get("/v1/health").json()
        assert health["active_sessions"] == 0
