"""
Tests for the public share-link endpoints.
"""
import hashlib

import pytest

from app.models import AssessmentSession


@pytest.fixture
def shared_assessment(make_assessment):
    return make_assessment(public_code="py-fundamentals", access_code="spring")


def public_start(client, code="py-fundamentals", **body):
    payload = {"contact_email": "Ada@Example.com", "access_code": "spring"}
    payload.update(body)
    return client.post(f"/v1/public/{code}/sessions", json=payload)


class TestSharedAssessment:
    """Tests for GET /v1/public/{public_code}."""

    def test_describes_assessment_without_code(self, client, shared_assessment):
        response = client.get("/v1/public/py-fundamentals")

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == shared_assessment.id
        assert data["access_code_required"] is True
        assert "spring" not in response.text

    def test_unknown_link(self, client, shared_assessment):
        response = client.get("/v1/public/nope")
        assert response.status_code == 404


class TestPublicStart:
    """Tests for POST /v1/public/{public_code}/sessions."""

    def test_start_returns_candidate_token(self, client, shared_assessment):
        response = public_start(client)

        assert response.status_code == 201
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["candidate_token"]
        assert data["resumed"] is False
        assert len(data["questions"]) == 4

    def test_only_fingerprint_is_stored(self, client, db_session, shared_assessment):
        data = public_start(client).json()

        session = db_session.get(AssessmentSession, data["session"]["id"])
        expected = hashlib.sha256(b"ada@example.com").hexdigest()
        assert session.contact_fingerprint == expected
        assert session.candidate_id is None
        assert session.candidate_key == f"anon:{expected}"

    def test_same_email_resumes(self, client, shared_assessment):
        first = public_start(client).json()

        response = public_start(client, contact_email="ADA@example.COM")

        assert response.status_code == 200
        assert response.json()["resumed"] is True
        assert response.json()["session"]["id"] == first["session"]["id"]

    def test_different_email_gets_own_session(self, client, shared_assessment):
        first = public_start(client).json()
        second = public_start(client, contact_email="grace@example.com").json()
        assert first["session"]["id"] != second["session"]["id"]

    def test_access_code_enforced(self, client, shared_assessment):
        response = public_start(client, access_code="autumn")
        assert response.status_code == 403
        assert response.json()["code"] == "BAD_ACCESS_CODE"

    def test_invalid_email_rejected(self, client, shared_assessment):
        response = public_start(client, contact_email="not-an-email")
        assert response.status_code == 422

    def test_unknown_link(self, client, shared_assessment):
        response = public_start(client, code="missing")
        assert response.status_code == 404

    def test_token_drives_session_endpoints(self, client, shared_assessment):
        data = public_start(client).json()
        headers = {"Authorization": f"Bearer {data['candidate_token']}"}
        session_id = data["session"]["id"]

        answer = client.put(
            f"/v1/assessments/sessions/{session_id}/answers",
            headers=headers,
            json={"question_id": data["session"]["question_sequence"][0], "selected_index": 0},
        )
        submit = client.post(
            f"/v1/assessments/sessions/{session_id}/submit", headers=headers
        )

        assert answer.status_code == 200
        assert submit.status_code == 200
        assert submit.json()["correct_count"] == 1

    def test_token_cannot_touch_other_sessions(
        self, client, shared_assessment, auth_headers
    ):
        owned = client.post(
            f"/v1/assessments/{shared_assessment.id}/sessions",
            headers=auth_headers,
            json={"access_code": "spring"},
        ).json()
        token = public_start(client).json()["candidate_token"]

        response = client.post(
            f"/v1/assessments/sessions/{owned['session']['id']}/submit",
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 403
        assert response.json()["code"] == "NOT_OWNER"
