"""
Tests for the assessment session endpoints.
"""
from datetime import timedelta

from tests.conftest import START, auth_headers_for, correct_index_for


def start_url(assessment_id):
    return f"/v1/assessments/{assessment_id}/sessions"


def session_url(session_id, suffix=""):
    return f"/v1/assessments/sessions/{session_id}{suffix}"


def start_session(client, assessment, headers, **body):
    response = client.post(start_url(assessment.id), headers=headers, json=body or None)
    assert response.status_code == 201, response.json()
    return response.json()


def answer_correctly(client, db_session, data, headers, count):
    """Answer the first `count` questions of a started session correctly."""
    session_id = data["session"]["id"]
    for question_id in data["session"]["question_sequence"][:count]:
        response = client.put(
            session_url(session_id, "/answers"),
            headers=headers,
            json={
                "question_id": question_id,
                "selected_index": correct_index_for(db_session, question_id),
            },
        )
        assert response.status_code == 200


class TestGetAssessment:
    """Tests for GET /v1/assessments/{assessment_id}."""

    def test_access_code_never_exposed(self, client, make_assessment, auth_headers):
        assessment = make_assessment(access_code="letmein")

        response = client.get(f"/v1/assessments/{assessment.id}", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["access_code_required"] is True
        assert "access_code" not in data
        assert "letmein" not in response.text

    def test_unknown_assessment(self, client, auth_headers):
        response = client.get("/v1/assessments/9999", headers=auth_headers)
        assert response.status_code == 404

    def test_invalid_token_rejected(self, client, assessment):
        response = client.get(
            f"/v1/assessments/{assessment.id}",
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert response.status_code == 401


class TestStartSession:
    """Tests for POST /v1/assessments/{assessment_id}/sessions."""

    def test_new_session_created(self, client, assessment, auth_headers):
        response = client.post(start_url(assessment.id), headers=auth_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["resumed"] is False
        assert data["session"]["status"] == "in_progress"
        assert data["total_questions"] == 4
        assert data["remaining_seconds"] == 30 * 60
        assert data["attempts_used"] == 0

    def test_questions_never_include_correct_answer(
        self, client, assessment, auth_headers
    ):
        data = start_session(client, assessment, auth_headers)

        assert len(data["questions"]) == 4
        for question in data["questions"]:
            assert set(question) == {"id", "stem", "options"}

    def test_resume_returns_200_with_same_session(
        self, client, assessment, auth_headers, clock
    ):
        first = start_session(client, assessment, auth_headers)
        clock.advance(minutes=10)

        response = client.post(start_url(assessment.id), headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["resumed"] is True
        assert data["session"]["id"] == first["session"]["id"]
        assert data["remaining_seconds"] == 20 * 60

    def test_wrong_access_code(self, client, make_assessment, auth_headers):
        assessment = make_assessment(access_code="letmein")

        response = client.post(
            start_url(assessment.id), headers=auth_headers, json={"access_code": "nope"}
        )

        assert response.status_code == 403
        assert response.json()["code"] == "BAD_ACCESS_CODE"

    def test_correct_access_code(self, client, make_assessment, auth_headers):
        assessment = make_assessment(access_code="letmein")
        start_session(client, assessment, auth_headers, access_code="letmein")

    def test_outside_window(self, client, make_assessment, auth_headers):
        assessment = make_assessment(start_date=START + timedelta(days=1))
        response = client.post(start_url(assessment.id), headers=auth_headers)
        assert response.status_code == 403
        assert response.json()["code"] == "OUTSIDE_WINDOW"

    def test_cooldown_reports_end_time(
        self, client, make_assessment, auth_headers, clock
    ):
        assessment = make_assessment(cooldown_minutes=60)
        data = start_session(client, assessment, auth_headers)
        client.post(session_url(data["session"]["id"], "/submit"), headers=auth_headers)
        clock.advance(minutes=10)

        response = client.post(start_url(assessment.id), headers=auth_headers)

        assert response.status_code == 403
        body = response.json()
        assert body["code"] == "COOLDOWN_ACTIVE"
        assert body["cooldown_ends_at"] == "2025-03-03T10:00:00+00:00"

    def test_attempts_exhausted(self, client, make_assessment, auth_headers):
        assessment = make_assessment(max_attempts=1)
        data = start_session(client, assessment, auth_headers)
        client.post(session_url(data["session"]["id"], "/submit"), headers=auth_headers)

        response = client.post(start_url(assessment.id), headers=auth_headers)

        assert response.status_code == 403
        assert response.json()["code"] == "ATTEMPTS_EXHAUSTED"

    def test_no_questions(self, client, make_assessment, auth_headers):
        assessment = make_assessment(pool_size=0, question_count=1)
        response = client.post(start_url(assessment.id), headers=auth_headers)
        assert response.status_code == 422
        assert response.json()["code"] == "NO_QUESTIONS"

    def test_unknown_assessment(self, client, auth_headers):
        response = client.post(start_url(9999), headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"


class TestSessionMutations:
    """Tests for answers, violations and views."""

    def test_record_answer(self, client, assessment, auth_headers):
        data = start_session(client, assessment, auth_headers)
        question_id = data["session"]["question_sequence"][0]

        response = client.put(
            session_url(data["session"]["id"], "/answers"),
            headers=auth_headers,
            json={"question_id": question_id, "selected_index": 2},
        )

        assert response.status_code == 200
        assert response.json()["answered_count"] == 1
        assert response.json()["selected_index"] == 2

    def test_invalid_option(self, client, assessment, auth_headers):
        data = start_session(client, assessment, auth_headers)
        response = client.put(
            session_url(data["session"]["id"], "/answers"),
            headers=auth_headers,
            json={
                "question_id": data["session"]["question_sequence"][0],
                "selected_index": 7,
            },
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_OPTION"

    def test_question_not_in_session(self, client, assessment, auth_headers):
        data = start_session(client, assessment, auth_headers)
        response = client.put(
            session_url(data["session"]["id"], "/answers"),
            headers=auth_headers,
            json={"question_id": 99999, "selected_index": 0},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "QUESTION_NOT_IN_SESSION"

    def test_other_candidate_forbidden(self, client, assessment, auth_headers):
        data = start_session(client, assessment, auth_headers)
        response = client.put(
            session_url(data["session"]["id"], "/answers"),
            headers=auth_headers_for("intruder"),
            json={
                "question_id": data["session"]["question_sequence"][0],
                "selected_index": 0,
            },
        )
        assert response.status_code == 403
        assert response.json()["code"] == "NOT_OWNER"

    def test_answer_after_time_limit(self, client, assessment, auth_headers, clock):
        data = start_session(client, assessment, auth_headers)
        session_id = data["session"]["id"]
        clock.advance(minutes=31)

        response = client.put(
            session_url(session_id, "/answers"),
            headers=auth_headers,
            json={
                "question_id": data["session"]["question_sequence"][0],
                "selected_index": 0,
            },
        )

        assert response.status_code == 409
        assert response.json()["code"] == "SESSION_EXPIRED"
        state = client.get(session_url(session_id), headers=auth_headers).json()
        assert state["session"]["status"] == "timed_out"
        assert state["remaining_seconds"] == 0

    def test_violation_flagging(self, client, assessment, auth_headers):
        data = start_session(client, assessment, auth_headers)
        url = session_url(data["session"]["id"], "/violations")

        responses = [
            client.post(url, headers=auth_headers, json={"kind": "left"})
            for _ in range(3)
        ]

        assert [r.json()["violation_count"] for r in responses] == [1, 2, 3]
        assert responses[-1].json()["flagged_for_review"] is True

    def test_unknown_violation_kind(self, client, assessment, auth_headers):
        data = start_session(client, assessment, auth_headers)
        response = client.post(
            session_url(data["session"]["id"], "/violations"),
            headers=auth_headers,
            json={"kind": "screenshot"},
        )
        assert response.status_code == 422

    def test_first_view_recorded_once(self, client, assessment, auth_headers, clock):
        data = start_session(client, assessment, auth_headers)
        url = session_url(data["session"]["id"], "/views")
        question_id = data["session"]["question_sequence"][1]

        first = client.post(url, headers=auth_headers, json={"question_id": question_id})
        clock.advance(minutes=2)
        second = client.post(url, headers=auth_headers, json={"question_id": question_id})

        assert first.json()["first_view"] is True
        assert second.json()["first_view"] is False
        assert second.json()["viewed_at"] == first.json()["viewed_at"]


class TestSessionState:
    """Tests for GET /v1/assessments/sessions/{session_id}."""

    def test_state_includes_answers(self, client, assessment, auth_headers, clock):
        data = start_session(client, assessment, auth_headers)
        session_id = data["session"]["id"]
        question_id = data["session"]["question_sequence"][0]
        client.put(
            session_url(session_id, "/answers"),
            headers=auth_headers,
            json={"question_id": question_id, "selected_index": 3},
        )
        clock.advance(minutes=5)

        state = client.get(session_url(session_id), headers=auth_headers).json()

        assert state["remaining_seconds"] == 25 * 60
        assert state["answers"][str(question_id)] == 3
        assert state["answered_count"] == 1
        assert len(state["questions"]) == 4

    def test_unknown_session(self, client, auth_headers):
        response = client.get(session_url("missing"), headers=auth_headers)
        assert response.status_code == 404


class TestSubmitAndResults:
    """Tests for submission and results."""

    def test_submit_grades_session(self, client, db_session, make_assessment, auth_headers):
        assessment = make_assessment(pool_size=10)
        data = start_session(client, assessment, auth_headers)
        answer_correctly(client, db_session, data, auth_headers, 8)

        response = client.post(
            session_url(data["session"]["id"], "/submit"), headers=auth_headers
        )

        assert response.status_code == 200
        body = response.json()
        assert body["score"] == 80
        assert body["passed"] is True
        assert body["correct_count"] == 8
        assert body["session"]["status"] == "completed"
        assert body["certificate_url"] is None

    def test_double_submit_conflict(self, client, assessment, auth_headers):
        data = start_session(client, assessment, auth_headers)
        url = session_url(data["session"]["id"], "/submit")
        client.post(url, headers=auth_headers)

        response = client.post(url, headers=auth_headers)

        assert response.status_code == 409
        assert response.json()["code"] == "ALREADY_TERMINAL"

    def test_late_submit_conflict(self, client, assessment, auth_headers, clock):
        data = start_session(client, assessment, auth_headers)
        clock.advance(minutes=45)

        response = client.post(
            session_url(data["session"]["id"], "/submit"), headers=auth_headers
        )

        assert response.status_code == 409
        assert response.json()["code"] == "ALREADY_TERMINAL"

    def test_results_require_finished_session(self, client, assessment, auth_headers):
        data = start_session(client, assessment, auth_headers)
        response = client.get(
            session_url(data["session"]["id"], "/results"), headers=auth_headers
        )
        assert response.status_code == 409
        assert response.json()["code"] == "SESSION_IN_PROGRESS"

    def test_results_with_standing_and_no_review(
        self, client, db_session, assessment, auth_headers
    ):
        other_headers = auth_headers_for("cand-2")
        other = start_session(client, assessment, other_headers)
        client.post(session_url(other["session"]["id"], "/submit"), headers=other_headers)

        data = start_session(client, assessment, auth_headers)
        answer_correctly(client, db_session, data, auth_headers, 4)
        client.post(session_url(data["session"]["id"], "/submit"), headers=auth_headers)

        response = client.get(
            session_url(data["session"]["id"], "/results"), headers=auth_headers
        )

        assert response.status_code == 200
        body = response.json()
        assert body["score"] == 100
        assert body["standing"] == {"percentile": 50, "rank": 1, "cohort_size": 2}
        assert body["review"] is None

    def test_results_hidden_standing(self, client, make_assessment, auth_headers):
        assessment = make_assessment(show_results=False)
        data = start_session(client, assessment, auth_headers)
        client.post(session_url(data["session"]["id"], "/submit"), headers=auth_headers)

        body = client.get(
            session_url(data["session"]["id"], "/results"), headers=auth_headers
        ).json()

        assert body["standing"] is None
        assert body["score"] == 0

    def test_review_when_allowed(
        self, client, db_session, make_assessment, auth_headers
    ):
        assessment = make_assessment(allow_review=True)
        data = start_session(client, assessment, auth_headers)
        answer_correctly(client, db_session, data, auth_headers, 1)
        client.post(session_url(data["session"]["id"], "/submit"), headers=auth_headers)

        body = client.get(
            session_url(data["session"]["id"], "/results"), headers=auth_headers
        ).json()

        review = body["review"]
        assert len(review) == 4
        assert review[0]["is_correct"] is True
        assert review[1]["is_correct"] is False
        assert review[1]["selected_index"] is None
        assert review[1]["correct_index"] == 1
        assert review[1]["explanation"] == "Option 1 is correct."

    def test_results_of_timed_out_session(self, client, assessment, auth_headers, clock):
        data = start_session(client, assessment, auth_headers)
        clock.advance(hours=1)

        response = client.get(
            session_url(data["session"]["id"], "/results"), headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["session"]["status"] == "timed_out"
        assert response.json()["passed"] is False
