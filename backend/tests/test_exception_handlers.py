"""
Tests for exception handlers in main.py.

Engine outcomes are raised as HTTPException with a structured detail; the
handler must return that detail unchanged so clients can branch on `code`.
"""
from unittest.mock import patch

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from pydantic import BaseModel

from app.main import create_application


class TestExceptionHandlerRegistration:
    """Tests that the handlers are registered."""

    def test_http_exception_handler_exists(self):
        from app.main import app
        from starlette.exceptions import HTTPException as StarletteHTTPException

        assert StarletteHTTPException in app.exception_handlers

    def test_validation_exception_handler_exists(self):
        from app.main import app
        from fastapi.exceptions import RequestValidationError

        assert RequestValidationError in app.exception_handlers

    def test_generic_exception_handler_exists(self):
        from app.main import app

        assert Exception in app.exception_handlers


class TestHTTPExceptionHandler:
    """Tests for response bodies and error tracking."""

    @pytest.fixture
    def test_app(self):
        return create_application()

    @pytest.fixture
    def client(self, test_app):
        return TestClient(test_app, raise_server_exceptions=False)

    def test_structured_detail_returned_unchanged(self, test_app, client):
        @test_app.get("/test-denied")
        async def denied():
            raise HTTPException(
                status_code=403,
                detail={
                    "code": "COOLDOWN_ACTIVE",
                    "message": "Cooldown active",
                    "cooldown_ends_at": "2025-03-03T10:00:00+00:00",
                },
            )

        response = client.get("/test-denied")

        assert response.status_code == 403
        assert response.json() == {
            "code": "COOLDOWN_ACTIVE",
            "message": "Cooldown active",
            "cooldown_ends_at": "2025-03-03T10:00:00+00:00",
        }

    def test_plain_detail_wrapped(self, test_app, client):
        @test_app.get("/test-not-found")
        async def not_found():
            raise HTTPException(status_code=404, detail="Assessment not found.")

        response = client.get("/test-not-found")

        assert response.status_code == 404
        assert response.json() == {"detail": "Assessment not found."}

    def test_headers_passed_through(self, test_app, client):
        @test_app.get("/test-unauthorized")
        async def unauthorized():
            raise HTTPException(
                status_code=401,
                detail="Could not validate credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )

        response = client.get("/test-unauthorized")

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    def test_client_errors_not_reported(self, test_app, client):
        @test_app.get("/test-conflict")
        async def conflict():
            raise HTTPException(status_code=409, detail={"code": "ALREADY_TERMINAL"})

        with patch("app.main.observability.capture_error") as mock_capture:
            client.get("/test-conflict")

        mock_capture.assert_not_called()

    def test_server_errors_reported(self, test_app, client):
        @test_app.get("/test-unavailable")
        async def unavailable():
            raise HTTPException(status_code=503, detail="Database unavailable")

        with patch("app.main.observability.capture_error") as mock_capture:
            response = client.get("/test-unavailable")

        assert response.status_code == 503
        mock_capture.assert_called_once()
        assert mock_capture.call_args.kwargs["context"]["status_code"] == 503

    def test_errors_tracked_in_analytics(self, test_app, client):
        @test_app.get("/test-tracked")
        async def tracked():
            raise HTTPException(status_code=400, detail={"code": "INVALID_OPTION"})

        with patch("app.main.AnalyticsTracker.track_api_error") as mock_track:
            client.get("/test-tracked")

        mock_track.assert_called_once()
        assert mock_track.call_args.kwargs["path"] == "/test-tracked"
        assert mock_track.call_args.kwargs["candidate_key"] is None


class TestValidationExceptionHandler:
    """Tests for request validation errors."""

    def test_validation_errors_listed(self):
        test_app = create_application()

        class Payload(BaseModel):
            selected_index: int

        @test_app.post("/test-validation")
        async def validate(payload: Payload):
            return payload

        client = TestClient(test_app, raise_server_exceptions=False)
        response = client.post("/test-validation", json={"selected_index": "two"})

        assert response.status_code == 422
        errors = response.json()["detail"]
        assert errors[0]["loc"] == ["body", "selected_index"]
        assert errors[0]["type"] == "int_parsing"
