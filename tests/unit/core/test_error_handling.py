"""
Tests for error handling middleware.
Covers message sanitization, the shared error envelope and mapping of
access denials and domain errors to responses.
"""

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError, OperationalError

from core.middleware.authorization import AuthorizationDenied, NotFound, SubscriptionRequired
from core.middleware.error_handling import (
    ErrorHandlingMiddleware,
    access_error_body,
    build_error_body,
    get_safe_error_details,
    sanitize_error_message,
    setup_error_handlers,
)

INVITE_TOKEN = "a" * 64


class TestSensitiveDataSanitization:
    """Test that credentials and tokens never reach error messages."""

    @pytest.mark.parametrize(
        "message",
        [
            'password="hunter2"',
            "token=abc123xyz",
            'api_key="sk_live_12345"',
            "client_secret: s3cr3t",
            "authorization: Bearer",
            f"invitation {INVITE_TOKEN} expired",
        ],
    )
    def test_sensitive_values_are_redacted(self, message):
        sanitized = sanitize_error_message(message)

        assert "[REDACTED]" in sanitized
        for secret in ("hunter2", "abc123xyz", "sk_live_12345", "s3cr3t", INVITE_TOKEN):
            assert secret not in sanitized

    def test_plain_message_is_unchanged(self):
        assert sanitize_error_message("Job not found") == "Job not found"

    def test_non_string_is_stringified(self):
        assert sanitize_error_message(404) == "404"

    def test_safe_details_exclude_traceback_by_default(self):
        details = get_safe_error_details(ValueError("password=hunter2"))

        assert details["type"] == "ValueError"
        assert "hunter2" not in details["message"]
        assert "traceback" not in details


class TestErrorEnvelope:
    """Test the shared error body."""

    def test_build_error_body(self):
        body = build_error_body("INVALID_INPUT", "Bad value", "/api/v1/jobs", "POST")

        assert body == {
            "error": {
                "code": "INVALID_INPUT",
                "message": "Bad value",
                "path": "/api/v1/jobs",
                "method": "POST",
            }
        }

    def test_details_included_when_given(self):
        body = build_error_body("X", "m", "/", "GET", details=[{"field": "title"}])
        assert body["error"]["details"] == [{"field": "title"}]

    def test_subscription_required_is_flagged(self):
        body = access_error_body(SubscriptionRequired(), "/api/v1/candidates", "GET")

        assert body["error"]["code"] == "SUBSCRIPTION_REQUIRED"
        assert body["error"]["requires_subscription"] is True

    @pytest.mark.parametrize(
        "exc,code", [(AuthorizationDenied(), "FORBIDDEN"), (NotFound(), "NOT_FOUND")]
    )
    def test_other_denials_are_not_flagged(self, exc, code):
        body = access_error_body(exc, "/x", "GET")

        assert body["error"]["code"] == code
        assert "requires_subscription" not in body["error"]


def build_app() -> FastAPI:
    app = FastAPI()
    setup_error_handlers(app)

    @app.get("/forbidden")
    async def forbidden():
        raise AuthorizationDenied("You cannot post jobs for this company")

    @app.get("/subscription")
    async def subscription():
        raise SubscriptionRequired()

    @app.get("/missing")
    async def missing():
        raise NotFound("Candidate not found")

    @app.get("/invalid")
    async def invalid():
        raise ValueError(f"Invitation {INVITE_TOKEN} already used")

    @app.get("/http")
    async def http():
        raise HTTPException(status_code=401, detail="Not authenticated")

    @app.get("/items/{item_id}")
    async def item(item_id: int):
        return {"id": item_id}

    @app.get("/crash")
    async def crash():
        raise RuntimeError("token=abc123 leaked")

    return app


class TestExceptionHandlers:
    """Test the registered FastAPI exception handlers."""

    @pytest.fixture
    def client(self):
        return TestClient(build_app(), raise_server_exceptions=False)

    def test_authorization_denied(self, client):
        response = client.get("/forbidden")

        assert response.status_code == 403
        error = response.json()["error"]
        assert error["code"] == "FORBIDDEN"
        assert error["path"] == "/forbidden"
        assert error["method"] == "GET"

    def test_subscription_required(self, client):
        response = client.get("/subscription")

        assert response.status_code == 403
        assert response.json()["error"]["requires_subscription"] is True

    def test_not_found(self, client):
        response = client.get("/missing")

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Candidate not found"

    def test_value_error_is_bad_request_and_sanitized(self, client):
        response = client.get("/invalid")

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "INVALID_INPUT"
        assert INVITE_TOKEN not in error["message"]

    def test_http_exception(self, client):
        response = client.get("/http")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "HTTP_EXCEPTION"

    def test_validation_error(self, client):
        response = client.get("/items/not-a-number")

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"][0]["field"] == "path.item_id"

    def test_unhandled_error_hides_message(self, client):
        response = client.get("/crash")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "INTERNAL_SERVER_ERROR"
        assert "abc123" not in response.text


class TestErrorHandlingMiddleware:
    """Test the last-resort ASGI middleware."""

    @pytest.fixture
    def client(self):
        app = FastAPI()
        app.add_middleware(ErrorHandlingMiddleware, debug=False)

        @app.get("/integrity")
        async def integrity():
            raise IntegrityError("INSERT", {}, Exception("duplicate key"))

        @app.get("/operational")
        async def operational():
            raise OperationalError("SELECT", {}, Exception("connection lost"))

        @app.get("/subscription")
        async def subscription():
            raise SubscriptionRequired()

        @app.get("/value")
        async def value():
            raise ValueError("Bulk operations accept at most 100 applications")

        return TestClient(app, raise_server_exceptions=False)

    def test_integrity_error_is_conflict(self, client):
        response = client.get("/integrity")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INTEGRITY_ERROR"
        assert "duplicate key" not in response.text

    def test_operational_error_is_unavailable(self, client):
        response = client.get("/operational")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "DATABASE_ERROR"

    def test_access_error_keeps_reason(self, client):
        response = client.get("/subscription")

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "SUBSCRIPTION_REQUIRED"

    def test_value_error(self, client):
        response = client.get("/value", headers={"X-Request-ID": "req-1"})

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["message"] == "Bulk operations accept at most 100 applications"
        assert error["request_id"] == "req-1"
