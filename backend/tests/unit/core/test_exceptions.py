"""Tests for global exception handlers."""

from fastapi import FastAPI
from fastapi.testclient import TestClient

from chatguard.core.exceptions import error_response, register_exception_handlers
from chatguard.models.moderation import (
    ModerationError,
    RuleCompilationError,
    StoreUnavailableError,
)


def _make_app_with_route(exc_to_raise: Exception):
    """Create a minimal FastAPI app that raises the given exception."""
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/test")
    async def trigger():
        raise exc_to_raise

    return TestClient(app, raise_server_exceptions=False)


class TestModerationExceptionHandlers:
    def test_store_unavailable(self):
        client = _make_app_with_route(StoreUnavailableError("timeout"))
        resp = client.get("/test")
        assert resp.status_code == 503
        assert resp.json()["code"] == "STORE_UNAVAILABLE"

    def test_store_error_detail_is_generic(self):
        """Store internals are not leaked to the caller."""
        client = _make_app_with_route(StoreUnavailableError("password=hunter2"))
        resp = client.get("/test")
        assert "hunter2" not in resp.json()["detail"]

    def test_moderation_error(self):
        client = _make_app_with_route(ModerationError("unexpected"))
        resp = client.get("/test")
        assert resp.status_code == 500
        assert resp.json()["code"] == "MODERATION_ERROR"

    def test_rule_compilation_error_is_moderation_error(self):
        client = _make_app_with_route(RuleCompilationError("r-1", "[x", "unterminated set"))
        resp = client.get("/test")
        assert resp.status_code == 500
        assert resp.json()["code"] == "MODERATION_ERROR"


class TestCatchAll:
    def test_unhandled_exception(self):
        client = _make_app_with_route(RuntimeError("boom"))
        resp = client.get("/test")
        assert resp.status_code == 500
        assert resp.json()["code"] == "INTERNAL_ERROR"


class TestErrorResponse:
    def test_without_code(self):
        response = error_response(400, "Bad input")
        assert response.status_code == 400
        assert response.body == b'{"detail":"Bad input"}'
