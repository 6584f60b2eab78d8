"""Unit tests for the error-handling middleware and error envelopes."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from pdfchat.api.middleware import ErrorHandlingMiddleware, error_response, register_exception_handlers
from pdfchat.utils.errors import LLMError, NotFoundError


def _app(expose_details: bool) -> FastAPI:
    app = FastAPI()
    app.add_middleware(ErrorHandlingMiddleware, expose_details=expose_details)
    register_exception_handlers(app)

    @app.get("/api/upstream")
    async def upstream() -> dict:
        raise LLMError("quota exceeded", provider_name="openai")

    @app.get("/api/missing")
    async def missing() -> dict:
        raise NotFoundError("Chat not found")

    @app.get("/api/crash")
    async def crash() -> dict:
        raise RuntimeError("secret internals")

    return app


class TestErrorHandlingMiddleware:
    def test_client_error_keeps_message(self) -> None:
        response = TestClient(_app(expose_details=False)).get("/api/missing")
        assert response.status_code == 404
        assert response.json()["error"] == {
            "code": "NOT_FOUND_ERROR",
            "message": "Chat not found",
            "description": "Chat not found",
        }

    def test_upstream_error_hidden_in_production(self) -> None:
        response = TestClient(_app(expose_details=False)).get("/api/upstream")
        assert response.status_code == 502
        error = response.json()["error"]
        assert error["code"] == "LLM_ERROR"
        assert "quota" not in response.text
        assert "description" not in error

    def test_upstream_error_detailed_in_development(self) -> None:
        response = TestClient(_app(expose_details=True)).get("/api/upstream")
        assert response.json()["error"]["description"] == "[openai] quota exceeded"

    def test_unexpected_exception_is_generic_500(self) -> None:
        response = TestClient(_app(expose_details=False)).get("/api/crash")
        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "INTERNAL_SERVER_ERROR"
        assert "secret internals" not in response.text

    def test_method_not_allowed_envelope(self) -> None:
        response = TestClient(_app(expose_details=False)).post("/api/missing")
        assert response.status_code == 405
        assert response.json()["error"]["code"] == "METHOD_NOT_ALLOWED"


class TestErrorResponse:
    def test_description_omitted_when_none(self) -> None:
        response = error_response(400, "BAD", "Bad request")
        assert response.body == b'{"success":false,"error":{"code":"BAD","message":"Bad request"}}'
