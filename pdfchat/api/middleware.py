"""API middleware -- CORS, request logging, error handling and error envelopes.

Middleware execution order (Starlette wraps LIFO, last added is outermost):

    In main.py:
      app.add_middleware(ErrorHandlingMiddleware)   # added 1st → inner
      app.add_middleware(RequestLoggingMiddleware)  # added 2nd → outer

    Client → RequestLogging → ErrorHandling → route handler

so RequestLoggingMiddleware records the final status code, including the
ones ErrorHandlingMiddleware substituted.

``register_exception_handlers`` covers the errors FastAPI handles before
our middleware sees them: unmatched routes / HTTPException and request
validation failures.  Both are rewritten into the same error envelope.
"""

from __future__ import annotations

import time
import uuid
from http import HTTPStatus

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from pdfchat.api.schemas import ErrorBody, ErrorResponse
from pdfchat.utils.errors import PdfChatError, error_code
from pdfchat.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

_GENERIC_INTERNAL_MESSAGE = "An unexpected error occurred"


def error_response(
    status_code: int,
    code: str,
    message: str,
    description: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build a JSON response carrying the standard error envelope."""
    body = ErrorResponse(error=ErrorBody(code=code, message=message, description=description))
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )


def _status_code_name(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).name
    except ValueError:
        return "HTTP_ERROR"


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware to the FastAPI application.

    Parameters
    ----------
    app:
        The FastAPI application instance.
    allowed_origins:
        Explicit list of allowed origins.  Defaults to ``["*"]``; set
        ``CORS_ORIGINS`` to the frontend's origin in production.
    """
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # Browsers reject credentialed requests against a wildcard origin.
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration.

    A ``request_id`` is bound into structlog's context vars for the
    duration of the request so every log line it produces carries it.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        structlog.contextvars.bind_contextvars(request_id=request_id)

        try:
            response = await call_next(request)
            response.headers["x-request-id"] = request_id
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = response.status_code if response else 500
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=status_code,
                duration_ms=duration_ms,
            )
            structlog.contextvars.unbind_contextvars("request_id")


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Convert exceptions escaping a route into the error envelope.

    ``PdfChatError`` subclasses map to their declared ``status_code``.
    Anything else is a 500: the traceback is logged server-side and the
    client gets a generic description in production or the exception text
    in development.
    """

    def __init__(self, app: ASGIApp, *, expose_details: bool = False) -> None:
        super().__init__(app)
        self._expose_details = expose_details

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except PdfChatError as exc:
            log = _logger.warning if exc.status_code < 500 else _logger.error
            log(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                status=exc.status_code,
                path=str(request.url.path),
            )
            headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
            hide = exc.status_code >= 500 and not self._expose_details
            return error_response(
                exc.status_code,
                error_code(exc),
                _GENERIC_INTERNAL_MESSAGE if hide else exc.message,
                None if hide else str(exc),
                headers=headers,
            )
        except Exception as exc:  # noqa: BLE001
            _logger.exception(
                "unhandled_error",
                error_type=type(exc).__name__,
                path=str(request.url.path),
            )
            return error_response(
                500,
                "INTERNAL_SERVER_ERROR",
                _GENERIC_INTERNAL_MESSAGE,
                f"{type(exc).__name__}: {exc}" if self._expose_details else None,
            )


# ---------------------------------------------------------------------------
# Framework-level exception handlers
# ---------------------------------------------------------------------------


def register_exception_handlers(app: FastAPI) -> None:
    """Route FastAPI's own 404/405/422 responses through the error envelope."""

    async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404 and request.url.path.startswith("/api"):
            return error_response(
                404,
                "NOT_FOUND",
                "API endpoint not found",
                f"{request.method} {request.url.path} does not exist",
            )
        detail = exc.detail if isinstance(exc.detail, str) else None
        return error_response(
            exc.status_code,
            _status_code_name(exc.status_code),
            detail or HTTPStatus(exc.status_code).phrase,
            headers=getattr(exc, "headers", None),
        )

    async def _validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}"
            for err in exc.errors()
        )
        return error_response(400, "VALIDATION_ERROR", "Invalid request", problems or None)

    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_handler)
