"""FastAPI routes for pdfchat.

Service dependencies are resolved from ``app.state`` via FastAPI's
``Depends`` using the ``Annotated`` pattern; ``main.py`` populates
``app.state`` once in the lifespan.

Route map:

    Endpoint                              Method  Auth  Description
    ─────────────────────────────────────────────────────────────────────
    /api/user/sync                        POST    yes   Upsert caller from identity provider
    /api/chat/create                      POST    yes   Upload PDF, ingest synchronously
    /api/document/upload-stream           POST    yes   Upload PDF, stream progress (SSE)
    /api/document/query                   POST    yes   Ask a document directly (no chat)
    /api/chat/all                         GET     yes   Caller's chats, most recent first
    /api/chat/single/{chat_id}            GET     yes   Chat + document + messages (newest first)
    /api/chat/message/{chat_id}           POST    yes   Ask a question on a chat
    /api/status                           GET     no    Liveness + uptime
    /                                     GET     no    Service banner
"""

from __future__ import annotations

import asyncio
import json
import time
import uuid
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse

from pdfchat.api.auth import PrincipalDep
from pdfchat.api.middleware import error_response
from pdfchat.api.schemas import (
    ApiResponse,
    BannerData,
    ChatExchangeData,
    ChatListData,
    DocumentAnswerData,
    DocumentQueryRequest,
    ErrorResponse,
    SendMessageRequest,
    StatusData,
    UserSyncData,
)
from pdfchat.models.chat import ChatDetail
from pdfchat.models.pipeline import IngestionOutcome, IngestionRequest, ProgressError
from pdfchat.pipeline.coordinator import IngestionCoordinator
from pdfchat.pipeline.progress_channel import ChannelState, ProgressChannel
from pdfchat.services.chat_service import ChatService
from pdfchat.services.user_service import UserService
from pdfchat.utils.concurrency import CancellationToken
from pdfchat.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api")
root_router = APIRouter()

_ALLOWED_CONTENT_TYPES = frozenset({"application/pdf", "application/x-pdf", "application/octet-stream"})
_MAX_FILE_SIZE = 20 * 1024 * 1024  # 20 MB
_UPLOAD_CHUNK_SIZE = 64 * 1024  # 64 KB
_DISCONNECT_POLL_SECONDS = 0.5

_AUTH_RESPONSES = {401: {"model": ErrorResponse}}


# ---------------------------------------------------------------------------
# Dependency helpers
# ---------------------------------------------------------------------------


def _get_coordinator(request: Request) -> IngestionCoordinator:
    return request.app.state.coordinator


def _get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def _get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


def _expose_details(request: Request) -> bool:
    settings = getattr(request.app.state, "settings", None)
    return settings is None or not settings.is_production


CoordinatorDep = Annotated[IngestionCoordinator, Depends(_get_coordinator)]
ChatServiceDep = Annotated[ChatService, Depends(_get_chat_service)]
UserServiceDep = Annotated[UserService, Depends(_get_user_service)]


# ---------------------------------------------------------------------------
# Upload helpers
# ---------------------------------------------------------------------------


async def _read_upload(file: UploadFile | None) -> tuple[str, str, bytes]:
    """Return ``(file_name, content_type, data)``; empty data when no file was sent.

    Reads in 64 KB increments so oversized uploads are rejected early.
    """
    if file is None:
        return "", "application/pdf", b""

    content_type = file.content_type or "application/pdf"
    file_name = file.filename or ""
    if content_type not in _ALLOWED_CONTENT_TYPES and not file_name.lower().endswith(".pdf"):
        raise HTTPException(
            status_code=415,
            detail=f"Unsupported file type: {content_type}. Upload a PDF.",
        )

    parts: list[bytes] = []
    total_size = 0
    while True:
        part = await file.read(_UPLOAD_CHUNK_SIZE)
        if not part:
            break
        total_size += len(part)
        if total_size > _MAX_FILE_SIZE:
            raise HTTPException(
                status_code=413,
                detail=f"File too large: maximum is {_MAX_FILE_SIZE // (1024 * 1024)} MB.",
            )
        parts.append(part)
    return file_name, "application/pdf", b"".join(parts)


def _sse_frame(payload: dict) -> str:
    return f"data: {json.dumps(payload, default=str)}\n\n"


async def _watch_disconnect(request: Request, on_disconnect) -> None:
    """Poll the transport until the client goes away, then fire *on_disconnect* once."""
    while True:
        if await request.is_disconnected():
            on_disconnect()
            return
        await asyncio.sleep(_DISCONNECT_POLL_SECONDS)


async def _progress_stream(
    request: Request,
    coordinator: IngestionCoordinator,
    ingestion_request: IngestionRequest,
) -> AsyncIterator[str]:
    """Run the coordinator in a task and relay its channel as SSE frames.

    On disconnect (detected by polling, or by Starlette cancelling this
    generator) while the channel is still open, the channel is abandoned,
    the cancellation token tripped and the coordinator task cancelled.  Rows
    it already committed stay.  Once the terminal event has been relayed the
    task is awaited, never cancelled.
    """
    channel_id = uuid.uuid4().hex[:12]
    channel = ProgressChannel(channel_id=channel_id)
    token = CancellationToken()
    log = _logger.bind(channel_id=channel_id, user_id=ingestion_request.user_id)

    task = asyncio.create_task(coordinator.run(ingestion_request, channel, token))

    def _on_task_done(t: asyncio.Task) -> None:
        # run() reports its own failures; this only covers a crash that
        # escaped it, so the consumer is never left waiting forever.
        if t.cancelled() or not channel.can_send():
            return
        exc = t.exception()
        channel.fail(
            "Upload failed",
            ProgressError(
                message="Internal error",
                detail=f"{type(exc).__name__}: {exc}" if exc else "coordinator exited early",
            ),
        )

    def _abandon() -> None:
        # No-op once the channel is closed: a finished run is never cancelled.
        if not channel.abandon("client_disconnected"):
            return
        log.info("upload_stream_client_disconnected", last_progress=channel.last_progress)
        token.cancel("client_disconnected")
        if not task.done():
            task.cancel()

    task.add_done_callback(_on_task_done)
    watcher = asyncio.create_task(_watch_disconnect(request, _abandon))
    try:
        async for event in channel.events():
            yield _sse_frame(event.to_wire())
    finally:
        watcher.cancel()
        if channel.state is ChannelState.OPEN:
            _abandon()
        elif channel.state is ChannelState.CLOSED and not task.done():
            # Terminal event already relayed; let run() finish its bookkeeping.
            await asyncio.shield(task)


def _outcome_error(outcome: IngestionOutcome, expose_details: bool) -> JSONResponse:
    error = outcome.error or ProgressError(message="Upload failed", detail="unknown")
    hide = outcome.status_code >= 500 and not expose_details
    return error_response(
        outcome.status_code,
        error.code,
        error.message,
        None if hide else error.detail,
    )


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@router.post(
    "/user/sync",
    response_model=ApiResponse[UserSyncData],
    responses=_AUTH_RESPONSES,
    summary="Sync the caller's profile from the identity provider",
)
async def sync_user(principal: PrincipalDep, users: UserServiceDep) -> ApiResponse[UserSyncData]:
    user = await users.sync(principal)
    return ApiResponse(data=UserSyncData(user=user))


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


@router.post(
    "/chat/create",
    response_model=ApiResponse[ChatDetail],
    responses={**_AUTH_RESPONSES, 400: {"model": ErrorResponse}, 413: {"model": ErrorResponse}},
    summary="Upload a PDF and create a chat (no progress stream)",
)
async def create_chat(
    request: Request,
    principal: PrincipalDep,
    coordinator: CoordinatorDep,
    file: Annotated[UploadFile | None, File()] = None,
):
    file_name, content_type, data = await _read_upload(file)
    ingestion_request = IngestionRequest(
        user_id=principal.user_id,
        file_name=file_name,
        content_type=content_type,
        data=data,
    )
    # Nobody reads this channel; the outcome carries the result.
    channel = ProgressChannel(channel_id=uuid.uuid4().hex[:12])
    outcome = await coordinator.run(ingestion_request, channel)
    if not outcome.succeeded or outcome.detail is None:
        return _outcome_error(outcome, _expose_details(request))
    return ApiResponse(data=outcome.detail)


@router.post(
    "/document/upload-stream",
    responses={
        **_AUTH_RESPONSES,
        200: {"content": {"text/event-stream": {}}, "description": "Progress events"},
    },
    summary="Upload a PDF and stream ingestion progress as server-sent events",
)
async def upload_document_stream(
    request: Request,
    principal: PrincipalDep,
    coordinator: CoordinatorDep,
    file: Annotated[UploadFile | None, File()] = None,
) -> StreamingResponse:
    file_name, content_type, data = await _read_upload(file)
    ingestion_request = IngestionRequest(
        user_id=principal.user_id,
        file_name=file_name,
        content_type=content_type,
        data=data,
    )
    return StreamingResponse(
        _progress_stream(request, coordinator, ingestion_request),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.post(
    "/document/query",
    response_model=ApiResponse[DocumentAnswerData],
    responses={**_AUTH_RESPONSES, 404: {"model": ErrorResponse}},
    summary="Ask a question about one of the caller's documents",
)
async def query_document(
    body: DocumentQueryRequest,
    principal: PrincipalDep,
    chats: ChatServiceDep,
) -> ApiResponse[DocumentAnswerData]:
    result = await chats.query_document(principal, body.document_id, body.question, body.k)
    return ApiResponse(data=DocumentAnswerData(answer=result.answer, sources=result.sources))


# ---------------------------------------------------------------------------
# Chats
# ---------------------------------------------------------------------------


@router.get(
    "/chat/all",
    response_model=ApiResponse[ChatListData],
    responses=_AUTH_RESPONSES,
    summary="List the caller's chats",
)
async def list_chats(principal: PrincipalDep, chats: ChatServiceDep) -> ApiResponse[ChatListData]:
    return ApiResponse(data=ChatListData(chats=await chats.list_chats(principal)))


@router.get(
    "/chat/single/{chat_id}",
    response_model=ApiResponse[ChatDetail],
    responses={**_AUTH_RESPONSES, 404: {"model": ErrorResponse}},
    summary="Get a chat with its document and messages (newest first)",
)
async def get_chat(chat_id: str, principal: PrincipalDep, chats: ChatServiceDep) -> ApiResponse[ChatDetail]:
    return ApiResponse(data=await chats.get_chat(principal, chat_id))


@router.post(
    "/chat/message/{chat_id}",
    response_model=ApiResponse[ChatExchangeData],
    responses={**_AUTH_RESPONSES, 404: {"model": ErrorResponse}},
    summary="Ask a question on a chat",
)
async def send_message(
    chat_id: str,
    body: SendMessageRequest,
    principal: PrincipalDep,
    chats: ChatServiceDep,
) -> ApiResponse[ChatExchangeData]:
    exchange = await chats.send_message(principal, chat_id, body.question, body.k)
    return ApiResponse(
        data=ChatExchangeData(
            user_message=exchange.user_message,
            ai_message=exchange.ai_message,
            answer=exchange.ai_message.content,
            sources=exchange.sources,
        )
    )


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


@router.get("/status", response_model=ApiResponse[StatusData], summary="Liveness and uptime")
async def get_status(request: Request) -> ApiResponse[StatusData]:
    started = getattr(request.app.state, "started_at", None) or time.monotonic()
    return ApiResponse(
        data=StatusData(
            uptime=round(time.monotonic() - started, 3),
            timestamp=datetime.now(timezone.utc),  # noqa: UP017
        )
    )


@root_router.get("/", response_model=ApiResponse[BannerData], include_in_schema=False)
async def banner(request: Request) -> ApiResponse[BannerData]:
    version = getattr(request.app, "version", "") or "0.1.0"
    return ApiResponse(
        data=BannerData(
            message="pdfchat API server",
            version=version,
            endpoints={"status": "/api/status", "docs": "/docs"},
        )
    )
