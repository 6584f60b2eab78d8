"""Pydantic request/response schemas for the pdfchat API.

Every JSON response uses one of two envelopes:

    success  {"success": true,  "data": ...}
    failure  {"success": false, "error": {"code", "message", "description"}}

Request schemas end with "Request"; response data schemas end with "Data"
and are wrapped in :class:`ApiResponse`.
"""

from __future__ import annotations

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

from pdfchat.models.chat import Chat, Message, User
from pdfchat.models.rag import RetrievedChunk

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    data: T


class ErrorBody(BaseModel):
    code: str = Field(description="Machine-readable error code, e.g. NOT_FOUND.")
    message: str = Field(description="Short human-readable summary.")
    description: str | None = Field(
        default=None,
        description="Extra detail; omitted for internal errors in production.",
    )


class ErrorResponse(BaseModel):
    """Standard error response body."""

    success: bool = False
    error: ErrorBody


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class SendMessageRequest(BaseModel):
    """A question about the chat's document."""

    question: str = Field(..., min_length=1, max_length=4000)
    k: int | None = Field(default=None, ge=1, le=50, description="Chunks to retrieve.")


class DocumentQueryRequest(BaseModel):
    """A stateless question about one of the caller's documents."""

    document_id: str = Field(..., min_length=1)
    question: str = Field(..., min_length=1, max_length=4000)
    k: int | None = Field(default=None, ge=1, le=50)


# ---------------------------------------------------------------------------
# Response data
# ---------------------------------------------------------------------------


class UserSyncData(BaseModel):
    user: User


class ChatListData(BaseModel):
    chats: list[Chat]


class ChatExchangeData(BaseModel):
    user_message: Message
    ai_message: Message
    answer: str
    sources: list[RetrievedChunk] = Field(default_factory=list)


class DocumentAnswerData(BaseModel):
    answer: str
    sources: list[RetrievedChunk] = Field(default_factory=list)


class StatusData(BaseModel):
    status: str = "ok"
    uptime: float = Field(description="Seconds since application startup.")
    timestamp: datetime


class BannerData(BaseModel):
    message: str
    version: str
    endpoints: dict[str, str]

