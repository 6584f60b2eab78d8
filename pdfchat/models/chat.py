"""Persistence-facing domain models: users, documents, chats, messages.

These are the shapes the store interfaces (``pdfchat/interfaces/``) accept
and return.  The ORM rows in ``pdfchat/providers/database/orm.py`` are
converted into these frozen models at the store boundary so nothing above
the store ever holds a live SQLAlchemy session object.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from pdfchat.models.rag import RetrievedChunk


class MessageKind(str, Enum):  # noqa: UP042
    """Who authored a chat message."""

    USER = "user"
    AI = "ai"


class Principal(BaseModel):
    """An authenticated caller, as established by the identity provider."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(description="Identity-provider subject (e.g. Clerk user id).")
    session_id: str | None = None
    claims: dict[str, Any] = Field(default_factory=dict)


class UserProfile(BaseModel):
    """Profile fields fetched from the identity provider for user sync."""

    model_config = ConfigDict(frozen=True)

    external_id: str
    email: str | None = None
    full_name: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict)


class User(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    external_id: str
    email: str | None = None
    full_name: str | None = None
    created_at: datetime


class Document(BaseModel):
    """An uploaded PDF. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    file_name: str
    file_path: str = Field(description="Object-storage locator (public URL or local path).")
    created_at: datetime


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    chat_id: str
    kind: MessageKind
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class Chat(BaseModel):
    """A conversation bound to exactly one document.

    The ``last_message_*`` fields are denormalised copies of the newest
    message, kept current by the chat store on every insert.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    document_id: str
    title: str
    last_message_content: str | None = None
    last_message_kind: MessageKind | None = None
    last_message_at: datetime | None = None
    created_at: datetime


class ChatDetail(BaseModel):
    """A chat with its document and messages (newest first)."""

    model_config = ConfigDict(frozen=True)

    chat: Chat
    document: Document | None = None
    messages: list[Message] = Field(default_factory=list)


class ChatExchange(BaseModel):
    """One question/answer round trip on a chat."""

    model_config = ConfigDict(frozen=True)

    user_message: Message
    ai_message: Message
    sources: list[RetrievedChunk] = Field(default_factory=list)


class DocumentAnswer(BaseModel):
    """Stateless answer to a question about a document."""

    model_config = ConfigDict(frozen=True)

    answer: str
    sources: list[RetrievedChunk] = Field(default_factory=list)
