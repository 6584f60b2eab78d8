"""ORM row → domain model conversion and id parsing shared by the stores."""

from __future__ import annotations

import uuid

from pdfchat.models.chat import Chat, Document, Message, MessageKind, User
from pdfchat.providers.database.orm import ChatRecord, DocumentRecord, MessageRecord, UserRecord


def parse_uuid(value: str) -> uuid.UUID | None:
    """Return ``value`` as a UUID, or ``None`` if it is not one.

    Ids arrive from URL paths; a malformed one is simply "not found".
    """
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def to_user(record: UserRecord) -> User:
    return User(
        id=str(record.id),
        external_id=record.external_id,
        email=record.email,
        full_name=record.full_name,
        created_at=record.created_at,
    )


def to_document(record: DocumentRecord) -> Document:
    return Document(
        id=str(record.id),
        user_id=record.user_id,
        file_name=record.file_name,
        file_path=record.file_path,
        created_at=record.created_at,
    )


def to_chat(record: ChatRecord) -> Chat:
    return Chat(
        id=str(record.id),
        user_id=record.user_id,
        document_id=str(record.document_id),
        title=record.title,
        last_message_content=record.last_message_content,
        last_message_kind=MessageKind(record.last_message_kind) if record.last_message_kind else None,
        last_message_at=record.last_message_at,
        created_at=record.created_at,
    )


def to_message(record: MessageRecord) -> Message:
    return Message(
        id=str(record.id),
        chat_id=str(record.chat_id),
        kind=MessageKind(record.kind),
        content=record.content,
        metadata=record.message_metadata or {},
        created_at=record.created_at,
    )
