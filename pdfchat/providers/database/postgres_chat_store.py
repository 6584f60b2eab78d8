"""SQLAlchemy implementations of IChatStore and IUserStore.

``add_message`` inserts the message and rewrites the parent chat's
``last_message_*`` columns in one transaction, holding a row lock on the
chat (``SELECT ... FOR UPDATE`` on PostgreSQL) so concurrent messages on the
same chat serialise.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pdfchat.interfaces.chat_store import IChatStore, IUserStore
from pdfchat.models.chat import Chat, ChatDetail, Message, MessageKind, User, UserProfile
from pdfchat.providers.database.converters import (
    parse_uuid,
    to_chat,
    to_document,
    to_message,
    to_user,
)
from pdfchat.providers.database.orm import ChatRecord, DocumentRecord, MessageRecord, UserRecord
from pdfchat.utils.errors import DatabaseError, NotFoundError
from pdfchat.utils.logging import get_logger

_PROVIDER = "postgres"
_TICK = timedelta(microseconds=1)


def _as_aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone=True columns.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)  # noqa: UP017


class PostgresChatStore(IChatStore):
    """Chats and messages via SQLAlchemy async."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._logger = get_logger(__name__)

    async def create_chat(self, user_id: str, document_id: str, title: str) -> Chat:
        doc_uuid = parse_uuid(document_id)
        if doc_uuid is None:
            raise NotFoundError(message=f"Document {document_id} not found", provider_name=_PROVIDER)
        async with self._session_factory() as session:
            record = ChatRecord(user_id=user_id, document_id=doc_uuid, title=title)
            session.add(record)
            try:
                await session.commit()
            except SQLAlchemyError as exc:
                raise DatabaseError(
                    message=f"Could not create chat: {exc}",
                    provider_name=_PROVIDER,
                ) from exc
            self._logger.info("chat_created", chat_id=str(record.id), document_id=document_id)
            return to_chat(record)

    async def add_message(
        self,
        chat_id: str,
        kind: MessageKind,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> Message:
        chat_uuid = parse_uuid(chat_id)
        if chat_uuid is None:
            raise NotFoundError(message=f"Chat {chat_id} not found", provider_name=_PROVIDER)

        async with self._session_factory() as session:
            try:
                async with session.begin():
                    chat = (
                        await session.execute(
                            select(ChatRecord).where(ChatRecord.id == chat_uuid).with_for_update()
                        )
                    ).scalar_one_or_none()
                    if chat is None:
                        raise NotFoundError(
                            message=f"Chat {chat_id} not found",
                            provider_name=_PROVIDER,
                        )

                    # Keep created_at strictly increasing within a chat so
                    # "newest first" ordering is total.
                    now = datetime.now(timezone.utc)  # noqa: UP017
                    if chat.last_message_at is not None:
                        now = max(now, _as_aware(chat.last_message_at) + _TICK)

                    message = MessageRecord(
                        chat_id=chat_uuid,
                        kind=kind.value,
                        content=content,
                        message_metadata=metadata or {},
                        created_at=now,
                    )
                    session.add(message)
                    chat.last_message_content = content
                    chat.last_message_kind = kind.value
                    chat.last_message_at = now
            except SQLAlchemyError as exc:
                raise DatabaseError(
                    message=f"Could not add message: {exc}",
                    provider_name=_PROVIDER,
                ) from exc
            return to_message(message)

    async def list_chats(self, user_id: str) -> list[Chat]:
        activity = func.coalesce(ChatRecord.last_message_at, ChatRecord.created_at)
        stmt = (
            select(ChatRecord)
            .where(ChatRecord.user_id == user_id)
            .order_by(activity.desc(), ChatRecord.created_at.desc())
        )
        async with self._session_factory() as session:
            records = (await session.execute(stmt)).scalars().all()
        return [to_chat(r) for r in records]

    async def get_chat(self, chat_id: str, user_id: str) -> ChatDetail | None:
        chat_uuid = parse_uuid(chat_id)
        if chat_uuid is None:
            return None
        async with self._session_factory() as session:
            chat = (
                await session.execute(
                    select(ChatRecord).where(
                        ChatRecord.id == chat_uuid,
                        ChatRecord.user_id == user_id,
                    )
                )
            ).scalar_one_or_none()
            if chat is None:
                return None
            document = await session.get(DocumentRecord, chat.document_id)
            messages = (
                await session.execute(
                    select(MessageRecord)
                    .where(MessageRecord.chat_id == chat_uuid)
                    .order_by(MessageRecord.created_at.desc())
                )
            ).scalars().all()
        return ChatDetail(
            chat=to_chat(chat),
            document=to_document(document) if document else None,
            messages=[to_message(m) for m in messages],
        )


class PostgresUserStore(IUserStore):
    """Users keyed by identity-provider id, upserted on sync."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._logger = get_logger(__name__)

    async def _find(self, session: AsyncSession, external_id: str) -> UserRecord | None:
        stmt = select(UserRecord).where(UserRecord.external_id == external_id)
        return (await session.execute(stmt)).scalar_one_or_none()

    async def upsert_user(self, profile: UserProfile) -> User:
        # Two attempts: a concurrent sync can win the insert race, after
        # which the second pass finds the row and updates it.
        for attempt in range(2):
            async with self._session_factory() as session:
                record = await self._find(session, profile.external_id)
                created = record is None
                if record is None:
                    record = UserRecord(external_id=profile.external_id)
                    session.add(record)
                record.email = profile.email
                record.full_name = profile.full_name
                record.raw = profile.raw
                try:
                    await session.commit()
                except IntegrityError as exc:
                    await session.rollback()
                    if attempt == 0:
                        continue
                    raise DatabaseError(
                        message=f"Could not sync user: {exc}",
                        provider_name=_PROVIDER,
                    ) from exc
                except SQLAlchemyError as exc:
                    raise DatabaseError(
                        message=f"Could not sync user: {exc}",
                        provider_name=_PROVIDER,
                    ) from exc
                self._logger.info("user_synced", external_id=profile.external_id, created=created)
                return to_user(record)
        raise DatabaseError(message="Could not sync user", provider_name=_PROVIDER)

    async def get_user(self, external_id: str) -> User | None:
        async with self._session_factory() as session:
            record = await self._find(session, external_id)
            return to_user(record) if record else None
