"""Integration tests for the SQLAlchemy stores.

Chat, message, user and document rows are exercised against a temporary
SQLite database (aiosqlite).  The pgvector nearest-neighbour query needs
PostgreSQL, so it is checked by compiling the statement for that dialect.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.dialects import postgresql
from sqlalchemy.ext.asyncio import AsyncEngine

from pdfchat.config.settings import Settings
from pdfchat.models.chat import MessageKind, UserProfile
from pdfchat.providers.database import (
    PostgresChatStore,
    PostgresDocumentStore,
    PostgresUserStore,
    create_engine,
    create_session_factory,
    init_db,
)
from pdfchat.providers.database.postgres_document_store import build_nearest_statement
from pdfchat.utils.errors import ConfigurationError, DimensionMismatchError, NotFoundError


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    db_path = tmp_path / "pdfchat_test.db"
    eng = create_engine(Settings(database_url=f"sqlite+aiosqlite:///{db_path}"))
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def stores(engine: AsyncEngine) -> tuple[PostgresDocumentStore, PostgresChatStore, PostgresUserStore]:
    factory = create_session_factory(engine)
    return PostgresDocumentStore(factory), PostgresChatStore(factory), PostgresUserStore(factory)


class TestDocumentStore:
    @pytest.mark.asyncio
    async def test_create_and_get(self, stores) -> None:
        documents, _, _ = stores
        doc = await documents.create_document("user_alice", "report.pdf", "https://s.test/report.pdf")

        fetched = await documents.get_document(doc.id)
        assert fetched is not None
        assert fetched.file_name == "report.pdf"
        assert await documents.get_document("not-a-uuid") is None

    @pytest.mark.asyncio
    async def test_add_chunk_and_count(self, stores) -> None:
        documents, _, _ = stores
        doc = await documents.create_document("user_alice", "report.pdf", "path")

        for i in range(3):
            await documents.add_chunk(doc.id, i, f"chunk {i}", {"source": "report.pdf"}, [0.1] * 1536)

        assert await documents.count_chunks(doc.id) == 3

    @pytest.mark.asyncio
    async def test_wrong_width_rejected_before_insert(self, stores) -> None:
        documents, _, _ = stores
        doc = await documents.create_document("user_alice", "report.pdf", "path")

        with pytest.raises(DimensionMismatchError):
            await documents.add_chunk(doc.id, 0, "text", {}, [0.1] * 3)
        assert await documents.count_chunks(doc.id) == 0

    @pytest.mark.asyncio
    async def test_query_width_checked(self, stores) -> None:
        documents, _, _ = stores
        with pytest.raises(DimensionMismatchError):
            await documents.nearest_chunks("00000000-0000-0000-0000-000000000000", [0.0] * 10, 5)


class TestNearestStatement:
    def test_compiles_to_l2_operator_with_bound_params(self) -> None:
        stmt = build_nearest_statement("doc-uuid", [0.5] * 1536, 5)
        sql = str(stmt.compile(dialect=postgresql.dialect()))

        assert "<->" in sql
        assert "ORDER BY distance" in sql
        assert "LIMIT" in sql
        # The query vector travels as a parameter, never inlined.
        assert "0.5" not in sql


class TestChatStore:
    @pytest.mark.asyncio
    async def test_messages_newest_first_and_last_message_updated(self, stores) -> None:
        documents, chats, _ = stores
        doc = await documents.create_document("user_alice", "report.pdf", "path")
        chat = await chats.create_chat("user_alice", doc.id, "Quarterly Report")

        await chats.add_message(chat.id, MessageKind.AI, "How can I assist you?")
        await chats.add_message(chat.id, MessageKind.USER, "What is the revenue?")
        last = await chats.add_message(
            chat.id, MessageKind.AI, "Revenue was 10M.", metadata={"sources": [{"chunk_index": 2}]}
        )

        detail = await chats.get_chat(chat.id, "user_alice")
        assert detail is not None
        assert [m.content for m in detail.messages] == [
            "Revenue was 10M.",
            "What is the revenue?",
            "How can I assist you?",
        ]
        assert detail.messages[0].metadata == {"sources": [{"chunk_index": 2}]}
        assert detail.document is not None and detail.document.id == doc.id
        assert detail.chat.last_message_content == "Revenue was 10M."
        assert detail.chat.last_message_kind is MessageKind.AI
        assert last.id == detail.messages[0].id

    @pytest.mark.asyncio
    async def test_timestamps_strictly_increase(self, stores) -> None:
        documents, chats, _ = stores
        doc = await documents.create_document("user_alice", "a.pdf", "path")
        chat = await chats.create_chat("user_alice", doc.id, "A")

        stamps = [(await chats.add_message(chat.id, MessageKind.USER, f"q{i}")).created_at for i in range(5)]
        normalized = [s.replace(tzinfo=None) for s in stamps]
        assert normalized == sorted(normalized)
        assert len(set(normalized)) == 5

    @pytest.mark.asyncio
    async def test_get_chat_is_owner_scoped(self, stores) -> None:
        documents, chats, _ = stores
        doc = await documents.create_document("user_alice", "a.pdf", "path")
        chat = await chats.create_chat("user_alice", doc.id, "A")

        assert await chats.get_chat(chat.id, "user_bob") is None
        assert await chats.get_chat("garbage", "user_alice") is None

    @pytest.mark.asyncio
    async def test_list_chats_by_recent_activity(self, stores) -> None:
        documents, chats, _ = stores
        doc = await documents.create_document("user_alice", "a.pdf", "path")
        older = await chats.create_chat("user_alice", doc.id, "Older")
        newer = await chats.create_chat("user_alice", doc.id, "Newer")
        await chats.create_chat("user_bob", doc.id, "Not mine")

        assert [c.id for c in await chats.list_chats("user_alice")] == [newer.id, older.id]

        await chats.add_message(older.id, MessageKind.USER, "bump")
        assert [c.id for c in await chats.list_chats("user_alice")] == [older.id, newer.id]

    @pytest.mark.asyncio
    async def test_message_on_missing_chat(self, stores) -> None:
        _, chats, _ = stores
        with pytest.raises(NotFoundError):
            await chats.add_message("00000000-0000-0000-0000-000000000000", MessageKind.USER, "hi")


class TestUserStore:
    @pytest.mark.asyncio
    async def test_upsert_inserts_then_updates(self, stores) -> None:
        _, _, users = stores
        first = await users.upsert_user(UserProfile(external_id="user_alice", email="a@example.com"))
        second = await users.upsert_user(
            UserProfile(external_id="user_alice", email="alice@example.com", full_name="Alice")
        )

        assert first.id == second.id
        assert second.email == "alice@example.com"
        stored = await users.get_user("user_alice")
        assert stored is not None and stored.full_name == "Alice"
        assert await users.get_user("user_missing") is None


class TestEngine:
    def test_dimension_mismatch_refused(self) -> None:
        with pytest.raises(ConfigurationError):
            create_engine(Settings(embedding_dimension=768))
