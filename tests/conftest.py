"""Shared pytest fixtures for the pdfchat test suite."""

from __future__ import annotations

import hashlib
import struct
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from pdfchat.interfaces.chat_store import IChatStore, IUserStore
from pdfchat.interfaces.document_store import IDocumentStore
from pdfchat.interfaces.embedding_provider import IEmbeddingProvider
from pdfchat.interfaces.identity_provider import IIdentityProvider
from pdfchat.interfaces.llm_provider import ILLMProvider
from pdfchat.interfaces.storage_provider import IObjectStorageProvider
from pdfchat.interfaces.text_extractor import ITextExtractor
from pdfchat.models.chat import (
    Chat,
    ChatDetail,
    Document,
    Message,
    MessageKind,
    Principal,
    User,
    UserProfile,
)
from pdfchat.models.pipeline import PipelineConfig
from pdfchat.models.rag import RetrievedChunk
from pdfchat.pipeline.coordinator import IngestionCoordinator
from pdfchat.services.answer_service import AnswerSynthesizer
from pdfchat.services.chat_service import ChatService
from pdfchat.services.ingestion.chunker import TextChunker
from pdfchat.services.ingestion.embedding_orchestrator import EmbeddingOrchestrator
from pdfchat.services.retrieval_service import RetrievalService
from pdfchat.services.title_service import TitleService
from pdfchat.services.user_service import UserService
from pdfchat.utils.errors import AuthenticationError, DimensionMismatchError

_EMBEDDING_DIM = 128

VALID_TOKEN = "valid-token"
OTHER_TOKEN = "other-token"


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Generate a deterministic fixed-length vector by hashing *text*.

    Uses SHA-256 to hash the text, then unpacks bytes into floats and
    normalises to unit length.  Same text always produces the same vector.
    """
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    raw = digest
    while len(raw) < dim * 4:
        raw += hashlib.sha256(raw).digest()
    raw = raw[: dim * 4]
    # Unpack as unsigned ints so NaN/inf bit patterns cannot occur.
    values = [v / 2**32 - 0.5 for v in struct.unpack(f"<{dim}I", raw)]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


def _now() -> datetime:
    return datetime.now(timezone.utc)  # noqa: UP017


# ---------------------------------------------------------------------------
# In-memory providers
# ---------------------------------------------------------------------------


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests.

    Texts listed in ``fail_on`` raise, to simulate per-chunk API failures.
    """

    def __init__(self, fail_on: set[str] | None = None) -> None:
        self.fail_on = fail_on or set()
        self.calls: list[str] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed_single(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.calls.append(text)
        if text in self.fail_on:
            raise RuntimeError("simulated embedding failure")
        return _hash_to_vector(text)

    def get_dimension(self) -> int:
        return _EMBEDDING_DIM

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


class InMemoryDocumentStore(IDocumentStore):
    """Documents and chunk vectors in dicts; exact L2 nearest-neighbour search."""

    def __init__(self, dimension: int = _EMBEDDING_DIM) -> None:
        self.dimension = dimension
        self.documents: dict[str, Document] = {}
        self.chunks: dict[str, list[tuple[str, int, str, dict[str, Any], list[float]]]] = {}

    async def create_document(self, user_id: str, file_name: str, file_path: str) -> Document:
        doc = Document(
            id=str(uuid.uuid4()),
            user_id=user_id,
            file_name=file_name,
            file_path=file_path,
            created_at=_now(),
        )
        self.documents[doc.id] = doc
        self.chunks[doc.id] = []
        return doc

    async def get_document(self, document_id: str) -> Document | None:
        return self.documents.get(document_id)

    async def add_chunk(
        self,
        document_id: str,
        chunk_index: int,
        text: str,
        metadata: dict[str, Any],
        embedding: list[float],
    ) -> str:
        if len(embedding) != self.dimension:
            raise DimensionMismatchError()
        chunk_id = str(uuid.uuid4())
        self.chunks.setdefault(document_id, []).append(
            (chunk_id, chunk_index, text, dict(metadata), list(embedding))
        )
        return chunk_id

    async def nearest_chunks(
        self,
        document_id: str,
        embedding: list[float],
        k: int,
    ) -> list[RetrievedChunk]:
        if len(embedding) != self.dimension:
            raise DimensionMismatchError()
        scored = []
        for chunk_id, index, text, metadata, vector in self.chunks.get(document_id, []):
            distance = sum((a - b) ** 2 for a, b in zip(embedding, vector)) ** 0.5
            scored.append(
                RetrievedChunk(
                    chunk_id=chunk_id,
                    document_id=document_id,
                    chunk_index=index,
                    text=text,
                    metadata=metadata,
                    distance=distance,
                )
            )
        scored.sort(key=lambda c: c.distance)
        return scored[:k]

    async def count_chunks(self, document_id: str) -> int:
        return len(self.chunks.get(document_id, []))


class InMemoryChatStore(IChatStore):
    """Chats and messages in dicts, with the same ordering rules as the SQL store."""

    def __init__(self, document_store: InMemoryDocumentStore) -> None:
        self._documents = document_store
        self.chats: dict[str, Chat] = {}
        self.messages: dict[str, list[Message]] = {}

    async def create_chat(self, user_id: str, document_id: str, title: str) -> Chat:
        chat = Chat(
            id=str(uuid.uuid4()),
            user_id=user_id,
            document_id=document_id,
            title=title,
            created_at=_now(),
        )
        self.chats[chat.id] = chat
        self.messages[chat.id] = []
        return chat

    async def add_message(
        self,
        chat_id: str,
        kind: MessageKind,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> Message:
        chat = self.chats[chat_id]
        created = _now()
        if chat.last_message_at is not None and created <= chat.last_message_at:
            created = chat.last_message_at + timedelta(microseconds=1)
        message = Message(
            id=str(uuid.uuid4()),
            chat_id=chat_id,
            kind=kind,
            content=content,
            metadata=metadata or {},
            created_at=created,
        )
        self.messages[chat_id].append(message)
        self.chats[chat_id] = chat.model_copy(
            update={
                "last_message_content": content,
                "last_message_kind": kind,
                "last_message_at": created,
            }
        )
        return message

    async def list_chats(self, user_id: str) -> list[Chat]:
        chats = [c for c in self.chats.values() if c.user_id == user_id]
        return sorted(chats, key=lambda c: c.last_message_at or c.created_at, reverse=True)

    async def get_chat(self, chat_id: str, user_id: str) -> ChatDetail | None:
        chat = self.chats.get(chat_id)
        if chat is None or chat.user_id != user_id:
            return None
        return ChatDetail(
            chat=chat,
            document=await self._documents.get_document(chat.document_id),
            messages=sorted(self.messages[chat_id], key=lambda m: m.created_at, reverse=True),
        )


class InMemoryUserStore(IUserStore):
    def __init__(self) -> None:
        self.users: dict[str, User] = {}

    async def upsert_user(self, profile: UserProfile) -> User:
        existing = self.users.get(profile.external_id)
        user = User(
            id=existing.id if existing else str(uuid.uuid4()),
            external_id=profile.external_id,
            email=profile.email,
            full_name=profile.full_name,
            created_at=existing.created_at if existing else _now(),
        )
        self.users[profile.external_id] = user
        return user

    async def get_user(self, external_id: str) -> User | None:
        return self.users.get(external_id)


class FakeStorageProvider(IObjectStorageProvider):
    def __init__(self) -> None:
        self.uploads: list[tuple[str, int]] = []

    async def upload(self, data: bytes, filename: str, content_type: str = "application/pdf") -> str:
        self.uploads.append((filename, len(data)))
        return f"https://storage.test/pdfs/{len(self.uploads)}-{filename}"

    def get_provider_name(self) -> str:
        return "fake-storage"


class FakeTextExtractor(ITextExtractor):
    """Returns the uploaded bytes decoded as UTF-8 instead of parsing a PDF."""

    async def extract(self, data: bytes) -> str:
        return data.decode("utf-8", errors="ignore")

    def get_provider_name(self) -> str:
        return "fake-extractor"


class FakeIdentityProvider(IIdentityProvider):
    """Accepts two fixed tokens, one per test user."""

    TOKENS = {VALID_TOKEN: "user_alice", OTHER_TOKEN: "user_bob"}

    async def verify_token(self, token: str) -> Principal:
        user_id = self.TOKENS.get(token)
        if user_id is None:
            raise AuthenticationError(message="Invalid token", provider_name="fake-identity")
        return Principal(user_id=user_id, session_id="sess_1")

    async def get_user_profile(self, user_id: str) -> UserProfile:
        return UserProfile(
            external_id=user_id,
            email=f"{user_id}@example.com",
            full_name=user_id.replace("user_", "").title(),
        )

    def get_provider_name(self) -> str:
        return "fake-identity"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    """Mock ILLMProvider that returns configurable responses.

    Override with ``mock_llm_provider.complete.return_value = "custom"`` or
    ``mock_llm_provider.complete.side_effect = [...]`` for specific tests.
    """
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.is_available.return_value = True
    mock.complete = AsyncMock(return_value="A grounded answer.")
    return mock


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def document_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def chat_store(document_store: InMemoryDocumentStore) -> InMemoryChatStore:
    return InMemoryChatStore(document_store)


@pytest.fixture
def user_store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture
def storage_provider() -> FakeStorageProvider:
    return FakeStorageProvider()


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def pipeline_config() -> PipelineConfig:
    """Small chunks and no batch pause so tests stay fast."""
    return PipelineConfig(
        chunk_size=100,
        chunk_overlap=20,
        embedding_batch_size=5,
        embedding_batch_pause_seconds=0.0,
        timeout_seconds=5.0,
    )


@pytest.fixture
def coordinator(
    storage_provider: FakeStorageProvider,
    document_store: InMemoryDocumentStore,
    chat_store: InMemoryChatStore,
    mock_embedding_provider: MockEmbeddingProvider,
    mock_llm_provider: ILLMProvider,
    pipeline_config: PipelineConfig,
) -> IngestionCoordinator:
    return IngestionCoordinator(
        storage=storage_provider,
        extractor=FakeTextExtractor(),
        document_store=document_store,
        chat_store=chat_store,
        chunker=TextChunker(pipeline_config.chunk_size, pipeline_config.chunk_overlap),
        orchestrator=EmbeddingOrchestrator(
            mock_embedding_provider,
            document_store,
            batch_size=pipeline_config.embedding_batch_size,
            batch_pause=pipeline_config.embedding_batch_pause_seconds,
        ),
        title_service=TitleService(mock_llm_provider),
        config=pipeline_config,
    )


@pytest.fixture
def chat_service(
    chat_store: InMemoryChatStore,
    document_store: InMemoryDocumentStore,
    mock_embedding_provider: MockEmbeddingProvider,
    mock_llm_provider: ILLMProvider,
) -> ChatService:
    return ChatService(
        chat_store,
        document_store,
        RetrievalService(mock_embedding_provider, document_store),
        AnswerSynthesizer(mock_llm_provider),
    )


@pytest.fixture
def user_service(identity_provider: FakeIdentityProvider, user_store: InMemoryUserStore) -> UserService:
    return UserService(identity_provider, user_store)


@pytest.fixture
def sample_text() -> str:
    """Roughly 450 characters of prose: five chunks at size 100 / overlap 20."""
    sentences = [
        "The mitochondria is the powerhouse of the cell.",
        "Photosynthesis converts light energy into chemical energy.",
        "Ribosomes assemble proteins from amino acids.",
        "The nucleus stores the genetic material of the cell.",
        "Cell membranes regulate what enters and leaves the cell.",
        "Enzymes lower the activation energy of reactions.",
        "DNA replication happens during the S phase.",
        "Lysosomes break down waste inside the cell.",
    ]
    return " ".join(sentences)
