"""Unit tests for IngestionCoordinator -- stages, progress, failure and abandonment."""

from __future__ import annotations

import asyncio

import pytest

from pdfchat.interfaces.llm_provider import ILLMProvider
from pdfchat.interfaces.storage_provider import IObjectStorageProvider
from pdfchat.models.chat import MessageKind
from pdfchat.models.pipeline import IngestionRequest, IngestionState, PipelineConfig
from pdfchat.pipeline.coordinator import IngestionCoordinator
from pdfchat.pipeline.progress_channel import ChannelState, ProgressChannel
from pdfchat.services.ingestion.chunker import TextChunker
from pdfchat.services.ingestion.embedding_orchestrator import EmbeddingOrchestrator
from pdfchat.services.title_service import TitleService
from pdfchat.utils.concurrency import CancellationToken
from pdfchat.utils.errors import LLMError, StorageError
from tests.conftest import (
    FakeStorageProvider,
    FakeTextExtractor,
    InMemoryChatStore,
    InMemoryDocumentStore,
    MockEmbeddingProvider,
)


def _request(data: bytes, file_name: str = "biology.pdf") -> IngestionRequest:
    return IngestionRequest(user_id="user_alice", file_name=file_name, data=data)


class _SlowStorage(IObjectStorageProvider):
    def __init__(self, delay: float) -> None:
        self.delay = delay

    async def upload(self, data: bytes, filename: str, content_type: str = "application/pdf") -> str:
        await asyncio.sleep(self.delay)
        return "https://storage.test/slow.pdf"

    def get_provider_name(self) -> str:
        return "slow-storage"


class _AbandoningStorage(IObjectStorageProvider):
    """Simulates the client disconnecting while the upload is in flight."""

    def __init__(self, channel: ProgressChannel) -> None:
        self.channel = channel

    async def upload(self, data: bytes, filename: str, content_type: str = "application/pdf") -> str:
        self.channel.abandon("client_disconnected")
        return "https://storage.test/abandoned.pdf"

    def get_provider_name(self) -> str:
        return "abandoning-storage"


class _FailingStorage(IObjectStorageProvider):
    async def upload(self, data: bytes, filename: str, content_type: str = "application/pdf") -> str:
        raise StorageError("bucket missing", provider_name="supabase")

    def get_provider_name(self) -> str:
        return "failing-storage"


def _build(
    llm: ILLMProvider,
    document_store: InMemoryDocumentStore,
    chat_store: InMemoryChatStore,
    config: PipelineConfig,
    *,
    storage: IObjectStorageProvider | None = None,
    embedder: MockEmbeddingProvider | None = None,
) -> IngestionCoordinator:
    return IngestionCoordinator(
        storage=storage or FakeStorageProvider(),
        extractor=FakeTextExtractor(),
        document_store=document_store,
        chat_store=chat_store,
        chunker=TextChunker(config.chunk_size, config.chunk_overlap),
        orchestrator=EmbeddingOrchestrator(embedder or MockEmbeddingProvider(), document_store, batch_pause=0),
        title_service=TitleService(llm),
        config=config,
    )


class TestHappyPath:
    @pytest.mark.asyncio
    async def test_complete_run(
        self,
        coordinator: IngestionCoordinator,
        document_store: InMemoryDocumentStore,
        chat_store: InMemoryChatStore,
        mock_llm_provider: ILLMProvider,
        sample_text: str,
    ) -> None:
        mock_llm_provider.complete.return_value = "Cell Biology Basics"
        channel = ProgressChannel("t1")

        outcome = await coordinator.run(_request(sample_text.encode()), channel)

        assert outcome.succeeded
        assert outcome.status_code == 200
        assert outcome.chat is not None
        assert outcome.chat.title == "Cell Biology Basics"
        expected_chunks = len(TextChunker(100, 20).chunk(sample_text))
        assert await document_store.count_chunks(outcome.document.id) == expected_chunks
        assert outcome.report.succeeded == expected_chunks

        messages = chat_store.messages[outcome.chat.id]
        assert [(m.kind, m.content) for m in messages] == [(MessageKind.AI, "How can I assist you?")]

    @pytest.mark.asyncio
    async def test_progress_monotonic_with_single_terminal(
        self, coordinator: IngestionCoordinator, sample_text: str
    ) -> None:
        channel = ProgressChannel()
        await coordinator.run(_request(sample_text.encode()), channel)

        events = channel.drain()
        progress = [e.progress for e in events]
        assert progress == sorted(progress)
        assert progress[:3] == [10, 30, 50]
        assert progress[-1] == 100
        terminals = [e for e in events if e.is_terminal]
        assert len(terminals) == 1
        assert terminals[0] is events[-1]
        assert terminals[0].success is True
        assert terminals[0].chat["chat"]["title"]
        assert terminals[0].chat["messages"][0]["content"] == "How can I assist you?"
        assert channel.state is ChannelState.CLOSED

    @pytest.mark.asyncio
    async def test_title_failure_falls_back_to_file_name(
        self, coordinator: IngestionCoordinator, mock_llm_provider: ILLMProvider
    ) -> None:
        mock_llm_provider.complete.side_effect = LLMError("down")
        outcome = await coordinator.run(_request(b"some short text", "notes.pdf"), ProgressChannel())

        assert outcome.succeeded
        assert outcome.chat.title == "notes.pdf"

    @pytest.mark.asyncio
    async def test_all_chunks_failing_still_creates_chat(
        self,
        mock_llm_provider: ILLMProvider,
        document_store: InMemoryDocumentStore,
        chat_store: InMemoryChatStore,
        pipeline_config: PipelineConfig,
    ) -> None:
        text = "only chunk"
        coordinator = _build(
            mock_llm_provider,
            document_store,
            chat_store,
            pipeline_config,
            embedder=MockEmbeddingProvider(fail_on={text}),
        )
        outcome = await coordinator.run(_request(text.encode()), ProgressChannel())

        assert outcome.succeeded
        assert outcome.report.succeeded == 0
        assert outcome.report.failed_indices == [0]


class TestFailures:
    @pytest.mark.asyncio
    async def test_empty_upload(
        self, coordinator: IngestionCoordinator, storage_provider: FakeStorageProvider
    ) -> None:
        channel = ProgressChannel()
        outcome = await coordinator.run(_request(b""), channel)

        assert outcome.state is IngestionState.FAILED
        assert outcome.status_code == 400
        assert outcome.error.code == "INVALID_INPUT_ERROR"
        assert storage_provider.uploads == []
        events = channel.drain()
        assert len(events) == 1
        assert events[0].success is False
        assert events[0].progress == 0

    @pytest.mark.asyncio
    async def test_no_extractable_text(
        self, coordinator: IngestionCoordinator, document_store: InMemoryDocumentStore
    ) -> None:
        channel = ProgressChannel()
        outcome = await coordinator.run(_request(b" \n\t \x00 "), channel)

        assert outcome.state is IngestionState.FAILED
        assert outcome.status_code == 422
        assert outcome.document is None
        assert document_store.documents == {}
        terminal = channel.drain()[-1]
        assert terminal.progress == 30
        assert terminal.error.code == "EXTRACTION_ERROR"

    @pytest.mark.asyncio
    async def test_storage_failure(
        self,
        mock_llm_provider: ILLMProvider,
        document_store: InMemoryDocumentStore,
        chat_store: InMemoryChatStore,
        pipeline_config: PipelineConfig,
    ) -> None:
        coordinator = _build(
            mock_llm_provider, document_store, chat_store, pipeline_config, storage=_FailingStorage()
        )
        channel = ProgressChannel()
        outcome = await coordinator.run(_request(b"text"), channel)

        assert outcome.status_code == 502
        assert outcome.error.code == "STORAGE_ERROR"
        assert "bucket missing" in outcome.error.detail
        assert [e.success for e in channel.drain() if e.is_terminal] == [False]

    @pytest.mark.asyncio
    async def test_timeout_is_a_failure_never_a_success(
        self,
        mock_llm_provider: ILLMProvider,
        document_store: InMemoryDocumentStore,
        chat_store: InMemoryChatStore,
    ) -> None:
        config = PipelineConfig(timeout_seconds=0.05, embedding_batch_pause_seconds=0)
        coordinator = _build(
            mock_llm_provider, document_store, chat_store, config, storage=_SlowStorage(delay=1.0)
        )
        channel = ProgressChannel()
        outcome = await coordinator.run(_request(b"text"), channel)

        assert outcome.state is IngestionState.FAILED
        assert outcome.error.message == "Upload timed out"
        assert outcome.error.code == "PIPELINE_ERROR"
        events = channel.drain()
        assert [e.success for e in events if e.is_terminal] == [False]
        assert chat_store.chats == {}


class TestAbandonment:
    @pytest.mark.asyncio
    async def test_disconnect_mid_run_stops_without_terminal_event(
        self,
        mock_llm_provider: ILLMProvider,
        document_store: InMemoryDocumentStore,
        chat_store: InMemoryChatStore,
        pipeline_config: PipelineConfig,
    ) -> None:
        channel = ProgressChannel()
        coordinator = _build(
            mock_llm_provider,
            document_store,
            chat_store,
            pipeline_config,
            storage=_AbandoningStorage(channel),
        )
        outcome = await coordinator.run(_request(b"some text"), channel)

        assert outcome.state is IngestionState.ABANDONED
        assert channel.state is ChannelState.ABANDONED
        assert channel.terminal_event is None
        assert all(not e.is_terminal for e in channel.drain())
        assert document_store.documents == {}
        assert chat_store.chats == {}

    @pytest.mark.asyncio
    async def test_cancel_token_before_start(self, coordinator: IngestionCoordinator) -> None:
        token = CancellationToken()
        token.cancel("client_disconnected")
        channel = ProgressChannel()

        outcome = await coordinator.run(_request(b"text"), channel, token)

        assert outcome.state is IngestionState.ABANDONED
        assert channel.drain() == []

    @pytest.mark.asyncio
    async def test_task_cancellation_abandons_channel(
        self,
        mock_llm_provider: ILLMProvider,
        document_store: InMemoryDocumentStore,
        chat_store: InMemoryChatStore,
        pipeline_config: PipelineConfig,
    ) -> None:
        coordinator = _build(
            mock_llm_provider, document_store, chat_store, pipeline_config, storage=_SlowStorage(delay=5.0)
        )
        channel = ProgressChannel()
        task = asyncio.create_task(coordinator.run(_request(b"text"), channel))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert channel.state is ChannelState.ABANDONED
        assert channel.terminal_event is None


class _DisconnectAfterChunks(InMemoryDocumentStore):
    """Simulates the client going away once ``limit`` chunks are persisted.

    Trips the channel and the token the same way the SSE route does.
    """

    def __init__(self, limit: int) -> None:
        super().__init__()
        self.limit = limit
        self.channel: ProgressChannel | None = None
        self.token: CancellationToken | None = None
        self.emitted_at_disconnect: int | None = None

    async def add_chunk(self, document_id, chunk_index, text, metadata, embedding) -> str:
        chunk_id = await super().add_chunk(document_id, chunk_index, text, metadata, embedding)
        if len(self.chunks[document_id]) == self.limit:
            self.emitted_at_disconnect = self.channel.emitted
            self.channel.abandon("client_disconnected")
            self.token.cancel("client_disconnected")
        return chunk_id


def _letters(length: int) -> str:
    return "".join(chr(ord("a") + i % 26) for i in range(length))


class TestDisconnectDuringEmbedding:
    @pytest.mark.asyncio
    async def test_persisted_chunks_remain_and_nothing_follows(
        self, mock_llm_provider: ILLMProvider
    ) -> None:
        config = PipelineConfig(chunk_size=1200, chunk_overlap=200, embedding_batch_pause_seconds=0)
        store = _DisconnectAfterChunks(limit=2)
        chat_store = InMemoryChatStore(store)
        embedder = MockEmbeddingProvider()
        coordinator = _build(mock_llm_provider, store, chat_store, config, embedder=embedder)
        store.channel = ProgressChannel()
        store.token = CancellationToken()

        # 5000 characters at 1200/200: five chunks.
        outcome = await coordinator.run(_request(_letters(5000).encode()), store.channel, store.token)

        assert outcome.state is IngestionState.ABANDONED
        assert outcome.document is not None
        assert await store.count_chunks(outcome.document.id) == 2
        assert [row[1] for row in store.chunks[outcome.document.id]] == [0, 1]
        assert len(embedder.calls) == 2
        assert store.channel.emitted == store.emitted_at_disconnect
        assert store.channel.terminal_event is None
        assert store.channel.state is ChannelState.ABANDONED
        assert chat_store.chats == {}
        mock_llm_provider.complete.assert_not_called()


class TestEndToEndDefaults:
    @pytest.mark.asyncio
    async def test_3000_characters_at_default_chunking(
        self,
        mock_llm_provider: ILLMProvider,
        document_store: InMemoryDocumentStore,
        chat_store: InMemoryChatStore,
    ) -> None:
        mock_llm_provider.complete.return_value = "The Alphabet Repeated"
        config = PipelineConfig(chunk_size=1200, chunk_overlap=200, embedding_batch_pause_seconds=0)
        coordinator = _build(mock_llm_provider, document_store, chat_store, config)
        text = _letters(3000)
        channel = ProgressChannel()

        outcome = await coordinator.run(_request(text.encode()), channel)

        assert outcome.succeeded
        assert len(document_store.documents) == 1
        rows = document_store.chunks[outcome.document.id]
        assert [row[1] for row in rows] == [0, 1, 2]
        assert [row[2] for row in rows] == [text[0:1200], text[1000:2200], text[2000:3000]]
        assert all(row[3] == {"source": "biology.pdf"} for row in rows)
        assert outcome.report.succeeded == 3

        assert len(chat_store.chats) == 1
        chat = next(iter(chat_store.chats.values()))
        assert chat.title == "The Alphabet Repeated"
        messages = chat_store.messages[chat.id]
        assert [(m.kind, m.content) for m in messages] == [(MessageKind.AI, "How can I assist you?")]
        assert chat.last_message_content == "How can I assist you?"
        assert [e.success for e in channel.drain() if e.is_terminal] == [True]
