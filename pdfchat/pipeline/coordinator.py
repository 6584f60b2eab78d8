"""Ingestion pipeline coordinator: upload → parse → document → embed → chat.

One :class:`IngestionCoordinator` is built at startup and shared; every
call to :meth:`IngestionCoordinator.run` owns its own :class:`_IngestionRun`
holding the state machine for that upload.

State machine (see :class:`~pdfchat.models.pipeline.IngestionState`)::

    RECEIVED → UPLOADING → PARSING → DOCUMENT_CREATED → EMBEDDING
             → CHAT_CREATED → COMPLETE
    any non-terminal state → FAILED | ABANDONED

Progress checkpoints reported on the channel:

    10  uploading to object storage
    30  extracting text
    50  document row saved
    60  text chunked
    70  embedding started, then 70→90 interpolated per embedded chunk
    95  chat + welcome message created
    100 terminal success

Failure anywhere becomes exactly one terminal failure event (the channel's
state guard enforces "exactly one").  A consumer disconnect abandons the
channel: no further events, no terminal event, and the run stops at the
next checkpoint or is cancelled outright by the caller.  Committed rows
are never rolled back.  A wall-clock ceiling (default five minutes) turns
an overlong run into a terminal failure, never a success.
"""

from __future__ import annotations

import asyncio
import time

import structlog

from pdfchat.interfaces.chat_store import IChatStore
from pdfchat.interfaces.document_store import IDocumentStore
from pdfchat.interfaces.storage_provider import IObjectStorageProvider
from pdfchat.interfaces.text_extractor import ITextExtractor
from pdfchat.models.chat import ChatDetail, Document, MessageKind
from pdfchat.models.pipeline import (
    EmbeddingReport,
    IngestionOutcome,
    IngestionRequest,
    IngestionState,
    PipelineConfig,
    ProgressError,
)
from pdfchat.pipeline.progress_channel import ChannelState, ProgressChannel
from pdfchat.services.ingestion.chunker import TextChunker
from pdfchat.services.ingestion.embedding_orchestrator import EmbeddingOrchestrator
from pdfchat.services.title_service import TitleService, fallback_title
from pdfchat.utils.concurrency import CancellationToken
from pdfchat.utils.errors import (
    ExtractionError,
    InvalidInputError,
    PdfChatError,
    PipelineError,
    error_code,
)
from pdfchat.utils.text_normalizer import normalize_text

logger = structlog.get_logger(logger_name=__name__)

# Allowed forward transitions; FAILED and ABANDONED are reachable from any
# non-terminal state and handled separately.
_TRANSITIONS: dict[IngestionState, IngestionState] = {
    IngestionState.RECEIVED: IngestionState.UPLOADING,
    IngestionState.UPLOADING: IngestionState.PARSING,
    IngestionState.PARSING: IngestionState.DOCUMENT_CREATED,
    IngestionState.DOCUMENT_CREATED: IngestionState.EMBEDDING,
    IngestionState.EMBEDDING: IngestionState.CHAT_CREATED,
    IngestionState.CHAT_CREATED: IngestionState.COMPLETE,
}

_EMBED_START = 70
_EMBED_END = 90


class _Abandoned(Exception):
    """Raised inside a run when the consumer has gone away."""


class _IngestionRun:
    """Mutable per-upload state: current state, channel and cancellation."""

    def __init__(
        self,
        request: IngestionRequest,
        channel: ProgressChannel,
        cancel_token: CancellationToken,
    ) -> None:
        self.request = request
        self.channel = channel
        self.cancel_token = cancel_token
        self.state = IngestionState.RECEIVED
        self.document: Document | None = None
        self.report: EmbeddingReport | None = None
        self.started = time.monotonic()

    def check_active(self) -> None:
        if self.cancel_token.cancelled or self.channel.state is ChannelState.ABANDONED:
            raise _Abandoned()

    def advance(self, new_state: IngestionState, message: str, progress: int) -> None:
        """Move to *new_state* and report *progress*."""
        self.check_active()
        if _TRANSITIONS.get(self.state) is not new_state:
            raise PipelineError(
                message=f"Invalid transition {self.state.value} -> {new_state.value}"
            )
        self.state = new_state
        self.channel.emit(message, progress, new_state)

    def report_progress(self, message: str, progress: int) -> None:
        self.check_active()
        self.channel.emit(message, progress, self.state)

    @property
    def elapsed_ms(self) -> float:
        return round((time.monotonic() - self.started) * 1000, 1)


class IngestionCoordinator:
    """Sequences one upload end to end and reports progress on a channel.

    Parameters
    ----------
    storage:
        Stores the original file bytes.
    extractor:
        Turns PDF bytes into raw text.
    document_store / chat_store:
        Persistence for the document, chat and welcome message.
    chunker / orchestrator:
        Chunking policy and per-chunk embed+persist.
    title_service:
        Best-effort summary of the first chunk into a chat title.
    config:
        Timeout and welcome message.
    """

    def __init__(
        self,
        storage: IObjectStorageProvider,
        extractor: ITextExtractor,
        document_store: IDocumentStore,
        chat_store: IChatStore,
        chunker: TextChunker,
        orchestrator: EmbeddingOrchestrator,
        title_service: TitleService,
        config: PipelineConfig | None = None,
    ) -> None:
        self._storage = storage
        self._extractor = extractor
        self._document_store = document_store
        self._chat_store = chat_store
        self._chunker = chunker
        self._orchestrator = orchestrator
        self._title_service = title_service
        self._config = config or PipelineConfig()

    @property
    def timeout_seconds(self) -> float:
        return self._config.timeout_seconds

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(
        self,
        request: IngestionRequest,
        channel: ProgressChannel,
        cancel_token: CancellationToken | None = None,
    ) -> IngestionOutcome:
        """Ingest one upload, reporting on *channel*.

        Never raises for pipeline failures: they are reported as one
        terminal failure event and returned as a FAILED outcome.  Task
        cancellation (client disconnect) propagates as ``CancelledError``
        after the channel has been abandoned.
        """
        run = _IngestionRun(request, channel, cancel_token or CancellationToken())
        log = logger.bind(user_id=request.user_id, file_name=request.file_name)
        log.info("ingestion_started", size=len(request.data))

        try:
            return await asyncio.wait_for(self._execute(run), timeout=self._config.timeout_seconds)
        except asyncio.TimeoutError:
            exc = PipelineError(
                message=f"Upload timed out after {int(self._config.timeout_seconds)}s"
            )
            log.error("ingestion_timed_out", state=run.state.value, elapsed_ms=run.elapsed_ms)
            return self._fail(run, exc, message="Upload timed out")
        except asyncio.CancelledError:
            run.state = IngestionState.ABANDONED
            channel.abandon("cancelled")
            log.info("ingestion_cancelled", elapsed_ms=run.elapsed_ms)
            raise

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _execute(self, run: _IngestionRun) -> IngestionOutcome:
        try:
            return await self._stages(run)
        except _Abandoned:
            run.state = IngestionState.ABANDONED
            run.channel.abandon("client_disconnected")
            logger.info(
                "ingestion_abandoned",
                document_id=run.document.id if run.document else None,
                chunks_persisted=run.report.succeeded if run.report else None,
                elapsed_ms=run.elapsed_ms,
            )
            return IngestionOutcome(
                state=IngestionState.ABANDONED,
                document=run.document,
                report=run.report,
            )
        except PdfChatError as exc:
            return self._fail(run, exc)
        except Exception as exc:  # noqa: BLE001
            logger.exception("ingestion_unexpected_error", state=run.state.value)
            return self._fail(run, exc)

    async def _stages(self, run: _IngestionRun) -> IngestionOutcome:
        request = run.request
        if not request.data:
            raise InvalidInputError(message="No file uploaded")

        # RECEIVED → UPLOADING
        run.advance(IngestionState.UPLOADING, "Uploading file", 10)
        file_path = await self._storage.upload(request.data, request.file_name, request.content_type)

        # UPLOADING → PARSING
        run.advance(IngestionState.PARSING, "Extracting text", 30)
        raw_text = await self._extractor.extract(request.data)
        text = normalize_text(raw_text)
        if not text:
            raise ExtractionError(message="PDF contains no extractable text")

        # PARSING → DOCUMENT_CREATED
        run.check_active()
        run.document = await self._document_store.create_document(
            request.user_id, request.file_name, file_path
        )
        run.advance(IngestionState.DOCUMENT_CREATED, "Document saved", 50)

        chunks = self._chunker.chunk(text)
        run.report_progress(f"Split into {len(chunks)} chunks", 60)

        # DOCUMENT_CREATED → EMBEDDING
        run.advance(IngestionState.EMBEDDING, "Embedding chunks", _EMBED_START)

        def on_chunk(index: int, succeeded: int, total: int) -> None:
            span = _EMBED_END - _EMBED_START
            run.report_progress(
                f"Embedded chunk {succeeded}/{total}",
                _EMBED_START + (span * succeeded) // max(total, 1),
            )

        run.report = await self._orchestrator.embed_chunks(
            run.document.id,
            chunks,
            {"source": request.file_name},
            on_chunk=on_chunk,
            cancel_token=run.cancel_token,
        )
        run.check_active()
        if run.report.succeeded == 0:
            logger.warning("ingestion_no_chunks_embedded", document_id=run.document.id)

        # EMBEDDING → CHAT_CREATED
        title_outcome = await self._title_service.summarize(chunks[0].text)
        title = title_outcome.title if title_outcome.ok else fallback_title(request.file_name)
        run.check_active()
        chat = await self._chat_store.create_chat(request.user_id, run.document.id, title)
        await self._chat_store.add_message(chat.id, MessageKind.AI, self._config.welcome_message)
        detail = await self._chat_store.get_chat(chat.id, request.user_id)
        if detail is None:
            raise PipelineError(message="Chat disappeared after creation")
        run.advance(IngestionState.CHAT_CREATED, "Chat created", 95)

        # CHAT_CREATED → COMPLETE
        run.check_active()
        run.state = IngestionState.COMPLETE
        run.channel.succeed("Upload complete", self.chat_payload(detail))
        logger.info(
            "ingestion_complete",
            document_id=run.document.id,
            chat_id=chat.id,
            chunks=len(chunks),
            embedded=run.report.succeeded,
            failed=run.report.failed,
            title_generated=title_outcome.ok,
            elapsed_ms=run.elapsed_ms,
        )
        return IngestionOutcome(
            state=IngestionState.COMPLETE,
            document=run.document,
            chat=detail.chat,
            detail=detail,
            report=run.report,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def chat_payload(detail: ChatDetail) -> dict:
        """JSON-ready chat payload used by both the stream and the sync endpoint."""
        return detail.model_dump(mode="json")

    def _fail(
        self,
        run: _IngestionRun,
        exc: BaseException,
        message: str | None = None,
    ) -> IngestionOutcome:
        failed_in = run.state
        run.state = IngestionState.FAILED
        if isinstance(exc, PdfChatError):
            reason = exc.message
            status_code = exc.status_code
        else:
            reason = "Internal error"
            status_code = 500
        error = ProgressError(
            message=message or reason,
            detail=f"{type(exc).__name__}: {exc}",
            code=error_code(exc),
        )
        run.channel.fail(message or f"Upload failed: {reason}", error)
        logger.warning(
            "ingestion_failed",
            state=failed_in.value,
            error_type=type(exc).__name__,
            error=str(exc),
            document_id=run.document.id if run.document else None,
            elapsed_ms=run.elapsed_ms,
        )
        return IngestionOutcome(
            state=IngestionState.FAILED,
            document=run.document,
            report=run.report,
            error=error,
            status_code=status_code,
        )

