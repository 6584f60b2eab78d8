"""Ingestion pipeline models: states, progress events, reports, config.

``IngestionState`` is the state machine the coordinator
(``pdfchat/pipeline/coordinator.py``) walks for one upload.  Each state
transition emits a :class:`ProgressEvent` onto a progress channel
(``pdfchat/pipeline/progress_channel.py``); the SSE route serialises those
events as ``data:`` frames.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from pdfchat.models.chat import Chat, ChatDetail, Document


# ---------------------------------------------------------------------------
# IngestionState -- the coordinator's state machine.
# ---------------------------------------------------------------------------
class IngestionState(str, Enum):  # noqa: UP042
    """States of one document ingestion.

    Forward path:
        RECEIVED → UPLOADING → PARSING → DOCUMENT_CREATED → EMBEDDING →
        CHAT_CREATED → COMPLETE

    FAILED is reachable from any non-terminal state; ABANDONED is entered
    when the consumer disconnects.  COMPLETE, FAILED and ABANDONED are
    absorbing.
    """

    RECEIVED = "RECEIVED"
    UPLOADING = "UPLOADING"
    PARSING = "PARSING"
    DOCUMENT_CREATED = "DOCUMENT_CREATED"
    EMBEDDING = "EMBEDDING"
    CHAT_CREATED = "CHAT_CREATED"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"
    ABANDONED = "ABANDONED"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset(
    {IngestionState.COMPLETE, IngestionState.FAILED, IngestionState.ABANDONED}
)


# ---------------------------------------------------------------------------
# ProgressEvent -- one frame on the progress stream.
# ---------------------------------------------------------------------------
class ProgressError(BaseModel):
    """Failure payload carried by a terminal failure event."""

    model_config = ConfigDict(frozen=True)

    message: str = Field(description="Human-readable reason.")
    detail: str = Field(description="Machine-readable error type and text.")
    code: str = Field(default="INGESTION_FAILED")


class ProgressEvent(BaseModel):
    """A transient status update for one in-flight ingestion.

    Intermediate events carry only ``message`` and ``progress``.  The single
    terminal event additionally carries ``success`` and either ``chat`` or
    ``error``.
    """

    model_config = ConfigDict(frozen=True)

    message: str
    progress: int = Field(ge=0, le=100)
    state: IngestionState
    success: bool | None = None
    chat: dict[str, Any] | None = None
    error: ProgressError | None = None

    @property
    def is_terminal(self) -> bool:
        return self.success is not None

    def to_wire(self) -> dict[str, Any]:
        """Serialise for the SSE ``data:`` frame, dropping unset terminal fields."""
        payload: dict[str, Any] = {"message": self.message, "progress": self.progress}
        if self.is_terminal:
            payload["success"] = self.success
            if self.chat is not None:
                payload["chat"] = self.chat
            if self.error is not None:
                payload["error"] = self.error.model_dump()
        return payload


# ---------------------------------------------------------------------------
# Reports and outcomes passed between pipeline stages.
# ---------------------------------------------------------------------------
class EmbeddingReport(BaseModel):
    """Attempted vs. succeeded counts from one embedding run."""

    model_config = ConfigDict(frozen=True)

    attempted: int = 0
    succeeded: int = 0
    failed_indices: list[int] = Field(default_factory=list)
    cancelled: bool = False

    @property
    def failed(self) -> int:
        return len(self.failed_indices)


class TitleOutcome(BaseModel):
    """Result of the best-effort title summarisation.

    ``title`` is None when summarisation failed; ``error`` then says why.
    """

    model_config = ConfigDict(frozen=True)

    title: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.title is not None


class IngestionRequest(BaseModel):
    """Everything the coordinator needs to ingest one uploaded file."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    file_name: str
    content_type: str = "application/pdf"
    data: bytes = b""


class IngestionOutcome(BaseModel):
    """Final result of one coordinator run."""

    model_config = ConfigDict(frozen=True)

    state: IngestionState
    document: Document | None = None
    chat: Chat | None = None
    detail: ChatDetail | None = None
    report: EmbeddingReport | None = None
    error: ProgressError | None = None
    status_code: int = Field(default=200, description="HTTP status the sync endpoint maps this outcome to.")

    @property
    def succeeded(self) -> bool:
        return self.state is IngestionState.COMPLETE


# ---------------------------------------------------------------------------
# Typed view over the ``ingestion`` / ``retrieval`` / ``answer`` config.
# ---------------------------------------------------------------------------
class PipelineConfig(BaseModel):
    """Pipeline tunables resolved from ``config/config.yaml``."""

    model_config = ConfigDict(frozen=True)

    chunk_size: int = Field(default=1200, gt=0)
    chunk_overlap: int = Field(default=200, ge=0)
    embedding_batch_size: int = Field(default=5, gt=0)
    embedding_batch_pause_seconds: float = Field(default=0.2, ge=0.0)
    timeout_seconds: float = Field(default=300.0, gt=0.0)
    welcome_message: str = "How can I assist you?"
    default_k: int = Field(default=5, gt=0)
    max_k: int = Field(default=20, gt=0)
    answer_temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    answer_max_tokens: int = Field(default=1500, gt=0)
    title_temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    title_max_tokens: int = Field(default=30, gt=0)
    title_max_length: int = Field(default=80, gt=0)
