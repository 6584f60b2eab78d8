"""Retrieval data models for the pdfchat knowledge base.

A document's extracted text is split into :class:`TextChunk` windows by
``pdfchat/services/ingestion/chunker.py``; each window is embedded and stored
as one row per chunk.  At question time the nearest rows come back as
:class:`RetrievedChunk` objects and are rendered into a prompt context by
``pdfchat/services/retrieval_service.py``.

All models use frozen config so a chunk cannot be mutated between the
moment it is embedded and the moment it is persisted.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# TextChunk -- one window of normalized document text.
# ---------------------------------------------------------------------------
class TextChunk(BaseModel):
    """A contiguous window of a document's normalized text.

    ``start``/``end`` are character offsets into the normalized text, so
    ``text == normalized[start:end]`` always holds.
    """

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0, description="Zero-based position of the chunk in source order.")
    start: int = Field(ge=0, description="Start offset (inclusive) in the normalized text.")
    end: int = Field(ge=0, description="End offset (exclusive) in the normalized text.")
    text: str = Field(description="The chunk's textual content.")

    @property
    def length(self) -> int:
        return self.end - self.start


# ---------------------------------------------------------------------------
# RetrievedChunk -- a stored chunk returned by nearest-neighbour search.
# ---------------------------------------------------------------------------
class RetrievedChunk(BaseModel):
    """A persisted chunk returned from a vector search, nearest first."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    document_id: str
    chunk_index: int = Field(ge=0)
    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    distance: float = Field(
        default=0.0,
        ge=0.0,
        description="L2 distance between the query vector and the chunk embedding.",
    )


# ---------------------------------------------------------------------------
# RetrievalResult -- prompt context plus the rows it was built from.
# ---------------------------------------------------------------------------
class RetrievalResult(BaseModel):
    """Context string for the answer prompt plus its source rows.

    ``context`` is empty exactly when ``sources`` is empty.
    """

    model_config = ConfigDict(frozen=True)

    context: str = ""
    sources: list[RetrievedChunk] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.sources
