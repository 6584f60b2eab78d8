"""Fixed-size character chunking with overlapping windows.

Splits normalized document text into :class:`~pdfchat.models.rag.TextChunk`
windows sized for the embedding model (1200 characters with a
200-character overlap by default).

Window *k* starts at offset ``k * (chunk_size - overlap)`` and runs for
``min(chunk_size, remaining)`` characters.  Chunking stops after the
window that reaches the end of the text, so:

* the last chunk always ends exactly at ``len(text)``;
* a text no longer than ``chunk_size`` yields exactly one chunk;
* a longer text yields ``ceil((len(text) - overlap) / (chunk_size - overlap))``
  chunks, none lying entirely inside its predecessor.

Character offsets (not tokens) keep the policy deterministic and
independent of any tokenizer, so a given input always produces the same
rows.
"""

from __future__ import annotations

import structlog

from pdfchat.models.rag import TextChunk

logger = structlog.get_logger(logger_name=__name__)


class TextChunker:
    """Splits text into overlapping fixed-width character windows.

    Parameters
    ----------
    chunk_size:
        Maximum characters per chunk (default 1200).
    overlap:
        Characters shared by consecutive chunks (default 200).  Must be
        smaller than ``chunk_size`` so every window advances.

    Raises
    ------
    ValueError
        If ``chunk_size <= 0``, ``overlap < 0`` or ``chunk_size <= overlap``.
    """

    def __init__(self, chunk_size: int = 1200, overlap: int = 200) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if overlap < 0:
            raise ValueError(f"overlap must be non-negative, got {overlap}")
        if chunk_size <= overlap:
            raise ValueError(
                f"chunk_size ({chunk_size}) must be greater than overlap ({overlap})"
            )
        self._chunk_size = chunk_size
        self._overlap = overlap

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    @property
    def stride(self) -> int:
        """Distance between consecutive chunk start offsets."""
        return self._chunk_size - self._overlap

    def chunk(self, text: str) -> list[TextChunk]:
        """Split *text* into overlapping :class:`TextChunk` windows.

        Parameters
        ----------
        text:
            The full normalized text.

        Returns
        -------
        list[TextChunk]
            Chunks in source order with contiguous indices from 0.  Empty
            input returns an empty list.
        """
        chunks: list[TextChunk] = []
        length = len(text)
        start = 0
        while start < length:
            end = min(start + self._chunk_size, length)
            chunks.append(
                TextChunk(index=len(chunks), start=start, end=end, text=text[start:end])
            )
            if end == length:
                break
            start += self.stride

        logger.debug(
            "chunking_complete",
            num_chunks=len(chunks),
            text_length=length,
            chunk_size=self._chunk_size,
            overlap=self._overlap,
        )
        return chunks
