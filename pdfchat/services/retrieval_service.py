"""Nearest-neighbour retrieval scoped to a single document.

Embeds the question, asks the document store for the *k* nearest chunks
of one document (L2 distance, nearest first) and renders them as a prompt
context::

    Chunk 1: <text>

    Chunk 2: <text>

A document with no chunks yields an empty context, which the answer
synthesizer turns into "I don't know" without calling the model.
"""

from __future__ import annotations

import structlog

from pdfchat.interfaces.document_store import IDocumentStore
from pdfchat.interfaces.embedding_provider import IEmbeddingProvider
from pdfchat.models.rag import RetrievalResult, RetrievedChunk
from pdfchat.utils.errors import DimensionMismatchError, PdfChatError, RetrievalError

logger = structlog.get_logger(logger_name=__name__)


def build_context(chunks: list[RetrievedChunk]) -> str:
    """Render chunks as ``Chunk N: text`` blocks (1-based) separated by blank lines."""
    return "\n\n".join(f"Chunk {i}: {chunk.text}" for i, chunk in enumerate(chunks, start=1))


class RetrievalService:
    """Finds the chunks of one document most relevant to a question."""

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        document_store: IDocumentStore,
        default_k: int = 5,
        max_k: int = 20,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._document_store = document_store
        self._default_k = default_k
        self._max_k = max_k

    def resolve_k(self, k: int | None) -> int:
        """Clamp a caller-supplied *k* to ``1..max_k``; ``None`` means the default."""
        if k is None:
            return self._default_k
        return max(1, min(int(k), self._max_k))

    async def retrieve(self, document_id: str, question: str, k: int | None = None) -> RetrievalResult:
        """Return the prompt context and source rows for *question*.

        Raises
        ------
        RetrievalError
            If the question cannot be embedded or the search fails.
        DimensionMismatchError
            If the question vector's width differs from the stored vectors.
        """
        limit = self.resolve_k(k)
        try:
            vector = await self._embedding_provider.embed_single(question)
        except PdfChatError as exc:
            raise RetrievalError(
                message=f"Could not embed question: {exc.message}",
                provider_name=exc.provider_name,
            ) from exc

        try:
            sources = await self._document_store.nearest_chunks(document_id, vector, limit)
        except DimensionMismatchError:
            raise
        except PdfChatError as exc:
            raise RetrievalError(
                message=f"Vector search failed: {exc.message}",
                provider_name=exc.provider_name,
            ) from exc

        logger.info(
            "retrieval_complete",
            document_id=document_id,
            k=limit,
            hits=len(sources),
            nearest_distance=sources[0].distance if sources else None,
        )
        return RetrievalResult(context=build_context(sources), sources=sources)
