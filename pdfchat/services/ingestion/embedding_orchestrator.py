"""Per-chunk embedding with partial-failure isolation.

For each chunk, in index order, the orchestrator asks the embedding
provider for a vector and then persists ``(document, index, text,
metadata, vector)`` through the document store.  Each chunk is its own
unit of work: an exception while embedding or persisting chunk *i* is
logged and skipped, and chunk *i+1* is attempted next.  Rows already
committed are never rolled back.

Chunks are processed in batches (default 5) with a short pause between
batches.  Batching only paces outgoing calls; it does not change ordering
or results.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable

import structlog

from pdfchat.interfaces.document_store import IDocumentStore
from pdfchat.interfaces.embedding_provider import IEmbeddingProvider
from pdfchat.models.pipeline import EmbeddingReport
from pdfchat.models.rag import TextChunk
from pdfchat.utils.concurrency import CancellationToken, batched

logger = structlog.get_logger(logger_name=__name__)

# Called after each chunk is persisted with (chunk_index, succeeded_so_far, total).
ChunkCallback = Callable[[int, int, int], "Awaitable[None] | None"]


class EmbeddingOrchestrator:
    """Embeds and persists chunks one at a time, tolerating individual failures.

    Parameters
    ----------
    embedding_provider:
        Produces one vector per chunk text.
    document_store:
        Persists each embedded chunk in its own transaction.
    batch_size:
        Chunks per batch before the inter-batch pause.
    batch_pause:
        Seconds to sleep between batches.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        document_store: IDocumentStore,
        batch_size: int = 5,
        batch_pause: float = 0.2,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._embedding_provider = embedding_provider
        self._document_store = document_store
        self._batch_size = batch_size
        self._batch_pause = batch_pause

    async def embed_chunks(
        self,
        document_id: str,
        chunks: list[TextChunk],
        metadata: dict[str, Any] | None = None,
        *,
        on_chunk: ChunkCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> EmbeddingReport:
        """Embed and persist *chunks* for *document_id*.

        Parameters
        ----------
        document_id:
            Target document; every row references it.
        chunks:
            Chunks in index order.
        metadata:
            Copied into every chunk row (e.g. ``{"source": file_name}``).
        on_chunk:
            Invoked after each successfully persisted chunk.  May be sync
            or async.  Errors raised by the callback propagate.
        cancel_token:
            Checked before every chunk; once cancelled, no further chunk is
            started and the report is marked ``cancelled``.

        Returns
        -------
        EmbeddingReport
            Attempted and succeeded counts plus the indices that failed.
        """
        total = len(chunks)
        attempted = 0
        succeeded = 0
        failed: list[int] = []
        cancelled = False

        batches = batched(chunks, self._batch_size)
        for batch_no, batch in enumerate(batches):
            for chunk in batch:
                if cancel_token is not None and cancel_token.cancelled:
                    cancelled = True
                    break
                attempted += 1
                try:
                    vector = await self._embedding_provider.embed_single(chunk.text)
                    await self._document_store.add_chunk(
                        document_id,
                        chunk.index,
                        chunk.text,
                        dict(metadata or {}),
                        vector,
                    )
                except Exception as exc:  # noqa: BLE001
                    failed.append(chunk.index)
                    logger.warning(
                        "chunk_embedding_failed",
                        document_id=document_id,
                        chunk_index=chunk.index,
                        error_type=type(exc).__name__,
                        error=str(exc),
                    )
                    continue

                succeeded += 1
                if on_chunk is not None:
                    result = on_chunk(chunk.index, succeeded, total)
                    if inspect.isawaitable(result):
                        await result

            if cancelled:
                break
            if self._batch_pause > 0 and batch_no < len(batches) - 1:
                await asyncio.sleep(self._batch_pause)

        logger.info(
            "embedding_complete",
            document_id=document_id,
            total=total,
            attempted=attempted,
            succeeded=succeeded,
            failed=len(failed),
            cancelled=cancelled,
        )
        return EmbeddingReport(
            attempted=attempted,
            succeeded=succeeded,
            failed_indices=failed,
            cancelled=cancelled,
        )
