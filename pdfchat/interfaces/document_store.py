"""Abstract base class for document and chunk-vector persistence.

Covers the write path of ingestion (one document row, then one row per
embedded chunk) and the read path of retrieval (k-nearest chunks of one
document).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pdfchat.models.chat import Document
from pdfchat.models.rag import RetrievedChunk


# Concrete implementations: PostgresDocumentStore (pgvector)
# Located in: pdfchat/providers/database/
class IDocumentStore(ABC):
    """Contract for storing documents and searching their chunk vectors."""

    @abstractmethod
    async def create_document(self, user_id: str, file_name: str, file_path: str) -> Document:
        """Insert and commit a document row; return it with its generated id."""

    @abstractmethod
    async def get_document(self, document_id: str) -> Document | None:
        """Return the document, or ``None`` if it does not exist."""

    @abstractmethod
    async def add_chunk(
        self,
        document_id: str,
        chunk_index: int,
        text: str,
        metadata: dict[str, Any],
        embedding: list[float],
    ) -> str:
        """Insert and commit one chunk row; return its id.

        Each call is its own transaction so a later failure never rolls
        back an earlier chunk.

        Raises
        ------
        pdfchat.utils.errors.DimensionMismatchError
            If ``len(embedding)`` differs from the store's dimension.
        pdfchat.utils.errors.DatabaseError
            If the insert fails.
        """

    @abstractmethod
    async def nearest_chunks(
        self,
        document_id: str,
        embedding: list[float],
        k: int,
    ) -> list[RetrievedChunk]:
        """Return up to *k* chunks of *document_id* nearest to *embedding*.

        Results are ordered by ascending L2 distance.  A document with no
        chunks yields an empty list.

        Raises
        ------
        pdfchat.utils.errors.DimensionMismatchError
            If ``len(embedding)`` differs from the store's dimension.
        """

    @abstractmethod
    async def count_chunks(self, document_id: str) -> int:
        """Return the number of persisted chunks for *document_id*."""
