"""PostgreSQL + pgvector implementation of IDocumentStore.

Nearest-neighbour search uses pgvector's ``<->`` (L2 distance) operator
through the SQLAlchemy comparator, so the document id, the query vector and
``k`` all travel as bound parameters.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pdfchat.interfaces.document_store import IDocumentStore
from pdfchat.models.chat import Document
from pdfchat.models.rag import RetrievedChunk
from pdfchat.providers.database.converters import parse_uuid, to_document
from pdfchat.providers.database.orm import EMBEDDING_DIMENSION, ChunkRecord, DocumentRecord
from pdfchat.utils.errors import DatabaseError, DimensionMismatchError
from pdfchat.utils.logging import get_logger

_PROVIDER = "postgres"


def build_nearest_statement(document_id: Any, embedding: list[float], k: int) -> Select:
    """SELECT the *k* chunks of one document nearest to *embedding* (L2)."""
    distance = ChunkRecord.embedding.l2_distance(embedding).label("distance")
    return (
        select(ChunkRecord, distance)
        .where(ChunkRecord.document_id == document_id)
        .order_by(distance)
        .limit(k)
    )


class PostgresDocumentStore(IDocumentStore):
    """Documents and chunk vectors in PostgreSQL via SQLAlchemy async."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dimension: int = EMBEDDING_DIMENSION,
    ) -> None:
        self._session_factory = session_factory
        self._dimension = dimension
        self._logger = get_logger(__name__)

    def _check_dimension(self, embedding: list[float]) -> None:
        if len(embedding) != self._dimension:
            raise DimensionMismatchError(
                message=f"vector has {len(embedding)} dimensions, store expects {self._dimension}",
                provider_name=_PROVIDER,
            )

    async def create_document(self, user_id: str, file_name: str, file_path: str) -> Document:
        async with self._session_factory() as session:
            record = DocumentRecord(user_id=user_id, file_name=file_name, file_path=file_path)
            session.add(record)
            try:
                await session.commit()
            except SQLAlchemyError as exc:
                raise DatabaseError(
                    message=f"Could not create document: {exc}",
                    provider_name=_PROVIDER,
                ) from exc
            self._logger.info("document_created", document_id=str(record.id), file_name=file_name)
            return to_document(record)

    async def get_document(self, document_id: str) -> Document | None:
        doc_uuid = parse_uuid(document_id)
        if doc_uuid is None:
            return None
        async with self._session_factory() as session:
            record = await session.get(DocumentRecord, doc_uuid)
            return to_document(record) if record else None

    async def add_chunk(
        self,
        document_id: str,
        chunk_index: int,
        text: str,
        metadata: dict[str, Any],
        embedding: list[float],
    ) -> str:
        self._check_dimension(embedding)
        doc_uuid = parse_uuid(document_id)
        if doc_uuid is None:
            raise DatabaseError(message=f"Invalid document id {document_id!r}", provider_name=_PROVIDER)
        async with self._session_factory() as session:
            record = ChunkRecord(
                document_id=doc_uuid,
                chunk_index=chunk_index,
                text=text,
                chunk_metadata=metadata,
                embedding=embedding,
            )
            session.add(record)
            try:
                await session.commit()
            except SQLAlchemyError as exc:
                raise DatabaseError(
                    message=f"Could not insert chunk {chunk_index}: {exc}",
                    provider_name=_PROVIDER,
                ) from exc
            return str(record.id)

    async def nearest_chunks(
        self,
        document_id: str,
        embedding: list[float],
        k: int,
    ) -> list[RetrievedChunk]:
        self._check_dimension(embedding)
        doc_uuid = parse_uuid(document_id)
        if doc_uuid is None or k <= 0:
            return []
        stmt = build_nearest_statement(doc_uuid, embedding, k)
        async with self._session_factory() as session:
            try:
                rows = (await session.execute(stmt)).all()
            except SQLAlchemyError as exc:
                raise DatabaseError(
                    message=f"Vector search failed: {exc}",
                    provider_name=_PROVIDER,
                ) from exc
        return [
            RetrievedChunk(
                chunk_id=str(record.id),
                document_id=str(record.document_id),
                chunk_index=record.chunk_index,
                text=record.text,
                metadata=record.chunk_metadata or {},
                distance=float(distance),
            )
            for record, distance in rows
        ]

    async def count_chunks(self, document_id: str) -> int:
        doc_uuid = parse_uuid(document_id)
        if doc_uuid is None:
            return 0
        stmt = select(func.count()).select_from(ChunkRecord).where(ChunkRecord.document_id == doc_uuid)
        async with self._session_factory() as session:
            return int((await session.execute(stmt)).scalar_one())
