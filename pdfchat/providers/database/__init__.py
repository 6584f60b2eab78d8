"""Relational persistence: SQLAlchemy async engine, ORM and stores."""

from pdfchat.providers.database.engine import create_engine, create_session_factory, init_db
from pdfchat.providers.database.postgres_chat_store import PostgresChatStore, PostgresUserStore
from pdfchat.providers.database.postgres_document_store import PostgresDocumentStore

__all__ = [
    "PostgresChatStore",
    "PostgresDocumentStore",
    "PostgresUserStore",
    "create_engine",
    "create_session_factory",
    "init_db",
]
