"""pdfchat domain models -- re-exports all public model classes.

    - chat.py     -- users, documents, chats, messages, the authenticated principal
    - pipeline.py -- ingestion states, progress events, reports, tunables
    - rag.py      -- text chunks and retrieval results
"""

from __future__ import annotations

from pdfchat.models.chat import (
    Chat,
    ChatDetail,
    ChatExchange,
    Document,
    DocumentAnswer,
    Message,
    MessageKind,
    Principal,
    User,
    UserProfile,
)
from pdfchat.models.pipeline import (
    EmbeddingReport,
    IngestionOutcome,
    IngestionRequest,
    IngestionState,
    PipelineConfig,
    ProgressError,
    ProgressEvent,
    TitleOutcome,
)
from pdfchat.models.rag import RetrievalResult, RetrievedChunk, TextChunk

__all__ = [
    "Chat",
    "ChatDetail",
    "ChatExchange",
    "Document",
    "DocumentAnswer",
    "EmbeddingReport",
    "IngestionOutcome",
    "IngestionRequest",
    "IngestionState",
    "Message",
    "MessageKind",
    "PipelineConfig",
    "Principal",
    "ProgressError",
    "ProgressEvent",
    "RetrievalResult",
    "RetrievedChunk",
    "TextChunk",
    "TitleOutcome",
    "User",
    "UserProfile",
]
