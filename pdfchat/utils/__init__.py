"""Utility modules for pdfchat.

Available utility modules (all re-exported here for convenience):

- **errors** -- Domain-specific exception hierarchy rooted at PdfChatError;
  each class carries the HTTP status the API layer maps it to.
- **concurrency** -- Cooperative cancellation token and batching helper
  used by the ingestion pipeline.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **text_normalizer** -- Whitespace and control-character cleanup applied
  to extracted PDF text before chunking.
"""

# -- Domain exception hierarchy --------------------------------------------
from pdfchat.utils.errors import (
    AuthenticationError,
    ConfigurationError,
    DatabaseError,
    DimensionMismatchError,
    EmbeddingError,
    ExtractionError,
    InvalidInputError,
    LLMError,
    NotFoundError,
    PdfChatError,
    PipelineError,
    RetrievalError,
    StorageError,
    error_code,
)

# -- Async concurrency helpers ---------------------------------------------
from pdfchat.utils.concurrency import CancellationToken, batched

# -- Structured logging setup ----------------------------------------------
from pdfchat.utils.logging import configure_logging, get_logger

# -- Text normalization -----------------------------------------------------
from pdfchat.utils.text_normalizer import normalize_text

__all__ = [
    "AuthenticationError",
    "CancellationToken",
    "ConfigurationError",
    "DatabaseError",
    "DimensionMismatchError",
    "EmbeddingError",
    "ExtractionError",
    "InvalidInputError",
    "LLMError",
    "NotFoundError",
    "PdfChatError",
    "PipelineError",
    "RetrievalError",
    "StorageError",
    "batched",
    "configure_logging",
    "error_code",
    "get_logger",
    "normalize_text",
]
