"""Custom exception hierarchy for pdfchat.

All application exceptions inherit from :class:`PdfChatError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "supabase", "postgres") caused the failure.

The hierarchy is organized by the layer that raises it:

    PdfChatError  (base -- catch-all for any pdfchat error)
    +-- InvalidInputError        (bad request payload / missing file)
    +-- AuthenticationError      (missing or invalid bearer token)
    +-- NotFoundError            (unknown or foreign chat / document)
    +-- ExtractionError          (PDF text extraction)
    +-- StorageError             (object storage upload)
    +-- EmbeddingError           (embedding API call)
    +-- LLMError                 (chat-completion API call)
    +-- RetrievalError           (question embedding / vector search)
    |   +-- DimensionMismatchError
    +-- DatabaseError            (relational store failure)
    +-- PipelineError            (ingestion orchestration)
    +-- ConfigurationError       (startup / missing config)

Each class declares the HTTP status the API layer maps it to via
``status_code``; the middleware never needs a lookup table.
"""

import re


class PdfChatError(Exception):
    """Base exception for all pdfchat errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai] Rate limit exceeded``.
    """

    status_code: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Client errors (4xx)
# ---------------------------------------------------------------------------

class InvalidInputError(PdfChatError):
    """Raised when a request payload is missing or malformed."""

    status_code = 400

    def __init__(
        self,
        message: str = "Invalid request",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class AuthenticationError(PdfChatError):
    """Raised when the caller cannot be authenticated."""

    status_code = 401

    def __init__(
        self,
        message: str = "Unauthorized",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class NotFoundError(PdfChatError):
    """Raised when a chat or document does not exist for the caller."""

    status_code = 404

    def __init__(
        self,
        message: str = "Resource not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Ingestion errors
# ---------------------------------------------------------------------------

class ExtractionError(PdfChatError):
    """Raised when text cannot be extracted from an uploaded PDF."""

    status_code = 422

    def __init__(
        self,
        message: str = "PDF text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StorageError(PdfChatError):
    """Raised when uploading the original file to object storage fails."""

    status_code = 502

    def __init__(
        self,
        message: str = "Object storage upload failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(PdfChatError):
    """Raised when the embedding API call fails or returns a bad vector."""

    status_code = 502

    def __init__(
        self,
        message: str = "Embedding request failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(PdfChatError):
    """Raised when an LLM API call fails or returns an unusable response."""

    status_code = 502

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Retrieval / persistence errors
# ---------------------------------------------------------------------------

class RetrievalError(PdfChatError):
    """Raised when the question cannot be embedded or the vector search fails."""

    status_code = 502

    def __init__(
        self,
        message: str = "Retrieval failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DimensionMismatchError(RetrievalError):
    """Raised when a query vector's length differs from the stored dimension."""

    status_code = 500

    def __init__(
        self,
        message: str = "Embedding dimension mismatch",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DatabaseError(PdfChatError):
    """Raised when a relational store operation fails."""

    def __init__(
        self,
        message: str = "Database operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Orchestration / configuration errors
# ---------------------------------------------------------------------------

class PipelineError(PdfChatError):
    """Raised when ingestion orchestration fails (invalid state transition, timeout)."""

    def __init__(
        self,
        message: str = "Pipeline orchestration failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(PdfChatError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


def error_code(exc: BaseException) -> str:
    """Machine-readable code from the exception class: ``ExtractionError`` → ``EXTRACTION_ERROR``."""
    return re.sub(r"(?<!^)(?=[A-Z][a-z])", "_", type(exc).__name__).upper()
