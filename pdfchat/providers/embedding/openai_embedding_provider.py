"""Embedding adapter for OpenAI (or any OpenAI-compatible server).

The configured ``embedding_dimension`` must equal the width of the
``chunks.embedding`` column.  For the ``text-embedding-3-*`` models a
narrower width is requested from the API; for everything else the
returned width is only checked.
"""

from __future__ import annotations

import structlog

from pdfchat.config.settings import Settings
from pdfchat.interfaces.embedding_provider import IEmbeddingProvider
from pdfchat.providers.openai_client import (
    build_client,
    provider_label,
    require_client,
    translate_errors,
)
from pdfchat.utils.concurrency import batched
from pdfchat.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

_REQUEST_TIMEOUT = 20.0
_MAX_INPUTS_PER_REQUEST = 2048

# model -> (native width, accepts the ``dimensions`` parameter)
_KNOWN_MODELS: dict[str, tuple[int, bool]] = {
    "text-embedding-3-small": (1536, True),
    "text-embedding-3-large": (3072, True),
    "text-embedding-ada-002": (1536, False),
}


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """``text-embedding-3-small`` at 1536 dimensions unless configured otherwise."""

    def __init__(self, settings: Settings) -> None:
        self._client = build_client(settings, _REQUEST_TIMEOUT)
        self._model = settings.openai_embedding_model or "text-embedding-3-small"
        native, shortenable = _KNOWN_MODELS.get(self._model, (None, False))
        self._dimension = settings.embedding_dimension or native or 1536
        self._extra: dict = {}
        if shortenable and native != self._dimension:
            self._extra["dimensions"] = self._dimension
        self._label = provider_label(settings, "embedding")

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        client = require_client(self._client, EmbeddingError, self._label)
        vectors: list[list[float]] = []
        for batch in batched(texts, _MAX_INPUTS_PER_REQUEST):
            with translate_errors(EmbeddingError, self._label):
                response = await client.embeddings.create(
                    model=self._model, input=batch, **self._extra
                )
            vectors.extend(item.embedding for item in response.data)
            logger.debug(
                "embedding_batch_done",
                model=self._model,
                inputs=len(batch),
                tokens=response.usage.total_tokens if response.usage else None,
            )

        if len(vectors) != len(texts):
            raise EmbeddingError(
                message=f"sent {len(texts)} inputs, received {len(vectors)} vectors",
                provider_name=self._label,
            )
        bad = next((v for v in vectors if len(v) != self._dimension), None)
        if bad is not None:
            raise EmbeddingError(
                message=f"{self._model} returned width {len(bad)}, column expects {self._dimension}",
                provider_name=self._label,
            )
        return vectors

    async def embed_single(self, text: str) -> list[float]:
        (vector,) = await self.embed([text])
        return vector

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return self._label

    def is_available(self) -> bool:
        return self._client is not None

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
