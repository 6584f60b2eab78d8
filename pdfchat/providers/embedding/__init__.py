"""Embedding provider implementations.

Embeddings convert text into numeric vectors that capture semantic meaning.
Chunk vectors are stored in PostgreSQL (pgvector) and compared by L2
distance at question time.
"""

from pdfchat.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]
