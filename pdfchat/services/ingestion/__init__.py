"""Document ingestion: **chunk -> embed -> store**.

1. **Chunk** (chunker.py / TextChunker) -- Splits normalised document text
   into fixed-size character windows with overlap, preserving source order.

2. **Embed + store** (embedding_orchestrator.py / EmbeddingOrchestrator) --
   Embeds each chunk via IEmbeddingProvider and persists it through
   IDocumentStore, tolerating per-chunk failures.

The IngestionCoordinator in ``pdfchat.pipeline`` drives both stages.
"""

from pdfchat.services.ingestion.chunker import TextChunker
from pdfchat.services.ingestion.embedding_orchestrator import EmbeddingOrchestrator

__all__ = [
    "EmbeddingOrchestrator",
    "TextChunker",
]
