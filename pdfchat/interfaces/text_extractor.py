"""Abstract base class for PDF text extraction."""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: PyMuPDFTextExtractor
# Located in: pdfchat/providers/extraction/
class ITextExtractor(ABC):
    """Contract for turning uploaded PDF bytes into raw text."""

    @abstractmethod
    async def extract(self, data: bytes) -> str:
        """Return the concatenated text of every page in reading order.

        The result is raw: callers normalize it before chunking.

        Raises
        ------
        pdfchat.utils.errors.ExtractionError
            If *data* is not a readable PDF.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"pymupdf"``."""
