"""PDF text extraction adapters."""

from pdfchat.providers.extraction.pymupdf_extractor import PyMuPDFTextExtractor

__all__ = ["PyMuPDFTextExtractor"]
