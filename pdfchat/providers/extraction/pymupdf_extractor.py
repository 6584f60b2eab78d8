"""PDF text extraction using PyMuPDF (fitz).

Reads the uploaded bytes in memory, extracts the text layer page by page
and joins pages with blank lines.  The result is raw: callers run it
through :func:`pdfchat.utils.text_normalizer.normalize_text` before
chunking.

PyMuPDF is synchronous and CPU-bound, so extraction runs in a worker
thread to keep the event loop free for other requests and SSE streams.
"""

from __future__ import annotations

import asyncio

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from pdfchat.interfaces.text_extractor import ITextExtractor
from pdfchat.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)


class PyMuPDFTextExtractor(ITextExtractor):
    """Extracts the embedded text layer of a PDF.

    Scanned PDFs without a text layer yield an empty string; the ingestion
    coordinator treats that as a failure.
    """

    async def extract(self, data: bytes) -> str:
        if not data:
            raise ExtractionError(
                message="Empty file",
                provider_name=self.get_provider_name(),
            )
        return await asyncio.to_thread(self._extract_sync, data)

    def _extract_sync(self, data: bytes) -> str:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except (RuntimeError, ValueError) as exc:
            raise ExtractionError(
                message=f"Could not open PDF: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        try:
            if doc.needs_pass:
                raise ExtractionError(
                    message="PDF is password protected",
                    provider_name=self.get_provider_name(),
                )
            pages = [page.get_text("text") for page in doc]
        finally:
            doc.close()

        logger.info(
            "pdf_text_extracted",
            pages=len(pages),
            characters=sum(len(p) for p in pages),
        )
        return "\n\n".join(pages)

    def get_provider_name(self) -> str:
        return "pymupdf"
