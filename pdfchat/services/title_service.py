"""Best-effort chat title generation.

Summarises the first chunk of a document into a short title.  Failure is a
normal outcome here: the result says whether a title was produced and the
caller substitutes the file name when it was not.
"""

from __future__ import annotations

import re

import structlog

from pdfchat.interfaces.llm_provider import ILLMProvider
from pdfchat.models.pipeline import TitleOutcome
from pdfchat.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)

_QUOTES = "\"'`“”‘’"


class TitleService:
    """Summarises a text excerpt into a chat title."""

    _SYSTEM_PROMPT = (
        "You write concise titles for documents. Reply with the title only: "
        "at most eight words, no quotes, no trailing punctuation."
    )

    def __init__(
        self,
        llm: ILLMProvider,
        temperature: float = 0.2,
        max_tokens: int = 30,
        max_length: int = 80,
    ) -> None:
        self._llm = llm
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._max_length = max_length

    def clean(self, raw: str) -> str:
        """First line, whitespace collapsed, wrapping quotes and trailing dots removed."""
        lines = raw.strip().splitlines()
        title = re.sub(r"\s+", " ", lines[0] if lines else "").strip()
        if title.lower().startswith("title:"):
            title = title[len("title:"):].strip()
        title = title.strip(_QUOTES).rstrip(".").strip()
        if len(title) > self._max_length:
            title = title[: self._max_length].rsplit(" ", 1)[0].rstrip()
        return title

    async def summarize(self, excerpt: str) -> TitleOutcome:
        if not excerpt.strip():
            return TitleOutcome(error="empty excerpt")
        try:
            raw = await self._llm.complete(
                system_prompt=self._SYSTEM_PROMPT,
                user_prompt=f"Document excerpt:\n{excerpt}\n\nTitle:",
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        except LLMError as exc:
            logger.warning("title_generation_failed", error=exc.message)
            return TitleOutcome(error=exc.message)

        title = self.clean(raw or "")
        if not title:
            return TitleOutcome(error="empty title")
        return TitleOutcome(title=title)


def fallback_title(file_name: str) -> str:
    """The uploaded file name, or a placeholder when the client sent none."""
    return file_name.strip() or "Untitled document"
