"""Answer synthesis over retrieved document context.

Builds a single instruction prompt from the retrieved context and the
question and asks the chat model for an answer at low temperature.  The
sentinel ``"I don't know"`` is returned when the context is empty, when the
model call fails, or when it returns nothing.
"""

from __future__ import annotations

import structlog

from pdfchat.interfaces.llm_provider import ILLMProvider
from pdfchat.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)

UNKNOWN_ANSWER = "I don't know"


class AnswerSynthesizer:
    """Produces a grounded answer from context + question via the LLM."""

    _SYSTEM_PROMPT = "You are a document analysis assistant."

    _USER_PROMPT_TEMPLATE = (
        "Use the provided context from the document to answer the question.\n"
        "- If the answer is explicitly in the text, return it clearly.\n"
        "- If the answer can be inferred (for example by counting, summarizing "
        "or combining information from several chunks), do so.\n"
        "- Only if the context is unrelated to the question, reply exactly: "
        f'"{UNKNOWN_ANSWER}".\n\n'
        "Context:\n{context}\n\n"
        "Question: {question}\n\n"
        "Answer:"
    )

    def __init__(
        self,
        llm: ILLMProvider,
        temperature: float = 0.2,
        max_tokens: int = 1500,
    ) -> None:
        self._llm = llm
        self._temperature = temperature
        self._max_tokens = max_tokens

    def build_prompt(self, context: str, question: str) -> str:
        return self._USER_PROMPT_TEMPLATE.format(context=context, question=question)

    async def answer(self, context: str, question: str) -> str:
        """Return the model's answer, or ``"I don't know"``."""
        if not context.strip():
            logger.info("answer_skipped_empty_context")
            return UNKNOWN_ANSWER

        try:
            text = await self._llm.complete(
                system_prompt=self._SYSTEM_PROMPT,
                user_prompt=self.build_prompt(context, question),
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        except LLMError as exc:
            logger.warning(
                "answer_generation_failed",
                error=exc.message,
                provider=exc.provider_name,
            )
            return UNKNOWN_ANSWER

        answer = (text or "").strip()
        return answer or UNKNOWN_ANSWER
