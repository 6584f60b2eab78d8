"""Chat-completion adapter for OpenAI (or any OpenAI-compatible server).

Answers and chat titles both go through :meth:`OpenAILLMProvider.complete`:
one system message, one user message, plain text back.
"""

from __future__ import annotations

import structlog

from pdfchat.config.settings import Settings
from pdfchat.interfaces.llm_provider import ILLMProvider
from pdfchat.providers.openai_client import (
    build_client,
    provider_label,
    require_client,
    translate_errors,
)
from pdfchat.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)

# Must stay well below the ingestion timeout.
_REQUEST_TIMEOUT = 25.0


class OpenAILLMProvider(ILLMProvider):
    """``gpt-4o`` by default; override with ``OPENAI_CHAT_MODEL``."""

    def __init__(self, settings: Settings) -> None:
        self._client = build_client(settings, _REQUEST_TIMEOUT)
        self._model = settings.openai_chat_model or "gpt-4o"
        self._label = provider_label(settings)

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 1500,
    ) -> str:
        client = require_client(self._client, LLMError, self._label)
        with translate_errors(LLMError, self._label):
            response = await client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )

        content = response.choices[0].message.content if response.choices else None
        if content is None:
            raise LLMError(message=f"{self._model} returned no content", provider_name=self._label)

        usage = response.usage
        logger.info(
            "chat_completion_done",
            model=self._model,
            provider=self._label,
            prompt_tokens=usage.prompt_tokens if usage else None,
            completion_tokens=usage.completion_tokens if usage else None,
        )
        return content

    def is_available(self) -> bool:
        """Whether a key is configured; the key itself is not checked."""
        return self._client is not None

    def get_provider_name(self) -> str:
        return self._label

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
