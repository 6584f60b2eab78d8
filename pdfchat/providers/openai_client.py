"""Shared plumbing for the OpenAI adapters.

Both the chat and the embedding adapter talk to the same account (or the
same OpenAI-compatible server when ``OPENAI_BASE_URL`` is set), so client
construction and SDK-error translation live here.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import openai

from pdfchat.config.settings import Settings
from pdfchat.utils.errors import PdfChatError


def build_client(settings: Settings, timeout: float) -> openai.AsyncOpenAI | None:
    """Async client for the configured account, or ``None`` without an API key.

    Callers go through :func:`require_client`, which turns a missing client
    into the provider's own error type at request time.
    """
    if not settings.openai_api_key:
        return None
    client_kwargs: dict = {
        "api_key": settings.openai_api_key,
        "timeout": openai.Timeout(timeout, connect=5.0),
    }
    if settings.openai_base_url:
        client_kwargs["base_url"] = settings.openai_base_url
    return openai.AsyncOpenAI(**client_kwargs)


def require_client(
    client: openai.AsyncOpenAI | None,
    error_cls: type[PdfChatError],
    label: str,
) -> openai.AsyncOpenAI:
    if client is None:
        raise error_cls(message=f"{label} is not configured: set OPENAI_API_KEY", provider_name=label)
    return client


def provider_label(settings: Settings, suffix: str = "") -> str:
    base = "openai-compatible" if settings.openai_base_url else "openai"
    return f"{base}_{suffix}" if suffix else base


@contextmanager
def translate_errors(error_cls: type[PdfChatError], label: str) -> Iterator[None]:
    """Re-raise ``openai`` SDK failures as *error_cls* tagged with *label*."""
    try:
        yield
    except openai.APITimeoutError as exc:
        raise error_cls(message=f"{label} timed out", provider_name=label) from exc
    except openai.APIError as exc:
        raise error_cls(message=f"{label} API error: {exc}", provider_name=label) from exc
