"""LLM provider adapters.

    - OpenAILLMProvider -- gpt-4o (also supports OpenAI-compatible APIs)

main.py builds the provider once at startup and stores it on ``app.state``.
"""

from pdfchat.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OpenAILLMProvider"]
