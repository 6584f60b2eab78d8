"""Chat operations: listing, reading and the question/answer round trip.

A question on a chat is handled as:

  1. persist the user message
  2. retrieve the nearest chunks of the chat's document
  3. synthesize an answer from that context
  4. persist the AI message (sources recorded in its metadata)

Each message insert also refreshes the chat's denormalised last-message
fields inside the chat store.
"""

from __future__ import annotations

import structlog

from pdfchat.interfaces.chat_store import IChatStore
from pdfchat.interfaces.document_store import IDocumentStore
from pdfchat.models.chat import (
    Chat,
    ChatDetail,
    ChatExchange,
    DocumentAnswer,
    MessageKind,
    Principal,
)
from pdfchat.services.answer_service import AnswerSynthesizer
from pdfchat.services.retrieval_service import RetrievalService
from pdfchat.utils.errors import InvalidInputError, NotFoundError

logger = structlog.get_logger(logger_name=__name__)

_MAX_QUESTION_LENGTH = 4000


def _clean_question(question: str) -> str:
    cleaned = (question or "").strip()
    if not cleaned:
        raise InvalidInputError(message="Question is required")
    if len(cleaned) > _MAX_QUESTION_LENGTH:
        raise InvalidInputError(
            message=f"Question exceeds {_MAX_QUESTION_LENGTH} characters"
        )
    return cleaned


class ChatService:
    """Reads chats and answers questions against a chat's document."""

    def __init__(
        self,
        chat_store: IChatStore,
        document_store: IDocumentStore,
        retrieval: RetrievalService,
        answerer: AnswerSynthesizer,
    ) -> None:
        self._chat_store = chat_store
        self._document_store = document_store
        self._retrieval = retrieval
        self._answerer = answerer

    async def list_chats(self, principal: Principal) -> list[Chat]:
        return await self._chat_store.list_chats(principal.user_id)

    async def get_chat(self, principal: Principal, chat_id: str) -> ChatDetail:
        detail = await self._chat_store.get_chat(chat_id, principal.user_id)
        if detail is None:
            raise NotFoundError(message="Chat not found")
        return detail

    async def send_message(
        self,
        principal: Principal,
        chat_id: str,
        question: str,
        k: int | None = None,
    ) -> ChatExchange:
        """Record *question*, answer it from the chat's document, record the answer."""
        cleaned = _clean_question(question)
        detail = await self.get_chat(principal, chat_id)
        document_id = detail.chat.document_id

        user_message = await self._chat_store.add_message(chat_id, MessageKind.USER, cleaned)
        retrieval = await self._retrieval.retrieve(document_id, cleaned, k)
        answer = await self._answerer.answer(retrieval.context, cleaned)

        ai_message = await self._chat_store.add_message(
            chat_id,
            MessageKind.AI,
            answer,
            metadata={
                "sources": [
                    {"chunk_id": s.chunk_id, "chunk_index": s.chunk_index, "distance": s.distance}
                    for s in retrieval.sources
                ],
            },
        )
        logger.info(
            "chat_message_answered",
            chat_id=chat_id,
            sources=len(retrieval.sources),
            answered=bool(retrieval.sources),
        )
        return ChatExchange(
            user_message=user_message,
            ai_message=ai_message,
            sources=retrieval.sources,
        )

    async def query_document(
        self,
        principal: Principal,
        document_id: str,
        question: str,
        k: int | None = None,
    ) -> DocumentAnswer:
        """Answer a question about one of the caller's documents without a chat."""
        cleaned = _clean_question(question)
        document = await self._document_store.get_document(document_id)
        if document is None or document.user_id != principal.user_id:
            raise NotFoundError(message="Document not found")

        retrieval = await self._retrieval.retrieve(document.id, cleaned, k)
        answer = await self._answerer.answer(retrieval.context, cleaned)
        return DocumentAnswer(answer=answer, sources=retrieval.sources)
