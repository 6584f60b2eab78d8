"""Abstract base classes for chat, message and user persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pdfchat.models.chat import Chat, ChatDetail, Message, MessageKind, User, UserProfile


# Concrete implementations: PostgresChatStore
# Located in: pdfchat/providers/database/
class IChatStore(ABC):
    """Contract for chats bound to a document and their messages."""

    @abstractmethod
    async def create_chat(self, user_id: str, document_id: str, title: str) -> Chat:
        """Insert and commit a chat row for *document_id*."""

    @abstractmethod
    async def add_message(
        self,
        chat_id: str,
        kind: MessageKind,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> Message:
        """Insert a message and update the chat's ``last_message_*`` fields.

        Both writes happen in one transaction.

        Raises
        ------
        pdfchat.utils.errors.NotFoundError
            If *chat_id* does not exist.
        """

    @abstractmethod
    async def list_chats(self, user_id: str) -> list[Chat]:
        """Return the user's chats, most recently active first."""

    @abstractmethod
    async def get_chat(self, chat_id: str, user_id: str) -> ChatDetail | None:
        """Return the chat with its document and messages (newest first).

        Returns ``None`` when the chat does not exist or belongs to another
        user.
        """


# Concrete implementations: PostgresUserStore
# Located in: pdfchat/providers/database/
class IUserStore(ABC):
    """Contract for the local mirror of identity-provider users."""

    @abstractmethod
    async def upsert_user(self, profile: UserProfile) -> User:
        """Insert or update the user keyed by ``profile.external_id``."""

    @abstractmethod
    async def get_user(self, external_id: str) -> User | None:
        """Return the user with this identity-provider id, if synced."""
