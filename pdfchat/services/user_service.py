"""User sync: mirror the identity provider's profile into the local users table."""

from __future__ import annotations

import structlog

from pdfchat.interfaces.chat_store import IUserStore
from pdfchat.interfaces.identity_provider import IIdentityProvider
from pdfchat.models.chat import Principal, User

logger = structlog.get_logger(logger_name=__name__)


class UserService:
    def __init__(self, identity: IIdentityProvider, user_store: IUserStore) -> None:
        self._identity = identity
        self._user_store = user_store

    async def sync(self, principal: Principal) -> User:
        """Fetch the caller's profile and upsert it by external id."""
        profile = await self._identity.get_user_profile(principal.user_id)
        user = await self._user_store.upsert_user(profile)
        logger.info("user_sync_complete", user_id=user.id, external_id=user.external_id)
        return user
