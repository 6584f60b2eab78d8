"""Abstract base class for the external identity provider."""

from __future__ import annotations

from abc import ABC, abstractmethod

from pdfchat.models.chat import Principal, UserProfile


# Concrete implementations: ClerkIdentityProvider
# Located in: pdfchat/providers/identity/
class IIdentityProvider(ABC):
    """Contract for verifying bearer tokens and loading user profiles."""

    @abstractmethod
    async def verify_token(self, token: str) -> Principal:
        """Validate a session token and return the authenticated principal.

        Raises
        ------
        pdfchat.utils.errors.AuthenticationError
            If the token is malformed, expired or signed by an unknown key.
        """

    @abstractmethod
    async def get_user_profile(self, user_id: str) -> UserProfile:
        """Fetch the profile (email, names, raw record) for *user_id*.

        Raises
        ------
        pdfchat.utils.errors.AuthenticationError
            If the user does not exist at the provider.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"clerk"``."""
