"""Identity provider adapters."""

from pdfchat.providers.identity.clerk_identity_provider import ClerkIdentityProvider

__all__ = ["ClerkIdentityProvider"]
