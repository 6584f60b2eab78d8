"""Clerk identity provider implementing IIdentityProvider.

Session tokens issued by Clerk are RS256 JWTs.  They are verified locally
against the instance's JWKS document (fetched once over httpx and cached
for ``jwks_ttl`` seconds) with python-jose; no network round-trip is made
per request.  Profile data for user sync comes from the Clerk Backend API
(``GET /users/{id}``) authenticated with the secret key.
"""

from __future__ import annotations

import time
from typing import Any

import httpx
from jose import ExpiredSignatureError, JWTError, jwt

from pdfchat.interfaces.identity_provider import IIdentityProvider
from pdfchat.models.chat import Principal, UserProfile
from pdfchat.utils.errors import AuthenticationError, ConfigurationError
from pdfchat.utils.logging import get_logger

_ALGORITHMS = ["RS256"]


class ClerkIdentityProvider(IIdentityProvider):
    """Verifies Clerk session tokens and loads Clerk user records."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        jwks_url: str,
        secret_key: str,
        api_url: str = "https://api.clerk.com/v1",
        issuer: str | None = None,
        jwks_ttl: float = 3600.0,
    ) -> None:
        self._http = http_client
        self._jwks_url = jwks_url
        self._secret_key = secret_key
        self._api_url = api_url.rstrip("/")
        self._issuer = issuer or None
        self._jwks_ttl = jwks_ttl
        self._jwks: dict[str, Any] | None = None
        self._jwks_fetched_at = 0.0
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # JWKS cache
    # ------------------------------------------------------------------

    async def _get_jwks(self, *, force: bool = False) -> dict[str, Any]:
        fresh = time.monotonic() - self._jwks_fetched_at < self._jwks_ttl
        if self._jwks is not None and fresh and not force:
            return self._jwks
        if not self._jwks_url:
            raise ConfigurationError(
                message="CLERK_JWKS_URL is not configured",
                provider_name=self.get_provider_name(),
            )
        try:
            response = await self._http.get(self._jwks_url)
            response.raise_for_status()
            jwks = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise AuthenticationError(
                message="Could not load signing keys",
                provider_name=self.get_provider_name(),
            ) from exc
        self._jwks = jwks
        self._jwks_fetched_at = time.monotonic()
        self._logger.info("clerk_jwks_refreshed", keys=len(jwks.get("keys", [])))
        return jwks

    @staticmethod
    def _has_kid(jwks: dict[str, Any], kid: str | None) -> bool:
        return any(key.get("kid") == kid for key in jwks.get("keys", []))

    # ------------------------------------------------------------------
    # IIdentityProvider implementation
    # ------------------------------------------------------------------

    async def verify_token(self, token: str) -> Principal:
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as exc:
            raise AuthenticationError(
                message="Malformed session token",
                provider_name=self.get_provider_name(),
            ) from exc

        jwks = await self._get_jwks()
        # Clerk rotates keys; refetch once when the token names an unknown kid.
        if not self._has_kid(jwks, header.get("kid")):
            jwks = await self._get_jwks(force=True)

        options = {"verify_aud": False, "verify_iss": self._issuer is not None}
        try:
            claims = jwt.decode(
                token,
                jwks,
                algorithms=_ALGORITHMS,
                issuer=self._issuer,
                options=options,
            )
        except ExpiredSignatureError as exc:
            raise AuthenticationError(
                message="Session token expired",
                provider_name=self.get_provider_name(),
            ) from exc
        except JWTError as exc:
            raise AuthenticationError(
                message="Invalid session token",
                provider_name=self.get_provider_name(),
            ) from exc

        user_id = claims.get("sub")
        if not user_id:
            raise AuthenticationError(
                message="Session token has no subject",
                provider_name=self.get_provider_name(),
            )
        return Principal(user_id=user_id, session_id=claims.get("sid"), claims=claims)

    async def get_user_profile(self, user_id: str) -> UserProfile:
        url = f"{self._api_url}/users/{user_id}"
        headers = {"Authorization": f"Bearer {self._secret_key}"}
        try:
            response = await self._http.get(url, headers=headers)
            if response.status_code == 404:
                raise AuthenticationError(
                    message="User not found",
                    provider_name=self.get_provider_name(),
                )
            response.raise_for_status()
            raw = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise AuthenticationError(
                message=f"Could not load user profile: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return self.profile_from_record(raw)

    @staticmethod
    def profile_from_record(raw: dict[str, Any]) -> UserProfile:
        """Map a Clerk user record onto :class:`UserProfile`.

        The primary email address wins; otherwise the first listed one.
        """
        addresses = raw.get("email_addresses") or []
        primary_id = raw.get("primary_email_address_id")
        email = next(
            (a.get("email_address") for a in addresses if a.get("id") == primary_id),
            addresses[0].get("email_address") if addresses else None,
        )
        names = [raw.get("first_name"), raw.get("last_name")]
        full_name = " ".join(n for n in names if n) or None
        return UserProfile(external_id=raw["id"], email=email, full_name=full_name, raw=raw)

    def get_provider_name(self) -> str:
        return "clerk"
