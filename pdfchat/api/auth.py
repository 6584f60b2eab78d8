"""Bearer-token authentication dependency.

Every authenticated route declares ``principal: PrincipalDep``.  The
dependency runs before the route body, so a missing or invalid token is
rejected with 401 before any upload, storage or model call happens.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from pdfchat.interfaces.identity_provider import IIdentityProvider
from pdfchat.models.chat import Principal
from pdfchat.utils.errors import AuthenticationError

# auto_error=False so a missing header reaches our own 401 envelope
# instead of FastAPI's default 403.
_bearer = HTTPBearer(auto_error=False)


def _get_identity_provider(request: Request) -> IIdentityProvider:
    return request.app.state.identity_provider


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)],
    identity: Annotated[IIdentityProvider, Depends(_get_identity_provider)],
) -> Principal:
    """Resolve the ``Authorization: Bearer <token>`` header to a principal."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError(message="Missing bearer token")
    return await identity.verify_token(credentials.credentials)


PrincipalDep = Annotated[Principal, Depends(get_current_principal)]
