"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Credential: the Authorization: Bearer <token> header. A missing header or an
empty token means "no credential".

authenticate_token() is the shared path: verify the token with the app's
TokenService, then re-read the account from the UserStore. The identity the
rest of the request sees (id, email, role) comes from storage, not from the
token, so a demoted admin loses admin rights on the next request even though
their token is still unexpired. A token for a deleted account is invalid.

try_get_identity() is the soft variant for public routes (returns None on any
failure). get_identity() is the hard variant for protected routes: it never
swallows a verification failure. require_admin() adds the ADMINISTER policy
check.

Both variants attach the resolved identity to request.state.identity.

Layer rule: no imports from api/ or blog/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging

from fastapi import Request

from auth.models import Identity
from auth.policy import Action, enforce
from auth.store import UserStore
from auth.tokens import InvalidToken, TokenService
from core.errors import AuthenticationRequired

logger = logging.getLogger("postboard.auth")


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header[7:].strip() or None


def authenticate_token(token: str, tokens: TokenService, user_store: UserStore) -> Identity:
    """Verify token and return the account's current identity.

    Raises InvalidToken / TokenExpired from verification, or InvalidToken if
    the account no longer exists.
    """
    claims = tokens.verify(token)
    identity = user_store.find_identity(claims.id)
    if identity is None:
        raise InvalidToken()
    return identity


def try_get_identity(request: Request) -> Identity | None:
    """Resolve the caller's identity, or None for anonymous/invalid credentials.

    Never raises AuthenticationRequired -- public routes use this so a stale
    token does not block a read that anonymous callers may perform anyway.
    """
    request.state.identity = None
    token = _bearer_token(request)
    if token is None:
        return None
    try:
        identity = authenticate_token(token, request.app.state.token_service, request.app.state.user_store)
    except AuthenticationRequired as exc:
        logger.debug("Ignoring bad credential on public route %s: %s", request.url.path, exc.message)
        return None
    request.state.identity = identity
    return identity


def get_identity(request: Request) -> Identity:
    """Require authentication. Raises AuthenticationRequired (401) otherwise.

    Use as a FastAPI dependency:
        @router.post("/posts")
        def route(identity: Identity = Depends(get_identity)): ...
    """
    token = _bearer_token(request)
    if token is None:
        raise AuthenticationRequired()
    identity = authenticate_token(token, request.app.state.token_service, request.app.state.user_store)
    request.state.identity = identity
    return identity


def require_admin(request: Request) -> Identity:
    """Require an admin identity. 401 if unauthenticated, 403 if not admin."""
    identity = get_identity(request)
    enforce(identity, Action.ADMINISTER)
    return identity
