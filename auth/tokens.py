"""
auth/tokens.py -- JWT issue/verify and password hashing utilities.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry the identity snapshot (sub=user id,
       email, role) plus iat/exp. TokenService is constructed once in the app
       lifespan with the secret and TTL from Settings; nothing here reads the
       environment.

       verify() separates the two failure modes: InvalidToken (bad signature,
       malformed token, missing or unknown claims) and TokenExpired. Both are
       AuthenticationRequired, so the api layer renders them as 401.

       Expiry is checked against TokenService's own clock rather than inside
       jose.jwt.decode so the boundary is exact and testable: a token is valid
       up to and including its exp second.

  Passwords: bcrypt directly (no passlib wrapper). The _DUMMY_HASH constant
       enables timing equalization in authenticate_user() so response time
       does not reveal whether an email is registered.

Layer rule: no imports from api/ or blog/. Import from core/ is allowed.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from auth.models import Identity, Role
from core.errors import AuthenticationRequired

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class InvalidToken(AuthenticationRequired):
    default_message = "Invalid token."


class TokenExpired(AuthenticationRequired):
    default_message = "Token expired."


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------

_BCRYPT_MAX_BYTES = 72


def _bcrypt_input(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str, rounds: int = 12) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only reads the first 72 bytes (and newer releases reject longer
    input), so both hash and verify truncate there explicitly.
    """
    return bcrypt.hashpw(_bcrypt_input(plain), bcrypt.gensalt(rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(_bcrypt_input(plain), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


_STRONG_PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d).{8,}$")


def is_strong_password(plain: str) -> bool:
    """At least 8 characters with one lowercase, one uppercase and one digit."""
    return bool(_STRONG_PASSWORD_RE.match(plain))


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("postboard_timing_dummy")


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Check an email/password login with timing equalization.

    Always runs bcrypt whether or not the account exists:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash

    Returns the User on success, None on any failure.
    """
    user = store.get_by_email(email)
    if user is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


# ---------------------------------------------------------------------------
# JWT issue / verify
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Issues and verifies signed session tokens.

    Stateless: no server-side session store, so tokens cannot be revoked
    before exp. Safe to share between threads -- it holds only the secret,
    the TTL and a clock.

    Usage:
        tokens = TokenService(settings.secret_key, settings.token_expire_seconds)
        token = tokens.issue(identity)
        identity = tokens.verify(token)
    """

    def __init__(
        self,
        secret_key: str,
        ttl_seconds: int,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._secret_key = secret_key
        self.ttl_seconds = ttl_seconds
        self._clock = clock or _utcnow

    def _now(self) -> int:
        return int(self._clock().timestamp())

    def issue(self, identity: Identity) -> str:
        """Encode a signed JWT carrying identity claims and an expiry."""
        now = self._now()
        payload = {
            "sub": identity.id,
            "email": identity.email,
            "role": Role(identity.role).value,
            "iat": now,
            "exp": now + self.ttl_seconds,
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> Identity:
        """Verify signature and expiry; return the embedded identity claims.

        Raises InvalidToken or TokenExpired. Never touches storage.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise InvalidToken() from exc

        try:
            exp = int(payload["exp"])
            identity = Identity(
                id=str(payload["sub"]),
                email=str(payload["email"]),
                role=Role(payload["role"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidToken() from exc

        if self._now() > exp:
            raise TokenExpired()
        return identity
