"""
api/routes/v1/auth.py -- Account creation and login endpoints.

Routes:
  POST /api/v1/auth/signup   -- create a role=user account; returns {user, token}
  POST /api/v1/auth/login    -- email/password login; returns {user, token}
  POST /api/v1/auth/admin    -- create an admin account (admin only)

Security:
  All three are rate-limited with AUTH_RATE_LIMIT per client IP.
  authenticate_user() provides timing equalization -- use it, never inline.
  Login failures return one generic 401 whether the email or the password was wrong.
  Cache-Control: no-store on login responses.
  Signup always assigns role=user; there is no way to pick a role in the body.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.limiter import limiter
from api.models import (
    AdminCreateRequest,
    AuthResponse,
    ErrorDetail,
    ErrorResponse,
    LoginRequest,
    SignupRequest,
    UserResponse,
)
from auth.dependencies import require_admin
from auth.models import Identity, Role, User
from auth.store import UserStore
from auth.tokens import TokenService, authenticate_user, hash_password
from core.config import get_settings
from core.errors import Conflict, ErrorKind

logger = logging.getLogger("postboard.auth")
settings = get_settings()

# Auth policy:
# - POST /api/v1/auth/signup: public
# - POST /api/v1/auth/login:  public
# - POST /api/v1/auth/admin:  requires admin (require_admin)
router = APIRouter()


@router.post("/auth/signup", response_model=AuthResponse, status_code=201)
@limiter.limit(settings.auth_rate_limit)
def signup(request: Request, body: SignupRequest) -> AuthResponse:
    """Register a new account with role=user and log it in."""
    user = User(
        email=body.email,
        hashed_password=hash_password(body.password, settings.bcrypt_rounds),
        first_name=body.first_name,
        last_name=body.last_name,
        country=body.country,
        role=Role.USER,
    )
    created = _create_account(request.app.state.user_store, user)
    logger.info("Account created: %s", created.id)
    return _auth_response(request.app.state.token_service, created)


@router.post("/auth/login", response_model=AuthResponse)
@limiter.limit(settings.auth_rate_limit)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return a bearer token.

    Uses authenticate_user() which includes timing equalization. Do NOT
    inline get_by_email() + verify_password() -- that re-introduces the
    timing attack.
    """
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.email, body.password)
    if user is None:
        logger.info("Failed login attempt from %s", request.client.host if request.client else "unknown")
        resp = JSONResponse(
            status_code=401,
            content=ErrorResponse(
                error=ErrorDetail(
                    code=ErrorKind.AUTHENTICATION_REQUIRED.value,
                    message="Invalid email or password.",
                )
            ).model_dump(),
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    body_out = _auth_response(request.app.state.token_service, user)
    resp = JSONResponse(status_code=200, content=body_out.model_dump(mode="json"))
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/admin", response_model=UserResponse, status_code=201)
@limiter.limit(settings.auth_rate_limit)
def create_admin(
    request: Request,
    body: AdminCreateRequest,
    identity: Identity = Depends(require_admin),
) -> UserResponse:
    """Create another administrator account. Admin only."""
    user = User(
        email=body.email,
        hashed_password=hash_password(body.password, settings.bcrypt_rounds),
        first_name=body.first_name,
        last_name=body.last_name,
        country="N/A",
        role=Role.ADMIN,
    )
    created = _create_account(request.app.state.user_store, user)
    logger.info("Admin account %s created by %s", created.id, identity.id)
    return UserResponse.from_user(created)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _create_account(user_store: UserStore, user: User) -> User:
    try:
        user_id = user_store.create_user(user)
    except IntegrityError as exc:
        raise Conflict("An account with that email already exists.") from exc
    return user_store.get_by_id(user_id)


def _auth_response(tokens: TokenService, user: User) -> AuthResponse:
    return AuthResponse(
        user=UserResponse.from_user(user),
        token=tokens.issue(user.to_identity()),
        expires_in=tokens.ttl_seconds,
    )
