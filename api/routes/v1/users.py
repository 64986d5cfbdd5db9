"""
api/routes/v1/users.py -- Profile and user administration endpoints.

Routes:
  GET    /api/v1/users/me          -- caller's profile with content counts (requires auth)
  PATCH  /api/v1/users/me          -- update names/country/password (requires auth)
  GET    /api/v1/users             -- paginated, searchable user list (admin only)
  PATCH  /api/v1/users/{id}/role   -- change a user's role (admin only, not own)
  DELETE /api/v1/users/{id}        -- delete a user and their content (admin only, not own)

Handlers that act on one account load it first (404 for an unknown id, for
every caller), then enforce() the policy against it. The policy answers
non-admins with the generic 403 and blocks an admin's own role change or
account deletion.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from api.limiter import limiter
from api.models import (
    ContentCounts,
    PaginationMeta,
    ProfileResponse,
    ProfileUpdate,
    RoleUpdate,
    UserPage,
    UserResponse,
)
from api.pagination import PageParams
from auth.dependencies import get_identity, require_admin
from auth.models import Identity, User
from auth.policy import Action, enforce
from auth.store import UserStore
from auth.tokens import hash_password, verify_password
from blog.store import BlogStore
from core.config import get_settings
from core.errors import NotFound, ValidationFailed

logger = logging.getLogger("postboard.users")
settings = get_settings()

# Auth policy:
# - GET    /api/v1/users/me:         requires auth (get_identity)
# - PATCH  /api/v1/users/me:         requires auth, own record only (enforce UPDATE)
# - GET    /api/v1/users:            requires admin (require_admin)
# - PATCH  /api/v1/users/{id}/role:  admin + self guard, after load (enforce CHANGE_ROLE)
# - DELETE /api/v1/users/{id}:       admin + self guard, after load (enforce DELETE_ACCOUNT)
router = APIRouter()


def _load_user(user_store: UserStore, user_id: str) -> User:
    user = user_store.get_by_id(user_id)
    if user is None:
        raise NotFound("User not found.")
    return user


def _profile(user: User, counts: dict[str, int]) -> ProfileResponse:
    return ProfileResponse(**UserResponse.from_user(user).model_dump(), counts=ContentCounts(**counts))


# ---------------------------------------------------------------------------
# Own profile
# ---------------------------------------------------------------------------


@router.get("/users/me", response_model=ProfileResponse)
def get_profile(request: Request, identity: Identity = Depends(get_identity)) -> ProfileResponse:
    user = _load_user(request.app.state.user_store, identity.id)
    return _profile(user, request.app.state.blog_store.count_user_content(user.id))


@router.patch("/users/me", response_model=ProfileResponse)
@limiter.limit(settings.profile_rate_limit)
def update_profile(
    request: Request,
    body: ProfileUpdate,
    identity: Identity = Depends(get_identity),
) -> ProfileResponse:
    """Update the caller's names and country, and optionally their password.

    A new password is only accepted together with the correct current one.
    Email and role cannot be changed here.
    """
    user_store: UserStore = request.app.state.user_store
    user = _load_user(user_store, identity.id)
    enforce(identity, Action.UPDATE, user)

    updates = body.model_dump(exclude_none=True, include={"first_name", "last_name", "country"})
    if body.new_password:
        if not verify_password(body.current_password, user.hashed_password):
            raise ValidationFailed("Current password is incorrect.")
        updates["hashed_password"] = hash_password(body.new_password, settings.bcrypt_rounds)

    if updates:
        user_store.update_user(user.id, **updates)
        logger.info("Profile updated for user %s (%s)", user.id, ", ".join(sorted(updates)))
    return _profile(_load_user(user_store, user.id), request.app.state.blog_store.count_user_content(user.id))


# ---------------------------------------------------------------------------
# Administration (admin only)
# ---------------------------------------------------------------------------


@router.get("/users", response_model=UserPage)
@limiter.limit(settings.admin_rate_limit)
def list_users(
    request: Request,
    page: PageParams = Depends(),
    search: Optional[str] = Query(default=None, max_length=100),
    identity: Identity = Depends(require_admin),
) -> UserPage:
    """List accounts newest first, each with its post and comment counts.

    search matches email, first or last name.
    """
    users, total = request.app.state.user_store.list_users(offset=page.offset, limit=page.limit, search=search)
    counts = request.app.state.blog_store.count_content_by_user([u.id for u in users])
    return UserPage(
        data=[_profile(u, counts[u.id]) for u in users],
        pagination=PaginationMeta.build(page.page, page.limit, total),
    )


@router.patch("/users/{user_id}/role", response_model=UserResponse)
@limiter.limit(settings.admin_rate_limit)
def update_user_role(
    request: Request,
    user_id: str,
    body: RoleUpdate,
    identity: Identity = Depends(get_identity),
) -> UserResponse:
    """Change another user's role. An admin cannot change their own role."""
    user_store: UserStore = request.app.state.user_store
    target = _load_user(user_store, user_id)
    enforce(identity, Action.CHANGE_ROLE, target)
    user_store.update_user(user_id, role=body.role)
    logger.info("Role of user %s changed from %s to %s by %s", user_id, target.role.value, body.role.value, identity.id)
    return UserResponse.from_user(_load_user(user_store, user_id))


@router.delete("/users/{user_id}", status_code=204)
@limiter.limit(settings.admin_rate_limit)
def delete_user(
    request: Request,
    user_id: str,
    identity: Identity = Depends(get_identity),
) -> Response:
    """Delete an account with its posts, its comments and all comments on its posts.

    An admin cannot delete their own account.
    """
    target = _load_user(request.app.state.user_store, user_id)
    enforce(identity, Action.DELETE_ACCOUNT, target)
    blog_store: BlogStore = request.app.state.blog_store
    if not blog_store.delete_user(user_id):
        raise NotFound("User not found.")
    logger.info("User %s deleted by %s", user_id, identity.id)
    return Response(status_code=204)
