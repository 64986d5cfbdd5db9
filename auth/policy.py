"""
auth/policy.py -- The authorization policy for posts, comments and user records.

One decision function, can_perform(identity, action, resource), applied the
same way to every resource type. It returns a Decision instead of raising, so
callers see both outcomes at the call site; enforce() is the thin wrapper
route handlers use to turn a denial into the matching AppError.

Rules, first match wins:
  1. Public action (READ)                        -> allow
  2. No identity                                 -> deny AUTHENTICATION_REQUIRED
  3. Self-mutation guard (CHANGE_ROLE or
     DELETE_ACCOUNT targeting one's own record)  -> deny FORBIDDEN, any role
  4. Admin                                       -> allow
  5. Authenticated-scope action (CREATE)         -> allow
  6. Owner-scope action and caller owns target   -> allow
  7. Otherwise                                   -> deny FORBIDDEN

Rule 7 uses one message whether the caller lacked the role or the ownership,
so error text cannot be used to probe who owns what.

The policy is pure: no I/O, no clock, no randomness. Resource existence is
the caller's job and is checked before the policy runs (NOT_FOUND wins over
FORBIDDEN).

Layer rule: no imports from api/ or blog/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from auth.models import Identity, Role
from core.errors import ErrorKind, error_for


class Owned(Protocol):
    """Anything with an owner: Post, Comment, or a User record (owned by itself)."""

    @property
    def owner_id(self) -> str | None: ...


class Action(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    ADMINISTER = "administer"
    CHANGE_ROLE = "change_role"
    DELETE_ACCOUNT = "delete_account"


class Scope(Enum):
    PUBLIC = "public"
    AUTHENTICATED = "authenticated"
    OWNER = "owner"
    ADMIN = "admin"


ACTION_SCOPES: dict[Action, Scope] = {
    Action.READ: Scope.PUBLIC,
    Action.CREATE: Scope.AUTHENTICATED,
    Action.UPDATE: Scope.OWNER,
    Action.DELETE: Scope.OWNER,
    Action.ADMINISTER: Scope.ADMIN,
    Action.CHANGE_ROLE: Scope.ADMIN,
    Action.DELETE_ACCOUNT: Scope.ADMIN,
}

# Actions an identity may never perform on its own account record.
_SELF_GUARDED: dict[Action, str] = {
    Action.CHANGE_ROLE: "You cannot change your own role.",
    Action.DELETE_ACCOUNT: "You cannot delete your own account.",
}

# Roles whose holders satisfy every ownership and admin check. Keyed by every
# Role member so a new role fails loudly in _bypasses_ownership().
_OWNERSHIP_BYPASS: dict[Role, bool] = {
    Role.USER: False,
    Role.ADMIN: True,
}


@dataclass(frozen=True)
class Decision:
    """Outcome of a policy check. kind and message are set only on denial."""

    allowed: bool
    kind: ErrorKind | None = None
    message: str | None = None

    def raise_for_denial(self) -> None:
        if not self.allowed:
            raise error_for(self.kind, self.message)


ALLOW = Decision(allowed=True)
_UNAUTHENTICATED = Decision(False, ErrorKind.AUTHENTICATION_REQUIRED, "Authentication required.")
_DENIED = Decision(False, ErrorKind.FORBIDDEN, "You do not have permission to perform this action.")


def _bypasses_ownership(role: Role) -> bool:
    try:
        return _OWNERSHIP_BYPASS[role]
    except KeyError:
        raise ValueError(f"No authorization rule for role {role!r}") from None


def can_perform(identity: Identity | None, action: Action, resource: Owned | None = None) -> Decision:
    """Decide whether identity may perform action on resource.

    resource is the already-loaded target (None for actions without one,
    such as CREATE or ADMINISTER). Owner-scope actions with no resource are
    denied for non-admins.
    """
    scope = ACTION_SCOPES[action]

    if scope is Scope.PUBLIC:
        return ALLOW
    if identity is None:
        return _UNAUTHENTICATED

    guard = _SELF_GUARDED.get(action)
    if guard is not None and resource is not None and resource.owner_id == identity.id:
        return Decision(False, ErrorKind.FORBIDDEN, guard)

    if _bypasses_ownership(identity.role):
        return ALLOW
    if scope is Scope.AUTHENTICATED:
        return ALLOW
    if scope is Scope.OWNER and resource is not None and resource.owner_id == identity.id:
        return ALLOW
    return _DENIED


def enforce(identity: Identity | None, action: Action, resource: Owned | None = None) -> None:
    """Raise AuthenticationRequired or Forbidden unless the action is allowed."""
    can_perform(identity, action, resource).raise_for_denial()
