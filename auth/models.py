"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, minimal logic). Mirrors the approach
in blog/models.py -- dataclasses own domain shape; stores and routes do the
work.

Layer rule: no imports from api/ or blog/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Closed set of account roles. Adding a role means updating auth/policy.py."""

    USER = "user"
    ADMIN = "admin"


@dataclass(frozen=True)
class Identity:
    """The authenticated actor behind a request.

    Built per request from a verified token and the current account record.
    Never constructed from request bodies.
    """

    id: str
    email: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


@dataclass
class User:
    """A stored account.

    hashed_password is a bcrypt hash; it never leaves the store/route layer.
    A user record is owned by itself, which lets the policy treat profile
    edits like any other owner-scoped action.
    """

    email: str
    hashed_password: str
    first_name: str
    last_name: str
    country: str
    role: Role = Role.USER
    id: str | None = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""

    @property
    def owner_id(self) -> str | None:
        return self.id

    def to_identity(self) -> Identity:
        return Identity(id=self.id, email=self.email, role=self.role)
