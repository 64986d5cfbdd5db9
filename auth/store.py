"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper (same as blog/store.py).
UserStore is the repository; _row_to_user is the mapper. Route and dependency
code never touches SQL directly.

UserStore is also the credential store the authenticator consults on every
authenticated request: find_identity() re-reads id, email and role so a token
never carries authority the account no longer has.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Emails are stored lower-cased and matched exactly; the UNIQUE index makes
  duplicate sign-ups fail with IntegrityError.

Layer rule: no imports from api/ or blog/.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Column, String, Table, Text, func, or_, select
from sqlalchemy.engine import Engine

from auth.models import Identity, Role, User
from core.database import metadata, now_iso

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

users_table = Table(
    "users",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("first_name", String(50), nullable=False),
    Column("last_name", String(50), nullable=False),
    Column("country", String(50), nullable=False),
    Column("role", String(10), nullable=False, server_default=Role.USER.value),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Fields a caller may change through update_user(). id, email and created_at
# are fixed at creation.
_MUTABLE_FIELDS = {"first_name", "last_name", "country", "role", "hashed_password"}


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore(engine)
        user_id = store.create_user(User(email="a@example.com", ...))
        identity = store.find_identity(user_id)
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(users_table)).scalar()
        return (result or 0) > 0

    def create_user(self, user: User) -> str:
        """Insert a new user and return its generated id.

        Raises sqlalchemy.exc.IntegrityError if the email is already
        registered. Callers translate that into a Conflict.
        """
        user_id = str(uuid.uuid4())
        now = now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                users_table.insert().values(
                    id=user_id,
                    email=user.email.lower(),
                    hashed_password=user.hashed_password,
                    first_name=user.first_name,
                    last_name=user.last_name,
                    country=user.country,
                    role=Role(user.role).value,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return user_id

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(users_table.select().where(users_table.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by email (case-insensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(users_table.select().where(users_table.c.email == email.lower())).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_identity(self, user_id: str) -> Identity | None:
        """Return the current identity (id, email, role) for an account, or None.

        Reads only the three columns the authenticator needs.
        """
        stmt = select(users_table.c.id, users_table.c.email, users_table.c.role).where(users_table.c.id == user_id)
        with self.engine.connect() as conn:
            row = conn.execute(stmt).fetchone()
        if row is None:
            return None
        return Identity(id=row.id, email=row.email, role=Role(row.role))

    def list_users(self, offset: int = 0, limit: int = 10, search: str | None = None) -> tuple[list[User], int]:
        """Return one page of users (newest first) and the total matching count.

        search is matched case-insensitively against email, first and last name.
        """
        condition = None
        if search:
            pattern = f"%{search.lower()}%"
            condition = or_(
                func.lower(users_table.c.email).like(pattern),
                func.lower(users_table.c.first_name).like(pattern),
                func.lower(users_table.c.last_name).like(pattern),
            )
        page_stmt = users_table.select().order_by(users_table.c.created_at.desc(), users_table.c.id)
        count_stmt = select(func.count()).select_from(users_table)
        if condition is not None:
            page_stmt = page_stmt.where(condition)
            count_stmt = count_stmt.where(condition)
        with self.engine.connect() as conn:
            rows = conn.execute(page_stmt.offset(offset).limit(limit)).fetchall()
            total = conn.execute(count_stmt).scalar() or 0
        return [_row_to_user(r) for r in rows], total

    def update_user(self, user_id: str, **fields) -> bool:
        """Update mutable fields on an existing user.

        Accepted fields: first_name, last_name, country, role, hashed_password.
        Unknown fields raise ValueError rather than being silently dropped.

        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update user fields: {sorted(unknown)!r}")
        if "role" in fields:
            fields["role"] = Role(fields["role"]).value
        fields["updated_at"] = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(users_table.update().where(users_table.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        hashed_password=row.hashed_password,
        first_name=row.first_name,
        last_name=row.last_name,
        country=row.country,
        role=Role(row.role),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
