"""
API request and response models for Postboard REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
blog/models.py, which own the internal domain representation. Route handlers
map between the two.

Request bodies are validated here, before any handler or policy code runs.
"""

import math
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from auth.models import Role, User
from auth.tokens import is_strong_password
from blog.models import Author, Comment, Post

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"

Email = Annotated[str, Field(pattern=EMAIL_PATTERN, max_length=255)]
Password = Annotated[str, Field(min_length=8, max_length=128)]
Name = Annotated[str, Field(min_length=2, max_length=50)]


# ---------------------------------------------------------------------------
# Auth request models
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for POST /api/v1/auth/signup. New accounts always get role=user."""

    email: Email
    password: Password
    first_name: Name
    last_name: Name
    country: Name


class LoginRequest(BaseModel):
    email: str = Field(max_length=255)
    password: str = Field(max_length=128)


class AdminCreateRequest(BaseModel):
    """Request body for POST /api/v1/auth/admin.

    Administrator passwords must mix lower case, upper case and digits.
    """

    email: Email
    password: Password
    first_name: Name
    last_name: Name

    @field_validator("password")
    @classmethod
    def require_strong_password(cls, value: str) -> str:
        if not is_strong_password(value):
            raise ValueError("password must contain a lowercase letter, an uppercase letter and a digit")
        return value


# ---------------------------------------------------------------------------
# User request models
# ---------------------------------------------------------------------------


class ProfileUpdate(BaseModel):
    """Request body for PATCH /api/v1/users/me.

    Changing the password requires the current one; the check that it is
    correct happens in the route, against the stored hash.
    """

    first_name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    country: Optional[str] = Field(default=None, min_length=2, max_length=50)
    current_password: Optional[str] = Field(default=None, min_length=8, max_length=128)
    new_password: Optional[str] = Field(default=None, min_length=8, max_length=128)

    @model_validator(mode="after")
    def require_current_password(self) -> "ProfileUpdate":
        if self.new_password and not self.current_password:
            raise ValueError("current_password is required when setting new_password")
        return self


class RoleUpdate(BaseModel):
    role: Role


# ---------------------------------------------------------------------------
# Post / comment request models
# ---------------------------------------------------------------------------


class PostCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1, max_length=10000)


class PostUpdate(BaseModel):
    """Partial update. Omitted fields are left unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    content: Optional[str] = Field(default=None, min_length=1, max_length=10000)


class CommentCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    content: str = Field(min_length=1, max_length=1000)


class CommentUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    content: str = Field(min_length=1, max_length=1000)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class AuthorResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    first_name: str
    last_name: str

    @classmethod
    def from_author(cls, author: Author) -> "AuthorResponse":
        return cls(id=author.id, first_name=author.first_name, last_name=author.last_name)


class UserResponse(BaseModel):
    """Public account view. Never includes the password hash."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    first_name: str
    last_name: str
    country: str
    role: Role
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        """Factory Method -- the domain-to-transport mapping lives next to the model."""
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            country=user.country,
            role=user.role,
            created_at=user.created_at,
        )


class ContentCounts(BaseModel):
    model_config = ConfigDict(frozen=True)

    posts: int
    comments: int


class ProfileResponse(UserResponse):
    """GET /api/v1/users/me -- the caller's account plus authored content counts."""

    counts: ContentCounts


class AuthResponse(BaseModel):
    """Response for signup and login: the account and a bearer token."""

    model_config = ConfigDict(frozen=True)

    user: UserResponse
    token: str
    token_type: str = "bearer"
    expires_in: int


class PostResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    content: str
    user_id: str
    created_at: str
    updated_at: str
    author: Optional[AuthorResponse] = None
    comment_count: int = 0

    @classmethod
    def from_post(cls, post: Post) -> "PostResponse":
        return cls(
            id=post.id,
            title=post.title,
            content=post.content,
            user_id=post.user_id,
            created_at=post.created_at,
            updated_at=post.updated_at,
            author=AuthorResponse.from_author(post.author) if post.author else None,
            comment_count=post.comment_count,
        )


class CommentResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    post_id: str
    user_id: str
    created_at: str
    updated_at: str
    author: Optional[AuthorResponse] = None

    @classmethod
    def from_comment(cls, comment: Comment) -> "CommentResponse":
        return cls(
            id=comment.id,
            content=comment.content,
            post_id=comment.post_id,
            user_id=comment.user_id,
            created_at=comment.created_at,
            updated_at=comment.updated_at,
            author=AuthorResponse.from_author(comment.author) if comment.author else None,
        )


# ---------------------------------------------------------------------------
# Pagination envelopes
# ---------------------------------------------------------------------------


class PaginationMeta(BaseModel):
    model_config = ConfigDict(frozen=True)

    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PaginationMeta":
        return cls(page=page, limit=limit, total=total, pages=math.ceil(total / limit))


class PostPage(BaseModel):
    model_config = ConfigDict(frozen=True)

    data: list[PostResponse]
    pagination: PaginationMeta


class CommentPage(BaseModel):
    model_config = ConfigDict(frozen=True)

    data: list[CommentResponse]
    pagination: PaginationMeta


class UserPage(BaseModel):
    model_config = ConfigDict(frozen=True)

    data: list[ProfileResponse]
    pagination: PaginationMeta


# ---------------------------------------------------------------------------
# Errors / health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
