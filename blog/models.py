"""
blog/models.py -- Domain dataclasses for posts and comments.

These are pure data containers. Ownership (user_id) is assigned once by the
store on insert and no store method updates it afterwards.

author and comment_count are read-side extras filled in by BlogStore when it
joins against users; they are None/0 on freshly constructed objects.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Author:
    """Public slice of a user shown next to posts and comments."""

    id: str
    first_name: str
    last_name: str


@dataclass
class Post:
    title: str
    content: str
    user_id: str
    id: Optional[str] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""
    author: Optional[Author] = None
    comment_count: int = 0

    @property
    def owner_id(self) -> str:
        return self.user_id


@dataclass
class Comment:
    content: str
    post_id: str
    user_id: str
    id: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""
    author: Optional[Author] = None

    @property
    def owner_id(self) -> str:
        return self.user_id
