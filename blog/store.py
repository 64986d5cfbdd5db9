"""
blog/store.py -- SQLAlchemy-backed persistence layer for posts and comments.

Uses SQLAlchemy Core (not ORM) so the dataclasses in blog/models.py remain the
authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change, not a rewrite.

Pattern: Repository + Data Mapper. BlogStore is the repository; the _row_to_*
functions are the mappers. Route handlers never touch SQL directly.

Cascades:
  delete_post() removes the post's comments and the post in one transaction.
  delete_user() removes everything a user owns (their comments, their posts,
  other users' comments on those posts) and the account in one transaction.
  Both use engine.begin(): either every statement commits or none does.

Ownership: user_id is written on insert only. update_post/update_comment
accept content fields and nothing else.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = BlogStore(engine)
    post = store.create_post(Post(title="Hi", content="...", user_id=uid))
    page, total = store.list_posts(offset=0, limit=10)
    store.delete_post(post.id)
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import Column, ForeignKey, String, Table, Text, func, or_, select
from sqlalchemy.engine import Engine

from auth.store import users_table
from blog.models import Author, Comment, Post
from core.database import metadata, now_iso

logger = logging.getLogger("postboard.blog")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

posts_table = Table(
    "posts",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("title", String(200), nullable=False),
    Column("content", Text, nullable=False),
    Column("user_id", String(36), ForeignKey("users.id"), nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

comments_table = Table(
    "comments",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("content", Text, nullable=False),
    Column("post_id", String(36), ForeignKey("posts.id"), nullable=False, index=True),
    Column("user_id", String(36), ForeignKey("users.id"), nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_POST_FIELDS = {"title", "content"}
_COMMENT_FIELDS = {"content"}


# ---------------------------------------------------------------------------
# Query builders
# ---------------------------------------------------------------------------


def _post_query():
    """SELECT posts joined with author names and a correlated comment count."""
    comment_count = (
        select(func.count(comments_table.c.id))
        .where(comments_table.c.post_id == posts_table.c.id)
        .correlate(posts_table)
        .scalar_subquery()
        .label("comment_count")
    )
    return select(
        posts_table,
        users_table.c.first_name.label("author_first_name"),
        users_table.c.last_name.label("author_last_name"),
        comment_count,
    ).select_from(posts_table.join(users_table, users_table.c.id == posts_table.c.user_id))


def _comment_query():
    return select(
        comments_table,
        users_table.c.first_name.label("author_first_name"),
        users_table.c.last_name.label("author_last_name"),
    ).select_from(comments_table.join(users_table, users_table.c.id == comments_table.c.user_id))


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class BlogStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------

    def create_post(self, post: Post) -> Post:
        """Insert a post owned by post.user_id and return the stored view."""
        post_id = str(uuid.uuid4())
        now = now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                posts_table.insert().values(
                    id=post_id,
                    title=post.title,
                    content=post.content,
                    user_id=post.user_id,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return self.get_post(post_id)

    def get_post(self, post_id: str) -> Optional[Post]:
        """Fetch a single post with author and comment count. None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_post_query().where(posts_table.c.id == post_id)).fetchone()
        return _row_to_post(row) if row is not None else None

    def list_posts(self, offset: int = 0, limit: int = 10, user_id: Optional[str] = None) -> tuple[list[Post], int]:
        """Return one page of posts (newest first) and the total count.

        user_id narrows both the page and the count to one author.
        """
        page_stmt = _post_query().order_by(posts_table.c.created_at.desc(), posts_table.c.id)
        count_stmt = select(func.count()).select_from(posts_table)
        if user_id:
            page_stmt = page_stmt.where(posts_table.c.user_id == user_id)
            count_stmt = count_stmt.where(posts_table.c.user_id == user_id)
        with self.engine.connect() as conn:
            rows = conn.execute(page_stmt.offset(offset).limit(limit)).fetchall()
            total = conn.execute(count_stmt).scalar() or 0
        return [_row_to_post(r) for r in rows], total

    def update_post(self, post_id: str, **fields) -> Optional[Post]:
        """Update title and/or content. Returns the updated post, or None if absent."""
        unknown = set(fields) - _POST_FIELDS
        if unknown:
            raise ValueError(f"Cannot update post fields: {sorted(unknown)!r}")
        if fields:
            fields["updated_at"] = now_iso()
            with self.engine.connect() as conn:
                result = conn.execute(posts_table.update().where(posts_table.c.id == post_id).values(**fields))
                conn.commit()
            if result.rowcount == 0:
                return None
        return self.get_post(post_id)

    def delete_post(self, post_id: str) -> bool:
        """Delete a post and all of its comments atomically.

        Returns True if the post existed. Any failure rolls back every
        statement, leaving the post and its comments in place.
        """
        with self.engine.begin() as conn:
            removed = conn.execute(comments_table.delete().where(comments_table.c.post_id == post_id)).rowcount
            deleted = conn.execute(posts_table.delete().where(posts_table.c.id == post_id)).rowcount > 0
        if deleted:
            logger.info("Post %s deleted with %d comment(s)", post_id, removed)
        return deleted

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def create_comment(self, comment: Comment) -> Comment:
        """Insert a comment on comment.post_id owned by comment.user_id.

        The caller checks that the post exists; the foreign key rejects a
        dangling post_id with IntegrityError regardless.
        """
        comment_id = str(uuid.uuid4())
        now = now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                comments_table.insert().values(
                    id=comment_id,
                    content=comment.content,
                    post_id=comment.post_id,
                    user_id=comment.user_id,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return self.get_comment(comment_id)

    def get_comment(self, comment_id: str) -> Optional[Comment]:
        with self.engine.connect() as conn:
            row = conn.execute(_comment_query().where(comments_table.c.id == comment_id)).fetchone()
        return _row_to_comment(row) if row is not None else None

    def list_comments(self, post_id: str, offset: int = 0, limit: int = 10) -> tuple[list[Comment], int]:
        """Return one page of a post's comments (newest first) and the total count."""
        page_stmt = (
            _comment_query()
            .where(comments_table.c.post_id == post_id)
            .order_by(comments_table.c.created_at.desc(), comments_table.c.id)
            .offset(offset)
            .limit(limit)
        )
        count_stmt = select(func.count()).select_from(comments_table).where(comments_table.c.post_id == post_id)
        with self.engine.connect() as conn:
            rows = conn.execute(page_stmt).fetchall()
            total = conn.execute(count_stmt).scalar() or 0
        return [_row_to_comment(r) for r in rows], total

    def update_comment(self, comment_id: str, **fields) -> Optional[Comment]:
        unknown = set(fields) - _COMMENT_FIELDS
        if unknown:
            raise ValueError(f"Cannot update comment fields: {sorted(unknown)!r}")
        if fields:
            fields["updated_at"] = now_iso()
            with self.engine.connect() as conn:
                result = conn.execute(
                    comments_table.update().where(comments_table.c.id == comment_id).values(**fields)
                )
                conn.commit()
            if result.rowcount == 0:
                return None
        return self.get_comment(comment_id)

    def delete_comment(self, comment_id: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(comments_table.delete().where(comments_table.c.id == comment_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Per-user content
    # ------------------------------------------------------------------

    def count_user_content(self, user_id: str) -> dict[str, int]:
        """Return {"posts": N, "comments": N} authored by user_id."""
        return self.count_content_by_user([user_id])[user_id]

    def count_content_by_user(self, user_ids: list[str]) -> dict[str, dict[str, int]]:
        """Post and comment counts for each id, two grouped queries per call."""
        counts = {user_id: {"posts": 0, "comments": 0} for user_id in user_ids}
        if not user_ids:
            return counts
        with self.engine.connect() as conn:
            for key, table in (("posts", posts_table), ("comments", comments_table)):
                rows = conn.execute(
                    select(table.c.user_id, func.count())
                    .where(table.c.user_id.in_(user_ids))
                    .group_by(table.c.user_id)
                )
                for user_id, total in rows:
                    counts[user_id][key] = total
        return counts

    def delete_user(self, user_id: str) -> bool:
        """Delete an account and everything it owns in one transaction.

        Removes the user's comments, every comment on the user's posts, the
        user's posts, then the user row. Lives here rather than in UserStore
        because auth/ must not know about posts and comments.

        Returns True if the account existed.
        """
        owned_posts = select(posts_table.c.id).where(posts_table.c.user_id == user_id)
        with self.engine.begin() as conn:
            conn.execute(
                comments_table.delete().where(
                    or_(comments_table.c.user_id == user_id, comments_table.c.post_id.in_(owned_posts))
                )
            )
            conn.execute(posts_table.delete().where(posts_table.c.user_id == user_id))
            deleted = conn.execute(users_table.delete().where(users_table.c.id == user_id)).rowcount > 0
        return deleted


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_post(row) -> Post:
    return Post(
        id=row.id,
        title=row.title,
        content=row.content,
        user_id=row.user_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
        author=Author(id=row.user_id, first_name=row.author_first_name, last_name=row.author_last_name),
        comment_count=row.comment_count or 0,
    )


def _row_to_comment(row) -> Comment:
    return Comment(
        id=row.id,
        content=row.content,
        post_id=row.post_id,
        user_id=row.user_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
        author=Author(id=row.user_id, first_name=row.author_first_name, last_name=row.author_last_name),
    )
