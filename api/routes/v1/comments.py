"""
api/routes/v1/comments.py -- Comment endpoints.

Routes:
  POST   /api/v1/posts/{post_id}/comments  -- comment on a post (requires auth)
  GET    /api/v1/posts/{post_id}/comments  -- paginated comments on a post (public)
  PATCH  /api/v1/comments/{id}             -- edit content (owner or admin)
  DELETE /api/v1/comments/{id}             -- delete (owner or admin)

A comment's owner is its author, not the author of the post it is on: the
post owner has no special rights over other people's comments.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import limiter
from api.models import CommentCreate, CommentPage, CommentResponse, CommentUpdate, PaginationMeta
from api.pagination import PageParams
from auth.dependencies import get_identity, try_get_identity
from auth.models import Identity
from auth.policy import Action, enforce
from blog.models import Comment
from blog.store import BlogStore
from core.config import get_settings
from core.errors import NotFound

logger = logging.getLogger("postboard.blog")
settings = get_settings()

router = APIRouter()


def _require_post(store: BlogStore, post_id: str) -> None:
    if store.get_post(post_id) is None:
        raise NotFound("Post not found.")


def _load_comment(store: BlogStore, comment_id: str) -> Comment:
    comment = store.get_comment(comment_id)
    if comment is None:
        raise NotFound("Comment not found.")
    return comment


@router.post("/posts/{post_id}/comments", response_model=CommentResponse, status_code=201)
@limiter.limit(settings.comment_create_rate_limit)
def create_comment(
    request: Request,
    post_id: str,
    body: CommentCreate,
    identity: Identity = Depends(get_identity),
) -> CommentResponse:
    store: BlogStore = request.app.state.blog_store
    _require_post(store, post_id)
    enforce(identity, Action.CREATE)
    comment = store.create_comment(Comment(content=body.content, post_id=post_id, user_id=identity.id))
    logger.info("Comment %s on post %s created by %s", comment.id, post_id, identity.id)
    return CommentResponse.from_comment(comment)


@router.get("/posts/{post_id}/comments", response_model=CommentPage)
def list_comments(
    request: Request,
    post_id: str,
    page: PageParams = Depends(),
    identity: Optional[Identity] = Depends(try_get_identity),
) -> CommentPage:
    store: BlogStore = request.app.state.blog_store
    _require_post(store, post_id)
    enforce(identity, Action.READ)
    comments, total = store.list_comments(post_id, offset=page.offset, limit=page.limit)
    return CommentPage(
        data=[CommentResponse.from_comment(c) for c in comments],
        pagination=PaginationMeta.build(page.page, page.limit, total),
    )


@router.patch("/comments/{comment_id}", response_model=CommentResponse)
@limiter.limit(settings.comment_update_rate_limit)
def update_comment(
    request: Request,
    comment_id: str,
    body: CommentUpdate,
    identity: Identity = Depends(get_identity),
) -> CommentResponse:
    store: BlogStore = request.app.state.blog_store
    comment = _load_comment(store, comment_id)
    enforce(identity, Action.UPDATE, comment)
    updated = store.update_comment(comment_id, content=body.content)
    if updated is None:
        raise NotFound("Comment not found.")
    return CommentResponse.from_comment(updated)


@router.delete("/comments/{comment_id}", status_code=204)
def delete_comment(
    request: Request,
    comment_id: str,
    identity: Identity = Depends(get_identity),
) -> Response:
    store: BlogStore = request.app.state.blog_store
    comment = _load_comment(store, comment_id)
    enforce(identity, Action.DELETE, comment)
    if not store.delete_comment(comment_id):
        raise NotFound("Comment not found.")
    logger.info("Comment %s deleted by %s", comment_id, identity.id)
    return Response(status_code=204)
