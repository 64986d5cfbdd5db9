"""
api/routes/v1/posts.py -- Post CRUD endpoints.

Routes:
  POST   /api/v1/posts        -- create a post owned by the caller (requires auth)
  GET    /api/v1/posts        -- paginated list, newest first (public)
  GET    /api/v1/posts/{id}   -- single post with author and comment count (public)
  PATCH  /api/v1/posts/{id}   -- partial update (owner or admin)
  DELETE /api/v1/posts/{id}   -- delete post and its comments (owner or admin)

Every mutating handler follows the same order: load the target (404 if
absent), enforce() the policy against it, then mutate. The owner is always
the authenticated caller; no request body can set or change user_id.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from api.limiter import limiter
from api.models import PaginationMeta, PostCreate, PostPage, PostResponse, PostUpdate
from api.pagination import PageParams
from auth.dependencies import get_identity, try_get_identity
from auth.models import Identity
from auth.policy import Action, enforce
from blog.models import Post
from blog.store import BlogStore
from core.config import get_settings
from core.errors import NotFound

logger = logging.getLogger("postboard.blog")
settings = get_settings()

# Auth policy:
# - POST   /api/v1/posts:       requires auth (get_identity)
# - GET    /api/v1/posts:       public (try_get_identity)
# - GET    /api/v1/posts/{id}:  public (try_get_identity)
# - PATCH  /api/v1/posts/{id}:  owner or admin (enforce UPDATE)
# - DELETE /api/v1/posts/{id}:  owner or admin (enforce DELETE)
router = APIRouter()


def _load_post(store: BlogStore, post_id: str) -> Post:
    post = store.get_post(post_id)
    if post is None:
        raise NotFound("Post not found.")
    return post


@router.post("/posts", response_model=PostResponse, status_code=201)
@limiter.limit(settings.post_create_rate_limit)
def create_post(
    request: Request,
    body: PostCreate,
    identity: Identity = Depends(get_identity),
) -> PostResponse:
    enforce(identity, Action.CREATE)
    store: BlogStore = request.app.state.blog_store
    post = store.create_post(Post(title=body.title, content=body.content, user_id=identity.id))
    logger.info("Post %s created by %s", post.id, identity.id)
    return PostResponse.from_post(post)


@router.get("/posts", response_model=PostPage)
def list_posts(
    request: Request,
    page: PageParams = Depends(),
    user_id: Optional[uuid.UUID] = Query(default=None, description="Only posts by this author"),
    identity: Optional[Identity] = Depends(try_get_identity),
) -> PostPage:
    enforce(identity, Action.READ)
    store: BlogStore = request.app.state.blog_store
    author = str(user_id) if user_id else None
    posts, total = store.list_posts(offset=page.offset, limit=page.limit, user_id=author)
    return PostPage(
        data=[PostResponse.from_post(p) for p in posts],
        pagination=PaginationMeta.build(page.page, page.limit, total),
    )


@router.get("/posts/{post_id}", response_model=PostResponse)
def get_post(
    request: Request,
    post_id: str,
    identity: Optional[Identity] = Depends(try_get_identity),
) -> PostResponse:
    post = _load_post(request.app.state.blog_store, post_id)
    enforce(identity, Action.READ, post)
    return PostResponse.from_post(post)


@router.patch("/posts/{post_id}", response_model=PostResponse)
@limiter.limit(settings.post_update_rate_limit)
def update_post(
    request: Request,
    post_id: str,
    body: PostUpdate,
    identity: Identity = Depends(get_identity),
) -> PostResponse:
    """Update title and/or content. Omitted fields keep their current value."""
    store: BlogStore = request.app.state.blog_store
    post = _load_post(store, post_id)
    enforce(identity, Action.UPDATE, post)
    updated = store.update_post(post_id, **body.model_dump(exclude_none=True))
    if updated is None:
        # Deleted between load and update.
        raise NotFound("Post not found.")
    return PostResponse.from_post(updated)


@router.delete("/posts/{post_id}", status_code=204)
def delete_post(
    request: Request,
    post_id: str,
    identity: Identity = Depends(get_identity),
) -> Response:
    """Delete a post and all of its comments in one transaction."""
    store: BlogStore = request.app.state.blog_store
    post = _load_post(store, post_id)
    enforce(identity, Action.DELETE, post)
    if not store.delete_post(post_id):
        raise NotFound("Post not found.")
    if identity.is_admin and post.user_id != identity.id:
        logger.info("Post %s owned by %s deleted by admin %s", post_id, post.user_id, identity.id)
    return Response(status_code=204)
