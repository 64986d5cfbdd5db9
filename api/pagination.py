"""
api/pagination.py -- Shared page/limit query parameters for list endpoints.

Usage:
    @router.get("/posts")
    def list_posts(page: PageParams = Depends()): ...
"""

from fastapi import Query


class PageParams:
    """?page= (1-based) and ?limit= (1-100), validated by FastAPI before the handler runs."""

    def __init__(
        self,
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=10, ge=1, le=100),
    ) -> None:
        self.page = page
        self.limit = limit

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit
