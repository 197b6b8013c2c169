from fastapi import Query, Request

from forum.config import settings
from forum.services.comment_service import CommentQueryService


class PaginationParams:
    """
    Reusable FastAPI dependency that parses and validates pagination
    query parameters.

    Usage in a router::

        @router.get("/articles/{article_id}/comments")
        async def list_comments(pagination: PaginationParams = Depends()):
            ...

    Attributes
    ----------
    page:
        1-based page number (minimum 1).
    page_size:
        Number of items per page, clamped to ``settings.MAX_PAGE_SIZE``
        regardless of the value supplied by the caller.
    """

    def __init__(
        self,
        page: int = Query(
            1,
            ge=1,
            description="Page number (1-based).",
        ),
        page_size: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            le=settings.MAX_PAGE_SIZE,
            description="Number of comments returned per page.",
        ),
    ) -> None:
        self.page = page
        self.page_size = min(page_size, settings.MAX_PAGE_SIZE)


def get_comment_query_service(request: Request) -> CommentQueryService:
    """Return the service instance built once in the application lifespan."""
    return request.app.state.comment_query_service
