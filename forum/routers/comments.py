from fastapi import APIRouter, Depends, HTTPException, Query

from forum.config import settings
from forum.dependencies import PaginationParams, get_comment_query_service
from forum.exceptions import ServiceError
from forum.schemas import CommentView, Participant
from forum.services.comment_service import CommentQueryService

router = APIRouter(prefix="/api/v1", tags=["comments"])


@router.get("/users/{user_id}/comments", response_model=list[CommentView])
async def list_user_comments(
    user_id: int,
    pagination: PaginationParams = Depends(),
    service: CommentQueryService = Depends(get_comment_query_service),
):
    try:
        return await service.get_user_comments(user_id, pagination.page, pagination.page_size)
    except ServiceError:
        raise HTTPException(status_code=500, detail="Failed to load user comments")


@router.get("/articles/{article_id}/comments", response_model=list[CommentView])
async def list_article_comments(
    article_id: int,
    pagination: PaginationParams = Depends(),
    service: CommentQueryService = Depends(get_comment_query_service),
):
    try:
        return await service.get_article_comments(article_id, pagination.page, pagination.page_size)
    except ServiceError:
        raise HTTPException(status_code=500, detail="Failed to load article comments")


@router.get("/articles/{article_id}/participants", response_model=list[Participant])
async def list_article_participants(
    article_id: int,
    fetch_size: int = Query(
        settings.DEFAULT_PARTICIPANTS_FETCH_SIZE,
        ge=1,
        le=settings.MAX_PAGE_SIZE,
        description="Maximum number of participants returned.",
    ),
    service: CommentQueryService = Depends(get_comment_query_service),
):
    try:
        return await service.get_article_latest_participants(article_id, fetch_size)
    except ServiceError:
        raise HTTPException(status_code=500, detail="Failed to load article participants")
