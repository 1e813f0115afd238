"""Health article endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from medtech.dependencies import DatabaseSession
from medtech.schemas.articles import ArticleListResponse, ArticleResponse
from medtech.services.article_service import ArticleService

router = APIRouter()


@router.get(
    "/",
    response_model=ArticleListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Articles"],
    summary="List articles",
)
async def list_articles(
    db: DatabaseSession,
    category: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> ArticleListResponse:
    """List published articles, newest first."""
    return await ArticleService(db).list_articles(category, limit, offset)


@router.get(
    "/{article_id}",
    response_model=ArticleResponse,
    status_code=status.HTTP_200_OK,
    tags=["Articles"],
    summary="Get article by ID",
)
async def get_article(article_id: UUID, db: DatabaseSession) -> ArticleResponse:
    """Get article by ID."""
    return await ArticleService(db).get_article(article_id)
