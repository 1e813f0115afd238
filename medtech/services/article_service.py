"""Health article service."""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from medtech.core.exceptions import NotFoundException
from medtech.models.articles import articles
from medtech.schemas.articles import ArticleListResponse, ArticleResponse


class ArticleService:
    """Service for published articles."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def list_articles(
        self,
        category: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> ArticleListResponse:
        """List articles, newest first."""
        stmt = select(articles)
        count_stmt = select(func.count()).select_from(articles)
        if category:
            stmt = stmt.where(articles.c.category == category)
            count_stmt = count_stmt.where(articles.c.category == category)

        total = (await self.db.execute(count_stmt)).scalar() or 0
        result = await self.db.execute(
            stmt.order_by(articles.c.published_at.desc()).limit(limit).offset(offset)
        )
        items = [ArticleResponse.model_validate(dict(row._mapping)) for row in result.fetchall()]
        return ArticleListResponse(total=total, items=items)

    async def get_article(self, article_id: UUID) -> ArticleResponse:
        """
        Get article by ID.

        Raises:
            NotFoundException: If article not found
        """
        result = await self.db.execute(select(articles).where(articles.c.id == article_id))
        row = result.fetchone()
        if not row:
            raise NotFoundException("Article not found")
        return ArticleResponse.model_validate(dict(row._mapping))
