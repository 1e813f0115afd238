"""Article schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class ArticleResponse(BaseModel):
    """Schema for article response."""

    id: UUID
    title: str
    summary: str | None = None
    content: str
    category: str | None = None
    author: str | None = None
    image_url: str | None = None
    published_at: datetime

    model_config = {"from_attributes": True}


class ArticleListResponse(BaseModel):
    """Schema for article list response."""

    total: int
    items: list[ArticleResponse]
