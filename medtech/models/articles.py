"""Article table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import Column, DateTime, Table, Text, Uuid

from medtech.core.timeutils import utcnow
from medtech.models.metadata import metadata

articles = Table(
    "articles",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("title", Text, nullable=False),
    Column("summary", Text, nullable=True),
    Column("content", Text, nullable=False),
    Column("category", Text, nullable=True, index=True),
    Column("author", Text, nullable=True),
    Column("image_url", Text, nullable=True),
    Column("published_at", DateTime(timezone=True), nullable=False, default=utcnow),
)
