"""Specialist table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, Table, Text, Uuid, true

from medtech.core.timeutils import utcnow
from medtech.models.metadata import metadata

# Reference data, read-only from the app's point of view
specialists = Table(
    "specialists",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("full_name", Text, nullable=False),
    Column("specialty", Text, nullable=False, index=True),
    Column("bio", Text, nullable=True),
    Column("image_url", Text, nullable=True),
    Column("years_experience", Integer, nullable=True),
    Column("rating", Numeric(3, 2, asdecimal=False), nullable=True),
    # NULL means the platform default fee applies
    Column("consultation_fee", Numeric(10, 2, asdecimal=False), nullable=True),
    Column("is_available", Boolean, nullable=False, server_default=true()),
    Column("created_at", DateTime(timezone=True), nullable=False, default=utcnow),
)
