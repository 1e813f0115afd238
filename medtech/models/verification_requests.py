"""Verification request table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    String,
    Table,
    Text,
    Uuid,
)

from medtech.core.timeutils import utcnow
from medtech.models.metadata import metadata

verification_requests = Table(
    "verification_requests",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column(
        "user_id",
        Uuid,
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    # Personal details
    Column("full_name", Text, nullable=False),
    Column("date_of_birth", Date, nullable=False),
    Column("gender", Text, nullable=True),
    Column("email", Text, nullable=True),
    Column("address", Text, nullable=True),
    Column("phone", String(20), nullable=True),
    # Preferred first consultation
    Column("preferred_date", Date, nullable=True),
    Column("preferred_time", String(5), nullable=True),
    Column("time_zone", Text, nullable=True),
    # Health background
    Column("allergies", Text, nullable=True),
    Column("health_issue", Text, nullable=True),
    Column("herbal_history", Text, nullable=True),
    Column("privacy_agreement", Boolean, nullable=False),
    Column("status", Text, nullable=False, server_default="pending"),
    Column("created_at", DateTime(timezone=True), nullable=False, default=utcnow),
    CheckConstraint(
        "status IN ('pending', 'approved', 'rejected')",
        name="verification_requests_status_check",
    ),
)
