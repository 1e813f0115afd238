"""Consultation (booking) table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    Table,
    Text,
    Uuid,
)

from medtech.core.timeutils import utcnow
from medtech.models.metadata import metadata

ACTIVE_STATUSES = ("pending_payment", "scheduled")

consultations = Table(
    "consultations",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Ownership / references
    Column(
        "patient_id",
        Uuid,
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column(
        "specialist_id",
        Uuid,
        ForeignKey("specialists.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    ),
    # Slot start, stored in UTC
    Column("scheduled_at", DateTime(timezone=True), nullable=False),
    Column("status", Text, nullable=False, server_default="pending_payment"),
    # Payment correlation; the reference is written once at creation
    Column("payment_reference", Text, nullable=False, unique=True),
    Column("order_tracking_id", Text, nullable=True, index=True),
    Column("payment_amount", Numeric(10, 2, asdecimal=False), nullable=False),
    Column("payment_status", Text, nullable=True),
    Column("payment_method", Text, nullable=True),
    # Reference of the processor order that paid for the booking
    Column("settled_reference", Text, nullable=True),
    Column("notes", Text, nullable=True),
    # Set when a pending booking is replaced by a resumed payment attempt
    Column("superseded_by", Uuid, nullable=True),
    # Audit
    Column("created_at", DateTime(timezone=True), nullable=False, default=utcnow),
    Column("updated_at", DateTime(timezone=True), nullable=False, default=utcnow),
    Column("cancelled_at", DateTime(timezone=True), nullable=True),
    CheckConstraint(
        "status IN ('pending_payment', 'scheduled', 'completed', 'cancelled')",
        name="consultations_status_check",
    ),
)

# Slot exclusivity: one active booking per specialist and start time
Index(
    "uq_consultations_active_slot",
    consultations.c.specialist_id,
    consultations.c.scheduled_at,
    unique=True,
    postgresql_where=consultations.c.status.in_(ACTIVE_STATUSES),
    sqlite_where=consultations.c.status.in_(ACTIVE_STATUSES),
)
