"""Profile table model using SQLAlchemy Core."""

from sqlalchemy import Boolean, Column, Date, DateTime, String, Table, Text, Uuid, false

from medtech.core.timeutils import utcnow
from medtech.models.metadata import metadata

# One row per identity-provider user; the id is the provider's user id
profiles = Table(
    "profiles",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("email", Text, nullable=True, index=True),
    Column("full_name", Text, nullable=True),
    Column("date_of_birth", Date, nullable=True),
    Column("phone", String(20), nullable=True),
    Column("user_type", Text, nullable=False, server_default="patient"),
    Column("agreed_to_terms", Boolean, nullable=False, server_default=false()),
    # Account verification
    Column("is_verified", Boolean, nullable=False, server_default=false()),
    Column("verification_submitted", Boolean, nullable=False, server_default=false()),
    # Audit
    Column("created_at", DateTime(timezone=True), nullable=False, default=utcnow),
    Column("updated_at", DateTime(timezone=True), nullable=False, default=utcnow),
)
