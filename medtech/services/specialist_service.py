"""Specialist directory service."""

from typing import Any
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from medtech.config import settings
from medtech.core.exceptions import NotFoundException
from medtech.models.specialists import specialists
from medtech.schemas.specialists import SpecialistListResponse, SpecialistResponse


def _to_response(row: Any) -> SpecialistResponse:
    data = dict(row._mapping)
    if data.get("consultation_fee") is None:
        data["consultation_fee"] = settings.default_consultation_fee
    return SpecialistResponse.model_validate(data)


class SpecialistService:
    """Read-only access to specialist reference data."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def get_specialist(self, specialist_id: UUID) -> SpecialistResponse:
        """
        Get specialist by ID.

        Raises:
            NotFoundException: If specialist not found
        """
        result = await self.db.execute(select(specialists).where(specialists.c.id == specialist_id))
        row = result.fetchone()
        if not row:
            raise NotFoundException("Specialist not found")
        return _to_response(row)

    async def list_specialists(
        self,
        specialty: str | None = None,
        available_only: bool = True,
        search: str | None = None,
    ) -> SpecialistListResponse:
        """List specialists for the directory screen, best rated first."""
        conditions = []
        if available_only:
            conditions.append(specialists.c.is_available.is_(True))
        if specialty:
            conditions.append(func.lower(specialists.c.specialty) == specialty.lower())
        if search:
            conditions.append(specialists.c.full_name.ilike(f"%{search}%"))

        stmt = select(specialists).order_by(
            specialists.c.rating.desc().nulls_last(),
            specialists.c.full_name,
        )
        if conditions:
            stmt = stmt.where(and_(*conditions))

        result = await self.db.execute(stmt)
        items = [_to_response(row) for row in result.fetchall()]
        return SpecialistListResponse(total=len(items), items=items)
