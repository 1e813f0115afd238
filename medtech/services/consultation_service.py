"""Consultation lists for the patient's upcoming/completed tabs."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from medtech.core.timeutils import ensure_utc, utcnow
from medtech.models.consultations import consultations
from medtech.models.specialists import specialists
from medtech.schemas.bookings import (
    ACTIVE_BOOKING_STATUSES,
    BookingBucket,
    BookingStatus,
    ConsultationItem,
    ConsultationListResponse,
)


def _to_item(row: Any) -> ConsultationItem:
    data = dict(row._mapping)
    data["payment_required"] = data["status"] == BookingStatus.PENDING_PAYMENT.value
    return ConsultationItem.model_validate(data)


class ConsultationService:
    """Read-only projections of a patient's bookings."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    @staticmethod
    def _base_query() -> Any:
        return select(
            consultations,
            specialists.c.full_name.label("specialist_name"),
            specialists.c.specialty.label("specialist_specialty"),
            specialists.c.image_url.label("specialist_image_url"),
        ).select_from(
            consultations.outerjoin(specialists, consultations.c.specialist_id == specialists.c.id)
        )

    @staticmethod
    def _upcoming_condition(now: datetime) -> Any:
        return and_(
            consultations.c.status.in_([s.value for s in ACTIVE_BOOKING_STATUSES]),
            consultations.c.scheduled_at >= now,
        )

    async def list_bookings(
        self,
        patient_id: UUID,
        bucket: BookingBucket,
        now: datetime | None = None,
    ) -> ConsultationListResponse:
        """
        List a patient's bookings for one tab.

        ``upcoming``: awaiting payment or scheduled, not yet started, soonest
        first. ``completed``: marked completed or already started, most
        recent first, including past bookings that were cancelled. Rows
        replaced by a resumed payment attempt appear in neither.
        """
        now = ensure_utc(now or utcnow())
        conditions = [
            consultations.c.patient_id == patient_id,
            consultations.c.superseded_by.is_(None),
        ]

        if bucket == BookingBucket.UPCOMING:
            conditions.append(self._upcoming_condition(now))
            order = consultations.c.scheduled_at.asc()
        else:
            conditions.append(
                or_(
                    consultations.c.status == BookingStatus.COMPLETED.value,
                    consultations.c.scheduled_at < now,
                )
            )
            order = consultations.c.scheduled_at.desc()

        stmt = self._base_query().where(and_(*conditions)).order_by(order)
        result = await self.db.execute(stmt)
        items = [_to_item(row) for row in result.fetchall()]

        return ConsultationListResponse(bucket=bucket, total=len(items), items=items)

    async def next_upcoming(
        self,
        patient_id: UUID,
        now: datetime | None = None,
    ) -> ConsultationItem | None:
        """The patient's next upcoming consultation, for the home screen."""
        now = ensure_utc(now or utcnow())
        stmt = (
            self._base_query()
            .where(
                and_(
                    consultations.c.patient_id == patient_id,
                    self._upcoming_condition(now),
                )
            )
            .order_by(consultations.c.scheduled_at.asc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()
        return _to_item(row) if row else None
