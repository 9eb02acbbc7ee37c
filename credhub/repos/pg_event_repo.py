"""PostgreSQL implementations of EventRepo and RegistrationRepo."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from credhub.db.tables import EventRegistrationRow, EventRow
from credhub.models.event import Event, EventRegistration


class PgEventRepo:
    """Satisfies the EventRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, event_id: UUID, *, for_update: bool = False) -> Event | None:
        """Load an event; for_update locks the row until the transaction ends.

        Registration takes the lock so capacity checks serialize per event.
        """
        stmt = select(EventRow).where(EventRow.id == event_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_event(row) if row else None

    async def add(self, event: Event) -> None:
        self._session.add(
            EventRow(
                id=event.id,
                title=event.title,
                event_date=event.event_date,
                location=event.location,
                max_attendees=event.max_attendees,
                organizer_id=event.organizer_id,
                resources_url=event.resources_url,
            )
        )
        await self._session.flush()


class PgRegistrationRepo:
    """Satisfies the RegistrationRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, registration_id: UUID) -> EventRegistration | None:
        """Always re-read the row; the identity map may hold a pre-update copy.

        A scan that lost the conditional UPDATE needs the winner's attended_at.
        """
        row = await self._session.get(
            EventRegistrationRow, registration_id, populate_existing=True
        )
        return _row_to_registration(row) if row else None

    async def get_for_user(
        self, event_id: UUID, user_id: UUID
    ) -> EventRegistration | None:
        stmt = select(EventRegistrationRow).where(
            EventRegistrationRow.event_id == event_id,
            EventRegistrationRow.user_id == user_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_registration(row) if row else None

    async def get_by_token(
        self, event_id: UUID, qr_code: str
    ) -> EventRegistration | None:
        stmt = select(EventRegistrationRow).where(
            EventRegistrationRow.event_id == event_id,
            EventRegistrationRow.qr_code == qr_code,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_registration(row) if row else None

    async def count_for_event(self, event_id: UUID) -> int:
        stmt = select(func.count()).where(EventRegistrationRow.event_id == event_id)
        return (await self._session.execute(stmt)).scalar_one()

    async def list_for_event(self, event_id: UUID) -> list[EventRegistration]:
        stmt = (
            select(EventRegistrationRow)
            .where(EventRegistrationRow.event_id == event_id)
            .order_by(EventRegistrationRow.registered_at)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_registration(r) for r in rows]

    async def list_attended_by_user(self, user_id: UUID) -> list[EventRegistration]:
        stmt = (
            select(EventRegistrationRow)
            .where(
                EventRegistrationRow.user_id == user_id,
                EventRegistrationRow.is_attended.is_(True),
            )
            .order_by(EventRegistrationRow.attended_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_registration(r) for r in rows]

    async def add(self, registration: EventRegistration) -> bool:
        stmt = (
            insert(EventRegistrationRow)
            .values(
                id=registration.id,
                event_id=registration.event_id,
                user_id=registration.user_id,
                qr_code=registration.qr_code,
                registered_at=registration.registered_at,
                is_attended=registration.is_attended,
                attended_at=registration.attended_at,
                is_collaborator=registration.is_collaborator,
            )
            .on_conflict_do_nothing(constraint="uq_registration_event_user")
            .returning(EventRegistrationRow.id)
        )
        return (await self._session.execute(stmt)).scalar_one_or_none() is not None

    async def mark_attended(
        self, registration_id: UUID, attended_at: datetime
    ) -> EventRegistration | None:
        """Conditional flip; a concurrent second scan matches zero rows."""
        stmt = (
            update(EventRegistrationRow)
            .where(
                EventRegistrationRow.id == registration_id,
                EventRegistrationRow.is_attended.is_(False),
            )
            .values(is_attended=True, attended_at=attended_at)
            .returning(EventRegistrationRow.id)
        )
        if (await self._session.execute(stmt)).scalar_one_or_none() is None:
            return None
        return await self.get(registration_id)

    async def set_attendance(
        self, registration_id: UUID, attended: bool, attended_at: datetime | None
    ) -> EventRegistration | None:
        stmt = (
            update(EventRegistrationRow)
            .where(EventRegistrationRow.id == registration_id)
            .values(is_attended=attended, attended_at=attended_at)
            .returning(EventRegistrationRow.id)
        )
        if (await self._session.execute(stmt)).scalar_one_or_none() is None:
            return None
        return await self.get(registration_id)


def _row_to_event(row: EventRow) -> Event:
    return Event(
        id=row.id,
        title=row.title,
        event_date=row.event_date,
        organizer_id=row.organizer_id,
        location=row.location or "",
        max_attendees=row.max_attendees,
        resources_url=row.resources_url,
    )


def _row_to_registration(row: EventRegistrationRow) -> EventRegistration:
    return EventRegistration(
        id=row.id,
        event_id=row.event_id,
        user_id=row.user_id,
        qr_code=row.qr_code,
        registered_at=row.registered_at,
        is_attended=row.is_attended,
        attended_at=row.attended_at,
        is_collaborator=row.is_collaborator,
    )
