from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Event:
    id: UUID
    title: str
    event_date: datetime
    organizer_id: UUID
    location: str = ""
    max_attendees: int | None = None
    resources_url: str | None = None

    @staticmethod
    def new(
        *,
        title: str,
        event_date: datetime,
        organizer_id: UUID,
        location: str = "",
        max_attendees: int | None = None,
        resources_url: str | None = None,
    ) -> Event:
        return Event(
            id=uuid4(),
            title=title,
            event_date=event_date,
            organizer_id=organizer_id,
            location=location,
            max_attendees=max_attendees,
            resources_url=resources_url,
        )

    def is_full(self, registration_count: int) -> bool:
        return self.max_attendees is not None and registration_count >= self.max_attendees

    def is_past(self, now: datetime) -> bool:
        return self.event_date < now


@dataclass(frozen=True, slots=True)
class EventRegistration:
    """A user's registration for an event.

    qr_code is the scan token: random, unique, and only meaningful together
    with event_id.  is_attended only moves false -> true on the scan path.
    """

    id: UUID
    event_id: UUID
    user_id: UUID
    qr_code: str
    registered_at: datetime
    is_attended: bool = False
    attended_at: datetime | None = None
    is_collaborator: bool = False

    @staticmethod
    def new(
        *,
        event_id: UUID,
        user_id: UUID,
        qr_code: str,
        registered_at: datetime,
        is_collaborator: bool = False,
    ) -> EventRegistration:
        return EventRegistration(
            id=uuid4(),
            event_id=event_id,
            user_id=user_id,
            qr_code=qr_code,
            registered_at=registered_at,
            is_collaborator=is_collaborator,
        )

    @property
    def state(self) -> str:
        return "attended" if self.is_attended else "registered"
