from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Protocol
from uuid import UUID

from credhub.models.event import Event, EventRegistration


class EventRepo(Protocol):
    async def get(self, event_id: UUID, *, for_update: bool = False) -> Event | None: ...
    async def add(self, event: Event) -> None: ...


class RegistrationRepo(Protocol):
    async def get(self, registration_id: UUID) -> EventRegistration | None: ...
    async def get_for_user(
        self, event_id: UUID, user_id: UUID
    ) -> EventRegistration | None: ...
    async def get_by_token(
        self, event_id: UUID, qr_code: str
    ) -> EventRegistration | None: ...
    async def count_for_event(self, event_id: UUID) -> int: ...
    async def list_for_event(self, event_id: UUID) -> list[EventRegistration]: ...
    async def list_attended_by_user(self, user_id: UUID) -> list[EventRegistration]: ...
    async def add(self, registration: EventRegistration) -> bool: ...
    async def mark_attended(
        self, registration_id: UUID, attended_at: datetime
    ) -> EventRegistration | None: ...
    async def set_attendance(
        self, registration_id: UUID, attended: bool, attended_at: datetime | None
    ) -> EventRegistration | None: ...


class InMemoryEventRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Event] = {}

    async def get(self, event_id: UUID, *, for_update: bool = False) -> Event | None:
        # Single event loop: no interleaving between awaits, so no lock needed
        return self._by_id.get(event_id)

    async def add(self, event: Event) -> None:
        self._by_id[event.id] = event


class InMemoryRegistrationRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, EventRegistration] = {}

    async def get(self, registration_id: UUID) -> EventRegistration | None:
        return self._by_id.get(registration_id)

    async def get_for_user(
        self, event_id: UUID, user_id: UUID
    ) -> EventRegistration | None:
        return next(
            (
                r
                for r in self._by_id.values()
                if r.event_id == event_id and r.user_id == user_id
            ),
            None,
        )

    async def get_by_token(
        self, event_id: UUID, qr_code: str
    ) -> EventRegistration | None:
        return next(
            (
                r
                for r in self._by_id.values()
                if r.event_id == event_id and r.qr_code == qr_code
            ),
            None,
        )

    async def count_for_event(self, event_id: UUID) -> int:
        return sum(1 for r in self._by_id.values() if r.event_id == event_id)

    async def list_for_event(self, event_id: UUID) -> list[EventRegistration]:
        return sorted(
            (r for r in self._by_id.values() if r.event_id == event_id),
            key=lambda r: r.registered_at,
        )

    async def list_attended_by_user(self, user_id: UUID) -> list[EventRegistration]:
        return sorted(
            (r for r in self._by_id.values() if r.user_id == user_id and r.is_attended),
            key=lambda r: r.attended_at,  # type: ignore[arg-type,return-value]
            reverse=True,
        )

    async def add(self, registration: EventRegistration) -> bool:
        """Insert; False when (event_id, user_id) is already taken."""
        if await self.get_for_user(registration.event_id, registration.user_id):
            return False
        if any(r.qr_code == registration.qr_code for r in self._by_id.values()):
            raise ValueError("scan token collision")
        self._by_id[registration.id] = registration
        return True

    async def mark_attended(
        self, registration_id: UUID, attended_at: datetime
    ) -> EventRegistration | None:
        """Flip is_attended false -> true; None when it was already true."""
        r = self._by_id.get(registration_id)
        if r is None or r.is_attended:
            return None
        updated = replace(r, is_attended=True, attended_at=attended_at)
        self._by_id[registration_id] = updated
        return updated

    async def set_attendance(
        self, registration_id: UUID, attended: bool, attended_at: datetime | None
    ) -> EventRegistration | None:
        r = self._by_id.get(registration_id)
        if r is None:
            return None
        updated = replace(r, is_attended=attended, attended_at=attended_at)
        self._by_id[registration_id] = updated
        return updated
