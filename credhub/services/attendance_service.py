"""Event registration and check-in.

Per (event, user) the registration moves

    UNREGISTERED --register--> REGISTERED --scan / manual--> ATTENDED

and only the organizer's manual toggle moves it back.  A scan of an
already-redeemed token is reported as AlreadyCheckedInError carrying the
original check-in time; it never rewrites attended_at.

Every transition is published to the event's realtime topic.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from credhub.core.metrics import CHECK_INS
from credhub.models.event import Event, EventRegistration
from credhub.models.principal import Principal
from credhub.repos.provider import Repos
from credhub.services.errors import (
    AlreadyCheckedInError,
    AlreadyRegisteredError,
    EventFullError,
    EventPastError,
    ForbiddenError,
    InvalidTokenError,
    NotFoundError,
)
from credhub.services.realtime import RealtimePublisher

logger = logging.getLogger(__name__)

SCAN_TOKEN_BYTES = 24


def _utcnow() -> datetime:
    return datetime.now(UTC)


def new_scan_token() -> str:
    return secrets.token_urlsafe(SCAN_TOKEN_BYTES)


def can_manage(event: Event, actor: Principal) -> bool:
    return actor.is_platform_admin() or event.organizer_id == actor.uuid


@dataclass(frozen=True, slots=True)
class Attendee:
    registration: EventRegistration
    full_name: str | None
    email: str | None


@dataclass(frozen=True, slots=True)
class AttendedEvent:
    event: Event
    registration: EventRegistration


class AttendanceService:
    def __init__(
        self,
        repos: Repos,
        publisher: RealtimePublisher,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repos = repos
        self._publisher = publisher
        self._clock = clock

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def create_event(
        self,
        actor: Principal,
        *,
        title: str,
        event_date: datetime,
        location: str = "",
        max_attendees: int | None = None,
        resources_url: str | None = None,
    ) -> Event:
        event = Event.new(
            title=title,
            event_date=event_date,
            organizer_id=actor.uuid,
            location=location,
            max_attendees=max_attendees,
            resources_url=resources_url,
        )
        await self._repos.events.add(event)
        logger.info(
            "Event created by user=%s",
            actor.user_id,
            extra={"event_id": str(event.id)},
        )
        return event

    async def get_event(self, event_id: UUID) -> tuple[Event, int]:
        event = await self._require_event(event_id)
        return event, await self._repos.registrations.count_for_event(event_id)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def register(
        self,
        event_id: UUID,
        actor: Principal,
        *,
        user_id: UUID | None = None,
        is_collaborator: bool = False,
    ) -> EventRegistration:
        # Row lock serializes concurrent capacity checks on this event
        event = await self._require_event(event_id, for_update=True)
        target = user_id or actor.uuid
        if (target != actor.uuid or is_collaborator) and not can_manage(event, actor):
            logger.warning(
                "Registration rejected: user=%s may not register others",
                actor.user_id,
                extra={"event_id": str(event_id)},
            )
            raise ForbiddenError()

        if await self._repos.registrations.get_for_user(event_id, target) is not None:
            raise AlreadyRegisteredError()
        now = self._clock()
        if event.is_past(now):
            raise EventPastError()
        count = await self._repos.registrations.count_for_event(event_id)
        if event.is_full(count):
            logger.info(
                "Registration rejected: event full (%d/%s)",
                count,
                event.max_attendees,
                extra={"event_id": str(event_id)},
            )
            raise EventFullError()

        registration = EventRegistration.new(
            event_id=event_id,
            user_id=target,
            qr_code=new_scan_token(),
            registered_at=now,
            is_collaborator=is_collaborator,
        )
        if not await self._repos.registrations.add(registration):
            raise AlreadyRegisteredError()

        logger.info(
            "User=%s registered (collaborator=%s)",
            target,
            is_collaborator,
            extra={"event_id": str(event_id), "registration_id": str(registration.id)},
        )
        self._publisher.publish_registration(registration)
        return registration

    async def check_in_by_token(
        self, event_id: UUID, token: str, actor: Principal
    ) -> EventRegistration:
        event = await self._require_event(event_id)
        if not can_manage(event, actor):
            own = await self._repos.registrations.get_for_user(event_id, actor.uuid)
            if own is None or not own.is_collaborator:
                logger.warning(
                    "Check-in rejected: user=%s is not staff",
                    actor.user_id,
                    extra={"event_id": str(event_id)},
                )
                raise ForbiddenError()

        registration = await self._repos.registrations.get_by_token(
            event_id, token.strip()
        )
        if registration is None:
            CHECK_INS.labels(result="invalid_token").inc()
            logger.info("Check-in with unknown token", extra={"event_id": str(event_id)})
            raise InvalidTokenError()

        if registration.is_attended:
            CHECK_INS.labels(result="already_checked_in").inc()
            raise AlreadyCheckedInError(registration.attended_at, registration.id)

        updated = await self._repos.registrations.mark_attended(
            registration.id, self._clock()
        )
        if updated is None:
            # Lost the race against a concurrent scan
            CHECK_INS.labels(result="already_checked_in").inc()
            current = await self._repos.registrations.get(registration.id)
            raise AlreadyCheckedInError(
                current.attended_at if current else None, registration.id
            )

        CHECK_INS.labels(result="attended").inc()
        logger.info(
            "User=%s checked in by user=%s",
            updated.user_id,
            actor.user_id,
            extra={"event_id": str(event_id), "registration_id": str(updated.id)},
        )
        self._publisher.publish_registration(updated)
        return updated

    async def set_attendance(
        self,
        event_id: UUID,
        registration_id: UUID,
        attended: bool,
        actor: Principal,
    ) -> EventRegistration:
        event = await self._require_event(event_id)
        self._require_manager(event, actor)
        registration = await self._repos.registrations.get(registration_id)
        if registration is None or registration.event_id != event_id:
            raise NotFoundError("registration not found")

        updated = await self._repos.registrations.set_attendance(
            registration_id, attended, self._clock() if attended else None
        )
        if updated is None:
            raise NotFoundError("registration not found")
        logger.info(
            "Attendance set to %s by user=%s",
            attended,
            actor.user_id,
            extra={"event_id": str(event_id), "registration_id": str(registration_id)},
        )
        self._publisher.publish_registration(updated)
        return updated

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_attendees(self, event_id: UUID, actor: Principal) -> list[Attendee]:
        event = await self._require_event(event_id)
        self._require_manager(event, actor)
        registrations = await self._repos.registrations.list_for_event(event_id)
        profiles = await self._repos.profiles.get_many(r.user_id for r in registrations)
        attendees = []
        for r in registrations:
            profile = profiles.get(r.user_id)
            attendees.append(
                Attendee(
                    registration=r,
                    full_name=profile.display_name if profile else None,
                    email=profile.email if profile else None,
                )
            )
        return attendees

    async def get_my_registration(
        self, event_id: UUID, user_id: UUID
    ) -> EventRegistration:
        await self._require_event(event_id)
        registration = await self._repos.registrations.get_for_user(event_id, user_id)
        if registration is None:
            raise NotFoundError("not registered for this event")
        return registration

    async def attendance_history(
        self, user_id: UUID, actor: Principal
    ) -> list[AttendedEvent]:
        """Events the user attended, most recent check-in first."""
        if actor.uuid != user_id and not actor.is_platform_admin():
            raise ForbiddenError()
        history = []
        for r in await self._repos.registrations.list_attended_by_user(user_id):
            event = await self._repos.events.get(r.event_id)
            if event is not None:
                history.append(AttendedEvent(event=event, registration=r))
        return history

    async def event_resources(self, event_id: UUID, actor: Principal) -> str | None:
        """The event's resources link; attendees only see it after check-in."""
        event = await self._require_event(event_id)
        if can_manage(event, actor):
            return event.resources_url
        registration = await self._repos.registrations.get_for_user(event_id, actor.uuid)
        if registration is None or not registration.is_attended:
            raise ForbiddenError("resources are available after check-in")
        return event.resources_url

    # ------------------------------------------------------------------

    async def _require_event(self, event_id: UUID, *, for_update: bool = False) -> Event:
        event = await self._repos.events.get(event_id, for_update=for_update)
        if event is None:
            raise NotFoundError("event not found")
        return event

    def _require_manager(self, event: Event, actor: Principal) -> None:
        if not can_manage(event, actor):
            logger.warning(
                "Access denied: user=%s does not manage event",
                actor.user_id,
                extra={"event_id": str(event.id)},
            )
            raise ForbiddenError()
