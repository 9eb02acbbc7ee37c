"""Event, registration and check-in endpoints.

  POST  /v1/events                                        create (organizer/admin)
  GET   /v1/events/{event_id}                             event + registration count
  POST  /v1/events/{event_id}/registrations               register (201, with QR)
  GET   /v1/events/{event_id}/registrations/me            caller's registration + QR
  POST  /v1/events/{event_id}/check-in                    scan check-in
  PATCH /v1/events/{event_id}/registrations/{reg_id}      manual attendance toggle
  GET   /v1/events/{event_id}/attendees                   roster (organizer/admin)
  GET   /v1/events/{event_id}/resources                   resources link, after check-in
  WS    /v1/events/{event_id}/live?token=<jwt>            registration updates

WebSocket protocol:
  Server -> Client: {"type": "registration_updated", "registration": {...}}
                    {"type": "pong"}
  Client -> Server: {"action": "ping"}

Organizers and admins receive every update of the event; anyone else only
updates of their own registration.  Auth failure closes with code 4001,
an unknown event with 4004.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import UTC, datetime
from typing import Annotated
from uuid import UUID

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Query,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from pydantic import AwareDatetime, BaseModel, Field

from credhub.api.dependencies import principal_from_token, require_any_role, require_user
from credhub.core.metrics import LIVE_SUBSCRIBERS
from credhub.models.event import Event, EventRegistration
from credhub.models.principal import Principal
from credhub.repos.provider import Repos, get_repos, open_repos
from credhub.services.attendance_service import AttendanceService, can_manage
from credhub.services.qr_service import try_qr_data_uri
from credhub.services.realtime import (
    RealtimePublisher,
    Subscription,
    get_publisher,
    registration_topic,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/events", tags=["events"])


class EventIn(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    event_date: AwareDatetime
    location: str = Field(default="", max_length=500)
    max_attendees: int | None = Field(default=None, ge=1)
    resources_url: str | None = Field(default=None, max_length=2048)


class EventOut(BaseModel):
    id: str
    title: str
    event_date: datetime
    location: str
    max_attendees: int | None
    organizer_id: str
    registration_count: int
    is_full: bool
    is_past: bool


class RegisterIn(BaseModel):
    user_id: UUID | None = None
    is_collaborator: bool = False


class CheckInIn(BaseModel):
    token: str = Field(min_length=1, max_length=256)


class AttendanceIn(BaseModel):
    attended: bool


class RegistrationOut(BaseModel):
    id: str
    event_id: str
    user_id: str
    state: str
    is_attended: bool
    attended_at: datetime | None
    registered_at: datetime
    is_collaborator: bool
    qr_code: str | None = None
    qr_image: str | None = None


class AttendeeOut(RegistrationOut):
    full_name: str | None
    email: str | None


class ResourcesOut(BaseModel):
    resources_url: str | None


def _event_out(event: Event, count: int) -> EventOut:
    return EventOut(
        id=str(event.id),
        title=event.title,
        event_date=event.event_date,
        location=event.location,
        max_attendees=event.max_attendees,
        organizer_id=str(event.organizer_id),
        registration_count=count,
        is_full=event.is_full(count),
        is_past=event.is_past(datetime.now(UTC)),
    )


def _registration_out(r: EventRegistration, *, with_qr: bool = False) -> RegistrationOut:
    out = RegistrationOut(
        id=str(r.id),
        event_id=str(r.event_id),
        user_id=str(r.user_id),
        state=r.state,
        is_attended=r.is_attended,
        attended_at=r.attended_at,
        registered_at=r.registered_at,
        is_collaborator=r.is_collaborator,
    )
    if with_qr:
        out.qr_code = r.qr_code
        out.qr_image = try_qr_data_uri(r.qr_code)
    return out


def _service(repos: Repos, publisher: RealtimePublisher) -> AttendanceService:
    return AttendanceService(repos, publisher)


@router.post("", response_model=EventOut, status_code=status.HTTP_201_CREATED)
async def create_event(
    body: EventIn,
    principal: Annotated[Principal, Depends(require_any_role({"organizer", "admin"}))],
    repos: Annotated[Repos, Depends(get_repos)],
    publisher: Annotated[RealtimePublisher, Depends(get_publisher)],
) -> EventOut:
    event = await _service(repos, publisher).create_event(
        principal,
        title=body.title,
        event_date=body.event_date,
        location=body.location,
        max_attendees=body.max_attendees,
        resources_url=body.resources_url,
    )
    return _event_out(event, 0)


@router.get("/{event_id}", response_model=EventOut)
async def get_event(
    event_id: UUID,
    _principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
    publisher: Annotated[RealtimePublisher, Depends(get_publisher)],
) -> EventOut:
    event, count = await _service(repos, publisher).get_event(event_id)
    return _event_out(event, count)


@router.post(
    "/{event_id}/registrations",
    response_model=RegistrationOut,
    status_code=status.HTTP_201_CREATED,
)
async def register_for_event(
    event_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
    publisher: Annotated[RealtimePublisher, Depends(get_publisher)],
    body: RegisterIn | None = None,
) -> RegistrationOut:
    body = body or RegisterIn()
    registration = await _service(repos, publisher).register(
        event_id,
        principal,
        user_id=body.user_id,
        is_collaborator=body.is_collaborator,
    )
    return _registration_out(registration, with_qr=True)


@router.get("/{event_id}/registrations/me", response_model=RegistrationOut)
async def my_registration(
    event_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
    publisher: Annotated[RealtimePublisher, Depends(get_publisher)],
) -> RegistrationOut:
    registration = await _service(repos, publisher).get_my_registration(
        event_id, principal.uuid
    )
    return _registration_out(registration, with_qr=True)


@router.post("/{event_id}/check-in", response_model=RegistrationOut)
async def check_in(
    event_id: UUID,
    body: CheckInIn,
    principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
    publisher: Annotated[RealtimePublisher, Depends(get_publisher)],
) -> RegistrationOut:
    registration = await _service(repos, publisher).check_in_by_token(
        event_id, body.token, principal
    )
    return _registration_out(registration)


@router.patch("/{event_id}/registrations/{registration_id}", response_model=RegistrationOut)
async def set_attendance(
    event_id: UUID,
    registration_id: UUID,
    body: AttendanceIn,
    principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
    publisher: Annotated[RealtimePublisher, Depends(get_publisher)],
) -> RegistrationOut:
    registration = await _service(repos, publisher).set_attendance(
        event_id, registration_id, body.attended, principal
    )
    return _registration_out(registration)


@router.get("/{event_id}/attendees", response_model=list[AttendeeOut])
async def list_attendees(
    event_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
    publisher: Annotated[RealtimePublisher, Depends(get_publisher)],
) -> list[AttendeeOut]:
    attendees = await _service(repos, publisher).list_attendees(event_id, principal)
    return [
        AttendeeOut(
            **_registration_out(a.registration).model_dump(),
            full_name=a.full_name,
            email=a.email,
        )
        for a in attendees
    ]


@router.get("/{event_id}/resources", response_model=ResourcesOut)
async def event_resources(
    event_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
    publisher: Annotated[RealtimePublisher, Depends(get_publisher)],
) -> ResourcesOut:
    url = await _service(repos, publisher).event_resources(event_id, principal)
    return ResourcesOut(resources_url=url)


# ---------------------------------------------------------------------------
# Live updates
# ---------------------------------------------------------------------------


async def _forward(
    websocket: WebSocket,
    subscription: Subscription,
    principal: Principal,
    see_all: bool,
) -> None:
    own_id = str(principal.uuid)
    while True:
        message = await subscription.get()
        registration = message.get("registration") or {}
        if see_all or registration.get("user_id") == own_id:
            await websocket.send_json(message)


@router.websocket("/{event_id}/live")
async def live_updates(
    websocket: WebSocket,
    event_id: UUID,
    token: Annotated[str, Query()],
) -> None:
    try:
        principal = principal_from_token(token)
    except HTTPException:
        await websocket.close(code=4001, reason="Authentication failed")
        return

    async with open_repos() as repos:
        event = await repos.events.get(event_id)
    if event is None:
        await websocket.close(code=4004, reason="Event not found")
        return

    publisher = get_publisher()
    subscription = await publisher.broker.subscribe(registration_topic(event_id))
    await websocket.accept()
    LIVE_SUBSCRIBERS.inc()
    logger.info(
        "Live session opened by user=%s",
        principal.user_id,
        extra={"event_id": str(event_id)},
    )
    forward = asyncio.create_task(
        _forward(websocket, subscription, principal, can_manage(event, principal))
    )
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue
            if isinstance(msg, dict) and msg.get("action") == "ping":
                await websocket.send_json({"type": "pong"})
            else:
                await websocket.send_json({"type": "error", "message": "Unknown action"})
    except WebSocketDisconnect:
        pass
    finally:
        forward.cancel()
        (result,) = await asyncio.gather(forward, return_exceptions=True)
        if isinstance(result, Exception):
            logger.warning("Live forwarder ended with %r", result)
        await subscription.close()
        LIVE_SUBSCRIBERS.dec()
        logger.info("Live session closed", extra={"event_id": str(event_id)})
