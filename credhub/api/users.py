from __future__ import annotations

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from credhub.api.dependencies import require_user
from credhub.models.principal import Principal
from credhub.repos.provider import Repos, get_repos
from credhub.services.attendance_service import AttendanceService
from credhub.services.realtime import RealtimePublisher, get_publisher

# Attendance history: the events a user actually checked in to, used by
# staff looking a participant up and by the participant's own dashboard.

router = APIRouter(prefix="/v1/users", tags=["users"])


class AttendedEventOut(BaseModel):
    event_id: str
    title: str
    event_date: datetime
    location: str
    registration_id: str
    attended_at: datetime | None


@router.get("/{user_id}/attendance", response_model=list[AttendedEventOut])
async def attendance_history(
    user_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
    publisher: Annotated[RealtimePublisher, Depends(get_publisher)],
) -> list[AttendedEventOut]:
    history = await AttendanceService(repos, publisher).attendance_history(
        user_id, principal
    )
    return [
        AttendedEventOut(
            event_id=str(h.event.id),
            title=h.event.title,
            event_date=h.event.event_date,
            location=h.event.location,
            registration_id=str(h.registration.id),
            attended_at=h.registration.attended_at,
        )
        for h in history
    ]
