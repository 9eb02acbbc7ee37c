"""PgRegistrationRepo reads against a session with a stale identity map."""

from __future__ import annotations

import asyncio
import uuid
from datetime import UTC, datetime

from credhub.db.tables import EventRegistrationRow
from credhub.repos.pg_event_repo import PgRegistrationRepo

_REGISTERED_AT = datetime(2026, 9, 12, 17, 0, tzinfo=UTC)
_ATTENDED_AT = datetime(2026, 9, 12, 18, 2, tzinfo=UTC)


def _row(registration_id: uuid.UUID, attended_at: datetime | None) -> EventRegistrationRow:
    return EventRegistrationRow(
        id=registration_id,
        event_id=uuid.uuid4(),
        user_id=uuid.uuid4(),
        qr_code="scan-token",
        registered_at=_REGISTERED_AT,
        is_attended=attended_at is not None,
        attended_at=attended_at,
        is_collaborator=False,
    )


class _IdentityMapSession:
    """Hands back the cached copy unless the caller asks for a fresh load."""

    def __init__(self, cached: EventRegistrationRow, stored: EventRegistrationRow) -> None:
        self._cached = cached
        self._stored = stored

    async def get(self, entity, ident, *, populate_existing: bool = False):
        return self._stored if populate_existing else self._cached


def test_get_sees_update_committed_by_concurrent_scan() -> None:
    registration_id = uuid.uuid4()
    session = _IdentityMapSession(
        cached=_row(registration_id, None),
        stored=_row(registration_id, _ATTENDED_AT),
    )

    registration = asyncio.run(PgRegistrationRepo(session).get(registration_id))

    assert registration is not None
    assert registration.is_attended is True
    assert registration.attended_at == _ATTENDED_AT
