"""PostgreSQL implementation of ProfileRepo."""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from credhub.db.tables import ProfileRow
from credhub.models.profile import Profile


class PgProfileRepo:
    """Satisfies the ProfileRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: UUID) -> Profile | None:
        row = await self._session.get(ProfileRow, user_id)
        return _row_to_profile(row) if row else None

    async def get_many(self, user_ids: Iterable[UUID]) -> dict[UUID, Profile]:
        ids = set(user_ids)
        if not ids:
            return {}
        stmt = select(ProfileRow).where(ProfileRow.id.in_(ids))
        rows = (await self._session.execute(stmt)).scalars().all()
        return {r.id: _row_to_profile(r) for r in rows}

    async def upsert(self, profile: Profile) -> None:
        stmt = insert(ProfileRow).values(
            id=profile.id,
            email=profile.email,
            full_name=profile.full_name,
            roles=list(profile.roles),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[ProfileRow.id],
            set_={
                "email": stmt.excluded.email,
                "full_name": stmt.excluded.full_name,
                "roles": stmt.excluded.roles,
            },
        )
        await self._session.execute(stmt)


def _row_to_profile(row: ProfileRow) -> Profile:
    return Profile(
        id=row.id,
        email=row.email,
        full_name=row.full_name or "",
        roles=tuple(row.roles) if row.roles else (),
    )
