from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol
from uuid import UUID

from credhub.models.profile import Profile


class ProfileRepo(Protocol):
    async def get(self, user_id: UUID) -> Profile | None: ...
    async def get_many(self, user_ids: Iterable[UUID]) -> dict[UUID, Profile]: ...
    async def upsert(self, profile: Profile) -> None: ...


class InMemoryProfileRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Profile] = {}

    async def get(self, user_id: UUID) -> Profile | None:
        return self._by_id.get(user_id)

    async def get_many(self, user_ids: Iterable[UUID]) -> dict[UUID, Profile]:
        return {uid: self._by_id[uid] for uid in set(user_ids) if uid in self._by_id}

    async def upsert(self, profile: Profile) -> None:
        self._by_id[profile.id] = profile
