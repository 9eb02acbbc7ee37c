from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Profile:
    """Display data for a platform user, owned by the identity service."""

    id: UUID
    email: str
    full_name: str = ""
    roles: tuple[str, ...] = ()

    @staticmethod
    def new(*, email: str, full_name: str = "", roles: tuple[str, ...] = ()) -> Profile:
        return Profile(id=uuid4(), email=email, full_name=full_name, roles=roles)

    @property
    def display_name(self) -> str:
        if self.full_name.strip():
            return self.full_name.strip()
        return self.email.split("@", 1)[0]
