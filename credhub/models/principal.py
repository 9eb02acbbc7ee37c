from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Principal:
    """Caller identity extracted from a validated bearer JWT.

    Built per request by require_user and passed explicitly to services;
    nothing about the session lives in process-global state.

        user_id: the JWT subject (a profile UUID)
        roles:   platform roles (user, organizer, admin)
        name:    optional display name claim
        email:   optional email claim
    """

    user_id: str
    roles: frozenset[str]
    name: str | None = None
    email: str | None = None

    @property
    def uuid(self) -> UUID:
        return UUID(self.user_id)

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, roles: set[str]) -> bool:
        return bool(self.roles & roles)

    def is_platform_admin(self) -> bool:
        return "admin" in self.roles
