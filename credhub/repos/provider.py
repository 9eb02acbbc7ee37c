"""Request-scoped repository bundle.

Routers depend on ``get_repos`` (or ``get_service_repos`` for public
reads) instead of module-level repo singletons.  Without DATABASE_URL the
bundle is the process-wide in-memory store; with it, every request gets
PostgreSQL repos sharing one session that commits on success and rolls
back when the handler raises.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from credhub.db import engine as db
from credhub.repos.course_repo import (
    CourseRepo,
    EnrollmentRepo,
    InMemoryCourseRepo,
    InMemoryEnrollmentRepo,
)
from credhub.repos.credential_repo import (
    CertificateRepo,
    CredentialRepo,
    InMemoryCertificateRepo,
    InMemoryCredentialRepo,
)
from credhub.repos.event_repo import (
    EventRepo,
    InMemoryEventRepo,
    InMemoryRegistrationRepo,
    RegistrationRepo,
)
from credhub.repos.pg_course_repo import PgCourseRepo, PgEnrollmentRepo
from credhub.repos.pg_credential_repo import PgCertificateRepo, PgCredentialRepo
from credhub.repos.pg_event_repo import PgEventRepo, PgRegistrationRepo
from credhub.repos.pg_profile_repo import PgProfileRepo
from credhub.repos.pg_progress_repo import PgLessonProgressRepo
from credhub.repos.profile_repo import InMemoryProfileRepo, ProfileRepo
from credhub.repos.progress_repo import InMemoryLessonProgressRepo, LessonProgressRepo


@dataclass(frozen=True, slots=True)
class Repos:
    courses: CourseRepo
    enrollments: EnrollmentRepo
    progress: LessonProgressRepo
    credentials: CredentialRepo
    certificates: CertificateRepo
    events: EventRepo
    registrations: RegistrationRepo
    profiles: ProfileRepo

    @staticmethod
    def in_memory() -> Repos:
        return Repos(
            courses=InMemoryCourseRepo(),
            enrollments=InMemoryEnrollmentRepo(),
            progress=InMemoryLessonProgressRepo(),
            credentials=InMemoryCredentialRepo(),
            certificates=InMemoryCertificateRepo(),
            events=InMemoryEventRepo(),
            registrations=InMemoryRegistrationRepo(),
            profiles=InMemoryProfileRepo(),
        )

    @staticmethod
    def for_session(session: AsyncSession) -> Repos:
        return Repos(
            courses=PgCourseRepo(session),
            enrollments=PgEnrollmentRepo(session),
            progress=PgLessonProgressRepo(session),
            credentials=PgCredentialRepo(session),
            certificates=PgCertificateRepo(session),
            events=PgEventRepo(session),
            registrations=PgRegistrationRepo(session),
            profiles=PgProfileRepo(session),
        )


_memory: Repos = Repos.in_memory()


def memory_repos() -> Repos:
    """The process-wide in-memory bundle (used when no database is set)."""
    return _memory


def reset_memory_repos() -> Repos:
    """Replace the in-memory bundle with an empty one. For tests."""
    global _memory
    _memory = Repos.in_memory()
    return _memory


@asynccontextmanager
async def open_repos(*, service: bool = False) -> AsyncIterator[Repos]:
    """Repository bundle for one unit of work.

    service=True uses the service-level connection (public reads).
    """
    factory = db.service_session_factory if service else db.async_session_factory
    if factory is None:
        yield _memory
        return
    async with db.session_scope(factory) as session:
        yield Repos.for_session(session)


async def get_repos() -> AsyncGenerator[Repos, None]:
    """FastAPI dependency yielding the request's repository bundle."""
    async with open_repos() as repos:
        yield repos


async def get_service_repos() -> AsyncGenerator[Repos, None]:
    """Like get_repos, on the service-level connection."""
    async with open_repos(service=True) as repos:
        yield repos
