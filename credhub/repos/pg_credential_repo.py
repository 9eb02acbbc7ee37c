"""PostgreSQL implementations of CredentialRepo and CertificateRepo.

Both upserts are single INSERT .. ON CONFLICT statements so concurrent
issuance for the same (student, course) converges on one row each.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from credhub.db.tables import CertificateRow, CredentialRow
from credhub.models.credential import Certificate, Credential, CredentialMetadata

_credentials = CredentialRow.__table__
_certificates = CertificateRow.__table__


class PgCredentialRepo:
    """Satisfies the CredentialRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, credential_id: UUID) -> Credential | None:
        row = await self._session.get(CredentialRow, credential_id)
        return _row_to_credential(row) if row else None

    async def get_for_student(
        self, student_id: UUID, course_id: UUID
    ) -> Credential | None:
        stmt = select(CredentialRow).where(
            CredentialRow.student_id == student_id,
            CredentialRow.course_id == course_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_credential(row) if row else None

    async def list_for_student(self, student_id: UUID) -> list[Credential]:
        stmt = (
            select(CredentialRow)
            .where(CredentialRow.student_id == student_id)
            .order_by(CredentialRow.issue_date.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_credential(r) for r in rows]

    async def upsert(
        self,
        *,
        student_id: UUID,
        course_id: UUID,
        issue_date: datetime,
        expires_at: datetime,
        metadata: CredentialMetadata,
    ) -> Credential:
        stmt = insert(_credentials).values(
            id=uuid.uuid4(),
            student_id=student_id,
            course_id=course_id,
            status="completed",
            issue_date=issue_date,
            expires_at=expires_at,
            metadata=metadata.model_dump(mode="json"),
        )
        stmt = stmt.on_conflict_do_update(
            constraint="uq_credential_student_course",
            set_={
                "status": stmt.excluded["status"],
                "issue_date": stmt.excluded["issue_date"],
                "expires_at": stmt.excluded["expires_at"],
                "metadata": stmt.excluded["metadata"],
            },
        ).returning(_credentials.c.id)
        row_id = (await self._session.execute(stmt)).scalar_one()
        row = await self._session.get(CredentialRow, row_id, populate_existing=True)
        assert row is not None
        return _row_to_credential(row)

    async def update_metadata(
        self, credential_id: UUID, metadata: CredentialMetadata
    ) -> None:
        stmt = (
            update(_credentials)
            .where(_credentials.c.id == credential_id)
            .values(metadata=metadata.model_dump(mode="json"))
        )
        await self._session.execute(stmt)


class PgCertificateRepo:
    """Satisfies the CertificateRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_for_credential(self, credential_id: UUID) -> Certificate | None:
        stmt = select(CertificateRow).where(CertificateRow.credential_id == credential_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_certificate(row) if row else None

    async def get_by_number(self, certificate_number: str) -> Certificate | None:
        stmt = select(CertificateRow).where(
            CertificateRow.certificate_number == certificate_number
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_certificate(row) if row else None

    async def upsert_for_credential(
        self,
        *,
        credential_id: UUID,
        certificate_number: str,
        issue_date: datetime,
        expires_at: datetime,
    ) -> Certificate:
        # certificate_number is left out of set_: the first number wins
        stmt = insert(_certificates).values(
            id=uuid.uuid4(),
            credential_id=credential_id,
            certificate_number=certificate_number,
            issue_date=issue_date,
            expires_at=expires_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[_certificates.c.credential_id],
            set_={
                "issue_date": stmt.excluded["issue_date"],
                "expires_at": stmt.excluded["expires_at"],
            },
        ).returning(_certificates.c.id)
        row_id = (await self._session.execute(stmt)).scalar_one()
        row = await self._session.get(CertificateRow, row_id, populate_existing=True)
        assert row is not None
        return _row_to_certificate(row)


def _row_to_credential(row: CredentialRow) -> Credential:
    return Credential(
        id=row.id,
        student_id=row.student_id,
        course_id=row.course_id,
        issue_date=row.issue_date,
        expires_at=row.expires_at,
        status=row.status,
        metadata=CredentialMetadata.load(row.metadata_json),
    )


def _row_to_certificate(row: CertificateRow) -> Certificate:
    return Certificate(
        id=row.id,
        credential_id=row.credential_id,
        certificate_number=row.certificate_number,
        issue_date=row.issue_date,
        expires_at=row.expires_at,
    )
