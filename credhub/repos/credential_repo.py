from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Protocol
from uuid import UUID

from credhub.models.credential import Certificate, Credential, CredentialMetadata


class CredentialRepo(Protocol):
    async def get(self, credential_id: UUID) -> Credential | None: ...
    async def get_for_student(
        self, student_id: UUID, course_id: UUID
    ) -> Credential | None: ...
    async def list_for_student(self, student_id: UUID) -> list[Credential]: ...
    async def upsert(
        self,
        *,
        student_id: UUID,
        course_id: UUID,
        issue_date: datetime,
        expires_at: datetime,
        metadata: CredentialMetadata,
    ) -> Credential: ...
    async def update_metadata(
        self, credential_id: UUID, metadata: CredentialMetadata
    ) -> None: ...


class CertificateRepo(Protocol):
    async def get_for_credential(self, credential_id: UUID) -> Certificate | None: ...
    async def get_by_number(self, certificate_number: str) -> Certificate | None: ...
    async def upsert_for_credential(
        self,
        *,
        credential_id: UUID,
        certificate_number: str,
        issue_date: datetime,
        expires_at: datetime,
    ) -> Certificate: ...


class InMemoryCredentialRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[UUID, UUID], Credential] = {}

    async def get(self, credential_id: UUID) -> Credential | None:
        return next((c for c in self._store.values() if c.id == credential_id), None)

    async def get_for_student(
        self, student_id: UUID, course_id: UUID
    ) -> Credential | None:
        return self._store.get((student_id, course_id))

    async def list_for_student(self, student_id: UUID) -> list[Credential]:
        return sorted(
            (c for c in self._store.values() if c.student_id == student_id),
            key=lambda c: c.issue_date,
            reverse=True,
        )

    async def upsert(
        self,
        *,
        student_id: UUID,
        course_id: UUID,
        issue_date: datetime,
        expires_at: datetime,
        metadata: CredentialMetadata,
    ) -> Credential:
        key = (student_id, course_id)
        existing = self._store.get(key)
        if existing is None:
            credential = Credential.new(
                student_id=student_id,
                course_id=course_id,
                issue_date=issue_date,
                expires_at=expires_at,
                metadata=metadata,
            )
        else:
            credential = replace(
                existing,
                status="completed",
                issue_date=issue_date,
                expires_at=expires_at,
                metadata=metadata,
            )
        self._store[key] = credential
        return credential

    async def update_metadata(
        self, credential_id: UUID, metadata: CredentialMetadata
    ) -> None:
        for key, c in self._store.items():
            if c.id == credential_id:
                self._store[key] = replace(c, metadata=metadata)
                return


class InMemoryCertificateRepo:
    def __init__(self) -> None:
        self._by_credential: dict[UUID, Certificate] = {}

    async def get_for_credential(self, credential_id: UUID) -> Certificate | None:
        return self._by_credential.get(credential_id)

    async def get_by_number(self, certificate_number: str) -> Certificate | None:
        return next(
            (
                c
                for c in self._by_credential.values()
                if c.certificate_number == certificate_number
            ),
            None,
        )

    async def upsert_for_credential(
        self,
        *,
        credential_id: UUID,
        certificate_number: str,
        issue_date: datetime,
        expires_at: datetime,
    ) -> Certificate:
        existing = self._by_credential.get(credential_id)
        if existing is None:
            if await self.get_by_number(certificate_number) is not None:
                raise ValueError("certificate number already exists")
            certificate = Certificate.new(
                credential_id=credential_id,
                certificate_number=certificate_number,
                issue_date=issue_date,
                expires_at=expires_at,
            )
        else:
            # The number is kept so links already shared stay valid
            certificate = replace(existing, issue_date=issue_date, expires_at=expires_at)
        self._by_credential[credential_id] = certificate
        return certificate
