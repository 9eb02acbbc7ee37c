"""initial credentialing schema

Revision ID: 3b1e9c7d2a40
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b1e9c7d2a40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _id() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True)


def _tz(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _profile_fk(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("profiles.id"),
        nullable=nullable,
    )


def upgrade() -> None:
    op.create_table(
        "profiles",
        _id(),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("full_name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column(
            "roles",
            postgresql.ARRAY(sa.String()),
            nullable=False,
            server_default="{}",
        ),
    )

    op.create_table(
        "courses",
        _id(),
        sa.Column("slug", sa.String(length=255), nullable=False, unique=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column(
            "content",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="draft"),
        _profile_fk("instructor_id", nullable=True),
    )

    op.create_table(
        "course_enrollments",
        _id(),
        _profile_fk("student_id"),
        sa.Column(
            "course_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.id"),
            nullable=False,
        ),
        _tz("enrolled_at"),
        _tz("completed_at", nullable=True),
        sa.Column("progress_percentage", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("student_id", "course_id", name="uq_enrollment_student_course"),
    )

    op.create_table(
        "lesson_progress",
        _id(),
        _profile_fk("student_id"),
        sa.Column(
            "course_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.id"),
            nullable=False,
        ),
        sa.Column("module_id", sa.String(length=128), nullable=False),
        sa.Column("lesson_id", sa.String(length=128), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        _tz("completed_at", nullable=True),
        _tz("updated_at"),
        sa.UniqueConstraint(
            "student_id",
            "course_id",
            "module_id",
            "lesson_id",
            name="uq_lesson_progress_key",
        ),
    )

    op.create_table(
        "microcredentials",
        _id(),
        _profile_fk("student_id"),
        sa.Column(
            "course_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.id"),
            nullable=False,
        ),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="completed"),
        _tz("issue_date"),
        _tz("expires_at"),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.UniqueConstraint("student_id", "course_id", name="uq_credential_student_course"),
    )

    op.create_table(
        "certificates",
        _id(),
        sa.Column(
            "credential_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("microcredentials.id"),
            nullable=False,
            unique=True,
        ),
        sa.Column("certificate_number", sa.String(length=64), nullable=False, unique=True),
        _tz("issue_date"),
        _tz("expires_at"),
    )

    op.create_table(
        "events",
        _id(),
        sa.Column("title", sa.String(length=500), nullable=False),
        _tz("event_date"),
        sa.Column("location", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("max_attendees", sa.Integer(), nullable=True),
        _profile_fk("organizer_id"),
        sa.Column("resources_url", sa.Text(), nullable=True),
    )

    op.create_table(
        "event_registrations",
        _id(),
        sa.Column(
            "event_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("events.id"),
            nullable=False,
        ),
        _profile_fk("user_id"),
        sa.Column("qr_code", sa.String(length=128), nullable=False, unique=True),
        _tz("registered_at"),
        sa.Column("is_attended", sa.Boolean(), nullable=False, server_default=sa.false()),
        _tz("attended_at", nullable=True),
        sa.Column("is_collaborator", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("event_id", "user_id", name="uq_registration_event_user"),
    )
    op.create_index(
        "ix_event_registrations_user_attended",
        "event_registrations",
        ["user_id", "is_attended"],
    )


def downgrade() -> None:
    op.drop_index("ix_event_registrations_user_attended", table_name="event_registrations")
    op.drop_table("event_registrations")
    op.drop_table("events")
    op.drop_table("certificates")
    op.drop_table("microcredentials")
    op.drop_table("lesson_progress")
    op.drop_table("course_enrollments")
    op.drop_table("courses")
    op.drop_table("profiles")
