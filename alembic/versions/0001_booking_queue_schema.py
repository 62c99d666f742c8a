"""booking queue schema

Revision ID: 0001
Revises:
Create Date: 2025-06-01 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "doctors",
        sa.Column("doctor_id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("specialty", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("years_of_experience", sa.SmallInteger(), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "clinics",
        sa.Column("clinic_id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "patients",
        sa.Column("patient_id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("phone", sa.String(20), nullable=True, index=True),
        sa.Column("email", sa.String(255), nullable=True, index=True),
        *_timestamps(),
    )
    op.create_table(
        "doctor_clinics",
        sa.Column("link_id", sa.String(36), primary_key=True),
        sa.Column(
            "doctor_id",
            sa.String(36),
            sa.ForeignKey("doctors.doctor_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "clinic_id",
            sa.String(36),
            sa.ForeignKey("clinics.clinic_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        *_timestamps(),
        sa.UniqueConstraint("doctor_id", "clinic_id", name="uq_doctor_clinic"),
    )
    op.create_table(
        "availability_rules",
        sa.Column("rule_id", sa.String(36), primary_key=True),
        sa.Column(
            "doctor_id",
            sa.String(36),
            sa.ForeignKey("doctors.doctor_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "clinic_id",
            sa.String(36),
            sa.ForeignKey("clinics.clinic_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "recurrence",
            sa.Enum("daily", "weekly", "monthly", name="recurrence_kind"),
            nullable=False,
        ),
        sa.Column("day_of_week", sa.SmallInteger(), nullable=True),
        sa.Column("day_of_month", sa.SmallInteger(), nullable=True),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("breaks", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index(
        "ix_availability_doctor_clinic", "availability_rules", ["doctor_id", "clinic_id"]
    )
    op.create_table(
        "appointment_types",
        sa.Column("appointment_type_id", sa.String(36), primary_key=True),
        sa.Column(
            "doctor_id",
            sa.String(36),
            sa.ForeignKey("doctors.doctor_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column(
            "status",
            sa.Enum("new", "follow_up", "emergency", name="patient_status"),
            nullable=False,
        ),
        sa.Column("duration_minutes", sa.SmallInteger(), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "bookings",
        sa.Column("booking_id", sa.String(36), primary_key=True),
        sa.Column(
            "doctor_id",
            sa.String(36),
            sa.ForeignKey("doctors.doctor_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "clinic_id",
            sa.String(36),
            sa.ForeignKey("clinics.clinic_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "patient_id",
            sa.String(36),
            sa.ForeignKey("patients.patient_id", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "appointment_type_id",
            sa.String(36),
            sa.ForeignKey("appointment_types.appointment_type_id"),
            nullable=True,
        ),
        sa.Column(
            "booking_status",
            sa.Enum(
                "pending",
                "confirmed",
                "cancelled",
                "completed",
                "no_show",
                name="booking_status",
            ),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "book_via",
            sa.Enum("web", "app", "walk_in", name="book_via"),
            nullable=False,
        ),
        sa.Column("daily_serial", sa.Integer(), nullable=False),
        sa.Column("serial_date", sa.Date(), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancel_note", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "doctor_id",
            "serial_date",
            "daily_serial",
            name="uq_booking_doctor_date_serial",
        ),
    )
    op.create_index("ix_booking_doctor_date", "bookings", ["doctor_id", "serial_date"])
    op.create_table(
        "members",
        sa.Column("member_id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False, index=True),
        sa.Column("organization_id", sa.String(64), nullable=False),
        sa.Column(
            "role",
            sa.Enum("owner", "admin", "doctor", "staff", "member", name="org_role"),
            nullable=False,
        ),
        sa.Column(
            "doctor_id",
            sa.String(36),
            sa.ForeignKey("doctors.doctor_id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "patient_id",
            sa.String(36),
            sa.ForeignKey("patients.patient_id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "organization_id", name="uq_member_user_org"),
    )


def downgrade() -> None:
    op.drop_table("members")
    op.drop_index("ix_booking_doctor_date", table_name="bookings")
    op.drop_table("bookings")
    op.drop_table("appointment_types")
    op.drop_index("ix_availability_doctor_clinic", table_name="availability_rules")
    op.drop_table("availability_rules")
    op.drop_table("doctor_clinics")
    op.drop_table("patients")
    op.drop_table("clinics")
    op.drop_table("doctors")
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        for enum_name in (
            "org_role",
            "book_via",
            "booking_status",
            "patient_status",
            "recurrence_kind",
        ):
            sa.Enum(name=enum_name).drop(bind, checkfirst=True)
