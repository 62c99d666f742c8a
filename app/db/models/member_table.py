# app/db/models/member_table.py
from enum import Enum
from typing import Optional
from sqlalchemy import String, ForeignKey, UniqueConstraint, Enum as sqlalchemy_enum
from sqlalchemy.orm import Mapped, mapped_column
from .db_base_model import DbBaseModel


class OrgRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    DOCTOR = "doctor"
    STAFF = "staff"
    MEMBER = "member"  # patient-facing account


class Member(DbBaseModel):
    """
    Organization membership: the role a user holds inside one organization.

    Users and organizations themselves live in the identity provider; only
    their ids are stored here.
    """

    __tablename__ = "members"
    __table_args__ = (
        UniqueConstraint("user_id", "organization_id", name="uq_member_user_org"),
    )

    member_id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=DbBaseModel.generate_uuid,
    )

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    organization_id: Mapped[str] = mapped_column(String(64), nullable=False)

    role: Mapped[OrgRole] = mapped_column(
        sqlalchemy_enum(
            OrgRole,
            name="org_role",
            values_callable=lambda roles: [r.value for r in roles],
        ),
        nullable=False,
        default=OrgRole.MEMBER,
    )

    # Linked profiles: a doctor's own profile, a patient account's record
    doctor_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("doctors.doctor_id", ondelete="SET NULL"),
        nullable=True,
    )
    patient_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("patients.patient_id", ondelete="SET NULL"),
        nullable=True,
    )


__all__ = ["Member", "OrgRole"]
