# app/db/models/appointment_type_table.py
from __future__ import annotations
from enum import Enum
from typing import TYPE_CHECKING
from sqlalchemy import String, SmallInteger, ForeignKey, Enum as sqlalchemy_enum
from sqlalchemy.orm import relationship, Mapped, mapped_column
from .db_base_model import DbBaseModel

if TYPE_CHECKING:
    from .doctor_table import Doctor


class PatientStatus(str, Enum):
    NEW = "new"
    FOLLOW_UP = "follow_up"
    EMERGENCY = "emergency"


class AppointmentType(DbBaseModel):
    __tablename__ = "appointment_types"

    appointment_type_id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=DbBaseModel.generate_uuid,
    )
    doctor_id: Mapped[str] = mapped_column(
        ForeignKey("doctors.doctor_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[PatientStatus] = mapped_column(
        sqlalchemy_enum(
            PatientStatus,
            name="patient_status",
            values_callable=lambda kinds: [k.value for k in kinds],
        ),
        nullable=False,
        default=PatientStatus.NEW,
    )
    duration_minutes: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=15)

    doctor: Mapped["Doctor"] = relationship("Doctor", back_populates="appointment_types")


__all__ = ["AppointmentType", "PatientStatus"]
