# app/db/models/doctor_table.py
from __future__ import annotations
from typing import TYPE_CHECKING, Optional
from sqlalchemy import String, Text, SmallInteger
from sqlalchemy.orm import relationship, Mapped, mapped_column
from .db_base_model import DbBaseModel

if TYPE_CHECKING:
    from .availability_rule_table import AvailabilityRule
    from .appointment_type_table import AppointmentType
    from .booking_table import Booking
    from .clinic_table import DoctorClinic


class Doctor(DbBaseModel):
    __tablename__ = "doctors"

    doctor_id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=DbBaseModel.generate_uuid,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    specialty: Mapped[str] = mapped_column(String(100), nullable=False)

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    years_of_experience: Mapped[Optional[int]] = mapped_column(
        SmallInteger, nullable=True
    )

    availability_rules: Mapped[list["AvailabilityRule"]] = relationship(
        "AvailabilityRule", back_populates="doctor"
    )

    appointment_types: Mapped[list["AppointmentType"]] = relationship(
        "AppointmentType", back_populates="doctor"
    )

    bookings: Mapped[list["Booking"]] = relationship("Booking", back_populates="doctor")

    clinic_links: Mapped[list["DoctorClinic"]] = relationship(
        "DoctorClinic", back_populates="doctor"
    )


__all__ = ["Doctor"]
