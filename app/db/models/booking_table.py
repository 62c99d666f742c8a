# app/db/models/booking_table.py
from __future__ import annotations
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional
from sqlalchemy import (
    String,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Text,
    Index,
    UniqueConstraint,
    Enum as sqlalchemy_Enum,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column
from .db_base_model import DbBaseModel

if TYPE_CHECKING:
    from .patient_table import Patient
    from .doctor_table import Doctor
    from .clinic_table import Clinic
    from .appointment_type_table import AppointmentType


SERIAL_UNIQUE_CONSTRAINT = "uq_booking_doctor_date_serial"


class BookingStatus(str, Enum):
    PENDING = "pending"  # Created, awaiting confirmation
    CONFIRMED = "confirmed"  # Accepted by the clinic
    CANCELLED = "cancelled"  # Patient/clinic cancelled (note required)
    COMPLETED = "completed"  # Seen by the doctor
    NO_SHOW = "no_show"  # Patient never arrived


class BookVia(str, Enum):
    WEB = "web"
    APP = "app"
    WALK_IN = "walk_in"


class Booking(DbBaseModel):
    """
    One queue entry: patient X is #daily_serial for doctor D on serial_date.
    """

    __tablename__ = "bookings"
    __table_args__ = (
        UniqueConstraint(
            "doctor_id",
            "serial_date",
            "daily_serial",
            name=SERIAL_UNIQUE_CONSTRAINT,
        ),
        Index("ix_booking_doctor_date", "doctor_id", "serial_date"),
    )

    booking_id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=DbBaseModel.generate_uuid,
    )

    doctor_id: Mapped[str] = mapped_column(
        ForeignKey("doctors.doctor_id", ondelete="CASCADE"),
        nullable=False,
    )

    clinic_id: Mapped[str] = mapped_column(
        ForeignKey("clinics.clinic_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    patient_id: Mapped[str] = mapped_column(
        ForeignKey("patients.patient_id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    appointment_type_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("appointment_types.appointment_type_id"),
        nullable=True,
    )

    booking_status: Mapped[BookingStatus] = mapped_column(
        sqlalchemy_Enum(
            BookingStatus,
            name="booking_status",
            values_callable=lambda kinds: [k.value for k in kinds],
        ),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True,
    )

    book_via: Mapped[BookVia] = mapped_column(
        sqlalchemy_Enum(
            BookVia,
            name="book_via",
            values_callable=lambda kinds: [k.value for k in kinds],
        ),
        nullable=False,
        default=BookVia.WALK_IN,
    )

    daily_serial: Mapped[int] = mapped_column(Integer, nullable=False)

    serial_date: Mapped[date] = mapped_column(Date, nullable=False)

    scheduled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    cancel_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    patient: Mapped["Patient"] = relationship("Patient", back_populates="bookings")
    doctor: Mapped["Doctor"] = relationship("Doctor", back_populates="bookings")
    clinic: Mapped["Clinic"] = relationship("Clinic")
    appointment_type: Mapped[Optional["AppointmentType"]] = relationship(
        "AppointmentType"
    )


__all__ = ["Booking", "BookingStatus", "BookVia", "SERIAL_UNIQUE_CONSTRAINT"]
