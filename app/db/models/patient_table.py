# app/db/models/patient_table.py
from __future__ import annotations
from datetime import date
from typing import TYPE_CHECKING, Optional
from sqlalchemy import String, Date
from sqlalchemy.orm import relationship, Mapped, mapped_column
from .db_base_model import DbBaseModel

if TYPE_CHECKING:
    from .booking_table import Booking


class Patient(DbBaseModel):
    __tablename__ = "patients"

    patient_id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=DbBaseModel.generate_uuid,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    date_of_birth: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    phone: Mapped[Optional[str]] = mapped_column(String(20), index=True)

    email: Mapped[Optional[str]] = mapped_column(String(255), index=True)

    bookings: Mapped[list["Booking"]] = relationship("Booking", back_populates="patient")


__all__ = ["Patient"]
