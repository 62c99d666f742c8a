# app/db/models/clinic_table.py
from __future__ import annotations
from typing import TYPE_CHECKING, Optional
from sqlalchemy import String, Text, Float, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column
from .db_base_model import DbBaseModel

if TYPE_CHECKING:
    from .doctor_table import Doctor


class Clinic(DbBaseModel):
    __tablename__ = "clinics"

    clinic_id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=DbBaseModel.generate_uuid,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    doctor_links: Mapped[list["DoctorClinic"]] = relationship(
        "DoctorClinic", back_populates="clinic"
    )


class DoctorClinic(DbBaseModel):
    """Which clinics a doctor works at."""

    __tablename__ = "doctor_clinics"
    __table_args__ = (
        UniqueConstraint("doctor_id", "clinic_id", name="uq_doctor_clinic"),
    )

    link_id: Mapped[str] = mapped_column(
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

    doctor: Mapped["Doctor"] = relationship("Doctor", back_populates="clinic_links")
    clinic: Mapped["Clinic"] = relationship("Clinic", back_populates="doctor_links")


__all__ = ["Clinic", "DoctorClinic"]
