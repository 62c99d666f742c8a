# app/db/models/availability_rule_table.py
from __future__ import annotations
from datetime import time
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional
from sqlalchemy import (
    String,
    Time,
    Boolean,
    SmallInteger,
    ForeignKey,
    JSON,
    Index,
    Enum as sqlalchemy_enum,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column
from .db_base_model import DbBaseModel

if TYPE_CHECKING:
    from .doctor_table import Doctor
    from .clinic_table import Clinic


class RecurrenceKind(str, Enum):
    DAILY = "daily"  # matches every date
    WEEKLY = "weekly"  # matches day_of_week (0=Sunday .. 6=Saturday)
    MONTHLY = "monthly"  # matches day_of_month (1..31)


class AvailabilityRule(DbBaseModel):
    """
    Recurring bookable window of one doctor at one clinic.

    Rules are never deleted: deactivation flips `is_active` so bookings stay
    attributable to the rule that was in force when they were made.
    """

    __tablename__ = "availability_rules"
    __table_args__ = (
        Index("ix_availability_doctor_clinic", "doctor_id", "clinic_id"),
    )

    rule_id: Mapped[str] = mapped_column(
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
    )
    recurrence: Mapped[RecurrenceKind] = mapped_column(
        sqlalchemy_enum(
            RecurrenceKind,
            name="recurrence_kind",
            values_callable=lambda kinds: [k.value for k in kinds],
        ),
        nullable=False,
        default=RecurrenceKind.WEEKLY,
    )
    day_of_week: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)
    day_of_month: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    # [{"start": 720, "end": 780}, ...] minutes since midnight, half-open
    breaks: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    doctor: Mapped["Doctor"] = relationship("Doctor", back_populates="availability_rules")
    clinic: Mapped["Clinic"] = relationship("Clinic")


__all__ = ["AvailabilityRule", "RecurrenceKind"]
