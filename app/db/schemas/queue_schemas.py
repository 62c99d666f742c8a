# app/db/schemas/queue_schemas.py
from enum import Enum
from pydantic import Field
from datetime import date, datetime
from typing import Optional
from ..models import BookingStatus
from .base_schema import CamelModel


class QueueEventType(str, Enum):
    BOOKING_CREATED = "booking_created"
    BOOKING_UPDATED = "booking_updated"
    BOOKING_CANCELLED = "booking_cancelled"
    QUEUE_POSITION = "queue_position"


class QueueEvent(CamelModel):
    """
    One booking lifecycle change on a (doctor_id, date) channel.

    `patient_id` drives subscriber filtering and is never written to the wire.
    """

    type: QueueEventType
    booking_id: str
    doctor_id: str
    date: date
    serial: Optional[int] = None
    status: Optional[BookingStatus] = None
    position: Optional[int] = Field(None, ge=1)
    estimated_wait_minutes: Optional[int] = Field(None, ge=0)
    timestamp: datetime
    patient_id: Optional[str] = Field(None, exclude=True)

    def to_wire(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


__all__ = ["QueueEvent", "QueueEventType"]
