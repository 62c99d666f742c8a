# app/db/schemas/appointment_schemas.py
from pydantic import Field
from datetime import date, datetime
from typing import Generic, Optional, TypeVar
from uuid import UUID
from ..models import BookingStatus, BookVia, PatientStatus
from .base_schema import CamelModel

T = TypeVar("T")


class AppointmentTypeBase(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    status: PatientStatus = PatientStatus.NEW
    duration_minutes: int = Field(15, ge=5, le=480)


class AppointmentTypeCreate(AppointmentTypeBase):
    pass


class AppointmentTypeUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    status: Optional[PatientStatus] = None
    duration_minutes: Optional[int] = Field(None, ge=5, le=480)


class AppointmentTypeResponse(AppointmentTypeBase):
    appointment_type_id: str
    doctor_id: str
    created_at: datetime


class BookingCreate(CamelModel):
    clinic_id: UUID
    patient_id: UUID
    appointment_type_id: Optional[UUID] = None
    book_via: BookVia = BookVia.WALK_IN
    serial_date: date
    scheduled_at: Optional[datetime] = None


class BookingCreateWithDoctor(BookingCreate):
    """Body of the flat `POST /bookings` alias, where the doctor is not in the path."""

    doctor_id: UUID


class BookingUpdate(CamelModel):
    booking_status: Optional[BookingStatus] = None
    cancel_note: Optional[str] = Field(None, max_length=1000)
    scheduled_at: Optional[datetime] = None


class BookingResponse(CamelModel):
    booking_id: str
    doctor_id: str
    clinic_id: str
    patient_id: str
    appointment_type_id: Optional[str] = None
    booking_status: BookingStatus
    book_via: BookVia
    daily_serial: int
    serial_date: date
    scheduled_at: Optional[datetime] = None
    cancel_note: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class Page(CamelModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    limit: int
    total_pages: int


class DailyStats(CamelModel):
    date: date
    total: int = 0
    completed: int = 0
    cancelled: int = 0
    no_show: int = 0
    upcoming: int = 0


__all__ = [
    "AppointmentTypeCreate",
    "AppointmentTypeUpdate",
    "AppointmentTypeResponse",
    "BookingCreate",
    "BookingCreateWithDoctor",
    "BookingUpdate",
    "BookingResponse",
    "Page",
    "DailyStats",
]
