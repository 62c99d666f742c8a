# app/db/schemas/doctor_schema.py
from pydantic import Field
from datetime import datetime
from typing import Optional
from uuid import UUID
from .base_schema import CamelModel


class DoctorBase(CamelModel):
    name: str = Field(..., min_length=2, max_length=100)
    specialty: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    years_of_experience: Optional[int] = Field(None, ge=0, le=80)


class DoctorCreate(DoctorBase):
    pass


class DoctorResponse(DoctorBase):
    doctor_id: str
    created_at: datetime


class ClinicBase(CamelModel):
    name: str = Field(..., min_length=2, max_length=100)
    address: Optional[str] = Field(None, max_length=500)
    phone: Optional[str] = Field(None, max_length=20)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class ClinicCreate(ClinicBase):
    pass


class ClinicResponse(ClinicBase):
    clinic_id: str
    created_at: datetime


class DoctorClinicAssign(CamelModel):
    clinic_id: UUID


class DoctorClinicResponse(CamelModel):
    link_id: str
    doctor_id: str
    clinic_id: str
    created_at: datetime


__all__ = [
    "DoctorCreate",
    "DoctorResponse",
    "ClinicCreate",
    "ClinicResponse",
    "DoctorClinicAssign",
    "DoctorClinicResponse",
]
