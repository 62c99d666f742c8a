# app/db/schemas/patient_schema.py
from pydantic import Field
from datetime import date, datetime
from typing import Optional
from .base_schema import CamelModel


class PatientBase(CamelModel):
    name: str = Field(..., min_length=2, max_length=100)
    date_of_birth: Optional[date] = None
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")


class PatientCreate(PatientBase):
    pass


class PatientResponse(PatientBase):
    patient_id: str
    created_at: datetime
    updated_at: datetime


__all__ = ["PatientCreate", "PatientResponse"]
