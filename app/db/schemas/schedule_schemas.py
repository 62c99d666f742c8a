# app/db/schemas/schedule_schemas.py
from pydantic import Field, field_validator, model_validator
from datetime import date, datetime, time
from typing import Optional
from uuid import UUID
from ..models import RecurrenceKind
from .base_schema import CamelModel, HHMM_PATTERN, format_hhmm


class BreakInterval(CamelModel):
    """Half-open [start, end) in minutes since midnight."""

    start: int = Field(..., ge=0, le=1440)
    end: int = Field(..., ge=0, le=1440)

    @model_validator(mode="after")
    def validate_order(self) -> "BreakInterval":
        if self.end <= self.start:
            raise ValueError("break end must be after break start")
        return self


class AvailabilityRuleBase(CamelModel):
    recurrence: RecurrenceKind = RecurrenceKind.WEEKLY
    day_of_week: Optional[int] = Field(None, ge=0, le=6, description="0=Sunday")
    day_of_month: Optional[int] = Field(None, ge=1, le=31)
    start_time: str = Field(..., pattern=HHMM_PATTERN, examples=["09:00"])
    end_time: str = Field(..., pattern=HHMM_PATTERN, examples=["17:00"])
    breaks: list[BreakInterval] = Field(default_factory=list)


class AvailabilityRuleCreate(AvailabilityRuleBase):
    clinic_id: UUID
    is_active: bool = True

    @model_validator(mode="after")
    def validate_window(self) -> "AvailabilityRuleCreate":
        if self.end_time <= self.start_time:
            raise ValueError("endTime must be after startTime")
        if self.recurrence == RecurrenceKind.WEEKLY and self.day_of_week is None:
            raise ValueError("dayOfWeek is required for weekly rules")
        if self.recurrence == RecurrenceKind.MONTHLY and self.day_of_month is None:
            raise ValueError("dayOfMonth is required for monthly rules")
        return self


class AvailabilityRuleUpdate(CamelModel):
    recurrence: Optional[RecurrenceKind] = None
    day_of_week: Optional[int] = Field(None, ge=0, le=6)
    day_of_month: Optional[int] = Field(None, ge=1, le=31)
    start_time: Optional[str] = Field(None, pattern=HHMM_PATTERN)
    end_time: Optional[str] = Field(None, pattern=HHMM_PATTERN)
    breaks: Optional[list[BreakInterval]] = None
    is_active: Optional[bool] = None

    @model_validator(mode="after")
    def reject_explicit_nulls(self) -> "AvailabilityRuleUpdate":
        # Omit a field to keep it; null only clears the day selectors and breaks
        for name in ("recurrence", "start_time", "end_time", "is_active"):
            if name in self.model_fields_set and getattr(self, name) is None:
                alias = type(self).model_fields[name].alias or name
                raise ValueError(f"{alias} cannot be null")
        return self


class AvailabilityRuleResponse(AvailabilityRuleBase):
    rule_id: str
    doctor_id: str
    clinic_id: str
    is_active: bool
    created_at: datetime

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def render_time(cls, v: object) -> object:
        return format_hhmm(v) if isinstance(v, time) else v


class TimeSlot(CamelModel):
    start: str
    end: str
    available: bool
    serial: int


class SlotsResponse(CamelModel):
    date: date
    slots: list[TimeSlot]


class NextAvailableResponse(CamelModel):
    next_available_date: Optional[date] = None


__all__ = [
    "BreakInterval",
    "AvailabilityRuleCreate",
    "AvailabilityRuleUpdate",
    "AvailabilityRuleResponse",
    "TimeSlot",
    "SlotsResponse",
    "NextAvailableResponse",
]
