# app/services/v1/availability_service.py
"""
Availability resolution and slot grids.

Times inside a rule are minutes since midnight. Break intervals are half-open
`[start, end)`. Slot serials count emitted slots only, so a break consumes no
serial and the n-th bookable slot of the day is always serial n.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Iterable, Iterator, Optional, Sequence
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.db.models import AvailabilityRule, Booking, RecurrenceKind
from app.db.schemas import AvailabilityRuleCreate, AvailabilityRuleUpdate
from common import ConflictError, NotFoundError, ValidationError, get_app_logger
from .doctor_service import DoctorService

logger = get_app_logger(__name__)

# Most specific recurrence wins when several active rules match one date
RECURRENCE_PRIORITY = {
    RecurrenceKind.MONTHLY: 0,
    RecurrenceKind.WEEKLY: 1,
    RecurrenceKind.DAILY: 2,
}


def time_to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def minutes_to_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_hhmm(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def day_of_week(on_date: date) -> int:
    """0=Sunday .. 6=Saturday."""
    return (on_date.weekday() + 1) % 7


def in_break(minute: int, breaks: Iterable[dict[str, Any]]) -> bool:
    return any(b["start"] <= minute < b["end"] for b in breaks)


def rule_matches(rule: AvailabilityRule, on_date: date) -> bool:
    if rule.recurrence == RecurrenceKind.DAILY:
        return True
    if rule.recurrence == RecurrenceKind.WEEKLY:
        return rule.day_of_week == day_of_week(on_date)
    if rule.recurrence == RecurrenceKind.MONTHLY:
        return rule.day_of_month == on_date.day
    return False


def select_rule(rules: Sequence[AvailabilityRule], on_date: date) -> Optional[AvailabilityRule]:
    """Pick the one active rule governing `on_date`, or None."""
    candidates = [r for r in rules if r.is_active and rule_matches(r, on_date)]
    if not candidates:
        return None
    return min(
        candidates,
        key=lambda r: (RECURRENCE_PRIORITY[r.recurrence], r.created_at, r.rule_id),
    )


@dataclass(frozen=True)
class Slot:
    start: str
    end: str
    available: bool
    serial: int


class SlotGrid:
    """
    The bookable slots of one day, generated on iteration.

    Each `iter()` walks the window again, so a grid can be consumed more
    than once and never holds a materialized list.
    """

    def __init__(
        self,
        start_minute: int,
        end_minute: int,
        slot_duration: int,
        breaks: Sequence[dict[str, Any]] = (),
        booked_serials: frozenset[int] = frozenset(),
    ):
        if slot_duration <= 0:
            raise ValueError("slot_duration must be positive")
        self.start_minute = start_minute
        self.end_minute = end_minute
        self.slot_duration = slot_duration
        self.breaks = tuple(breaks)
        self.booked_serials = booked_serials

    @classmethod
    def from_rule(
        cls,
        rule: AvailabilityRule,
        booked_serials: frozenset[int] = frozenset(),
        slot_duration: int = 15,
    ) -> "SlotGrid":
        return cls(
            start_minute=time_to_minutes(rule.start_time),
            end_minute=time_to_minutes(rule.end_time),
            slot_duration=slot_duration,
            breaks=rule.breaks or (),
            booked_serials=booked_serials,
        )

    def __iter__(self) -> Iterator[Slot]:
        serial = 1
        cursor = self.start_minute
        while cursor + self.slot_duration <= self.end_minute:
            if not in_break(cursor, self.breaks):
                yield Slot(
                    start=minutes_to_hhmm(cursor),
                    end=minutes_to_hhmm(cursor + self.slot_duration),
                    available=serial not in self.booked_serials,
                    serial=serial,
                )
                serial += 1
            cursor += self.slot_duration

    def has_available(self) -> bool:
        return any(slot.available for slot in self)


def compute_slots(
    rule: AvailabilityRule,
    booked_serials: Iterable[int] = (),
    slot_duration: int = 15,
) -> SlotGrid:
    return SlotGrid.from_rule(rule, frozenset(booked_serials), slot_duration)


class AvailabilityService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # Resolution

    async def _active_rules(self, doctor_id: str, clinic_id: str) -> list[AvailabilityRule]:
        query = (
            select(AvailabilityRule)
            .where(AvailabilityRule.doctor_id == doctor_id)
            .where(AvailabilityRule.clinic_id == clinic_id)
            .where(AvailabilityRule.is_active.is_(True))
            .execution_options(logging_token="AvailabilityService._active_rules")
        )
        return list((await self.db.execute(query)).scalars())

    async def _booked_serials(
        self, doctor_id: str, clinic_id: str, from_date: date, to_date: date
    ) -> dict[date, set[int]]:
        query = (
            select(Booking.serial_date, Booking.daily_serial)
            .where(Booking.doctor_id == doctor_id)
            .where(Booking.clinic_id == clinic_id)
            .where(Booking.serial_date >= from_date)
            .where(Booking.serial_date <= to_date)
            .execution_options(logging_token="AvailabilityService._booked_serials")
        )
        booked: dict[date, set[int]] = {}
        for serial_date, daily_serial in await self.db.execute(query):
            booked.setdefault(serial_date, set()).add(daily_serial)
        return booked

    async def resolve_rule(
        self, doctor_id: str, clinic_id: str, on_date: date
    ) -> Optional[AvailabilityRule]:
        return select_rule(await self._active_rules(doctor_id, clinic_id), on_date)

    async def get_slots_for_date(
        self,
        doctor_id: str,
        clinic_id: str,
        on_date: date,
        slot_duration: int = 15,
    ) -> list[Slot]:
        rule = await self.resolve_rule(doctor_id, clinic_id, on_date)
        if rule is None:
            return []
        booked = await self._booked_serials(doctor_id, clinic_id, on_date, on_date)
        return list(compute_slots(rule, booked.get(on_date, ()), slot_duration))

    async def next_available_date(
        self,
        doctor_id: str,
        clinic_id: str,
        from_date: date,
        max_days: int = 30,
        slot_duration: int = 15,
    ) -> Optional[date]:
        """
        First date in [from_date, from_date + max_days) with an open slot.

        Rules and bookings for the whole window are read up front; the scan
        itself does no I/O.
        """
        if max_days < 1:
            return None

        rules = await self._active_rules(doctor_id, clinic_id)
        if not rules:
            return None

        last_date = from_date + timedelta(days=max_days - 1)
        booked = await self._booked_serials(doctor_id, clinic_id, from_date, last_date)

        for offset in range(max_days):
            on_date = from_date + timedelta(days=offset)
            rule = select_rule(rules, on_date)
            if rule is None:
                continue
            grid = compute_slots(rule, booked.get(on_date, ()), slot_duration)
            if grid.has_available():
                return on_date
        return None

    async def assert_within_availability(
        self,
        doctor_id: str,
        clinic_id: str,
        serial_date: date,
        scheduled_at: Optional[datetime] = None,
    ) -> AvailabilityRule:
        """
        Raises:
            ConflictError: NO_AVAILABILITY, OUTSIDE_HOURS or DURING_BREAK
        """
        rule = await self.resolve_rule(doctor_id, clinic_id, serial_date)
        if rule is None:
            raise ConflictError(
                "Doctor is not available at this clinic on the requested date",
                code="NO_AVAILABILITY",
            )

        if scheduled_at is not None:
            # Time of day is compared in UTC; naive datetimes are taken as UTC
            if scheduled_at.tzinfo is not None:
                scheduled_at = scheduled_at.astimezone(timezone.utc)
            requested = scheduled_at.hour * 60 + scheduled_at.minute
            start = time_to_minutes(rule.start_time)
            end = time_to_minutes(rule.end_time)

            if requested < start or requested >= end:
                raise ConflictError(
                    "Scheduled time is outside doctor availability "
                    f"({minutes_to_hhmm(start)}-{minutes_to_hhmm(end)})",
                    code="OUTSIDE_HOURS",
                )
            if in_break(requested, rule.breaks or ()):
                raise ConflictError(
                    "Scheduled time falls within a break period",
                    code="DURING_BREAK",
                )

        return rule

    # Rule management

    async def list_rules(
        self,
        doctor_id: str,
        clinic_id: Optional[str] = None,
        active_only: bool = True,
    ) -> list[AvailabilityRule]:
        query = select(AvailabilityRule).where(AvailabilityRule.doctor_id == doctor_id)
        if clinic_id:
            query = query.where(AvailabilityRule.clinic_id == clinic_id)
        if active_only:
            query = query.where(AvailabilityRule.is_active.is_(True))
        query = query.order_by(
            AvailabilityRule.recurrence,
            AvailabilityRule.day_of_week,
            AvailabilityRule.day_of_month,
        )
        return list((await self.db.execute(query)).scalars())

    async def get_rule(self, doctor_id: str, rule_id: str) -> AvailabilityRule:
        query = (
            select(AvailabilityRule)
            .where(AvailabilityRule.rule_id == rule_id)
            .where(AvailabilityRule.doctor_id == doctor_id)
        )
        rule = (await self.db.execute(query)).scalar_one_or_none()
        if rule is None:
            raise NotFoundError("Availability rule")
        return rule

    async def _assert_slot_free(
        self,
        doctor_id: str,
        clinic_id: str,
        recurrence: RecurrenceKind,
        day_of_week_value: Optional[int],
        day_of_month_value: Optional[int],
        exclude_rule_id: Optional[str] = None,
    ) -> None:
        """At most one active rule per (doctor, clinic, recurrence key)."""
        query = (
            select(AvailabilityRule.rule_id)
            .where(AvailabilityRule.doctor_id == doctor_id)
            .where(AvailabilityRule.clinic_id == clinic_id)
            .where(AvailabilityRule.is_active.is_(True))
            .where(AvailabilityRule.recurrence == recurrence)
        )
        if recurrence == RecurrenceKind.WEEKLY:
            query = query.where(AvailabilityRule.day_of_week == day_of_week_value)
        elif recurrence == RecurrenceKind.MONTHLY:
            query = query.where(AvailabilityRule.day_of_month == day_of_month_value)
        if exclude_rule_id:
            query = query.where(AvailabilityRule.rule_id != exclude_rule_id)

        if (await self.db.execute(query.limit(1))).scalar_one_or_none() is not None:
            raise ConflictError(
                "An active rule already exists for this doctor/clinic/day combination. "
                "Deactivate the existing rule first.",
                code="RULE_EXISTS",
            )

    async def create_rule(
        self, doctor_id: str, payload: AvailabilityRuleCreate
    ) -> AvailabilityRule:
        doctors = DoctorService(self.db)
        await doctors.get_doctor(doctor_id)
        clinic_id = str(payload.clinic_id)
        await doctors.get_clinic(clinic_id)

        if payload.is_active:
            await self._assert_slot_free(
                doctor_id,
                clinic_id,
                payload.recurrence,
                payload.day_of_week,
                payload.day_of_month,
            )

        rule = AvailabilityRule(
            doctor_id=doctor_id,
            clinic_id=clinic_id,
            recurrence=payload.recurrence,
            day_of_week=payload.day_of_week,
            day_of_month=payload.day_of_month,
            start_time=parse_hhmm(payload.start_time),
            end_time=parse_hhmm(payload.end_time),
            breaks=[b.model_dump() for b in payload.breaks],
            is_active=payload.is_active,
        )
        self.db.add(rule)
        await self.db.commit()
        logger.info(
            "Availability rule created",
            doctor_id=doctor_id,
            clinic_id=clinic_id,
            rule_id=rule.rule_id,
            recurrence=rule.recurrence.value,
        )
        return rule

    async def update_rule(
        self, doctor_id: str, rule_id: str, payload: AvailabilityRuleUpdate
    ) -> AvailabilityRule:
        rule = await self.get_rule(doctor_id, rule_id)
        changes = payload.model_dump(exclude_unset=True)

        for field in ("start_time", "end_time"):
            if changes.get(field) is not None:
                changes[field] = parse_hhmm(changes[field])
        if "breaks" in changes:
            changes["breaks"] = changes["breaks"] or []

        start = changes.get("start_time", rule.start_time)
        end = changes.get("end_time", rule.end_time)
        if end <= start:
            raise ValidationError(
                "endTime must be after startTime",
                fields={"endTime": ["must be after startTime"]},
            )

        recurrence = changes.get("recurrence") or rule.recurrence
        dow = changes.get("day_of_week", rule.day_of_week)
        dom = changes.get("day_of_month", rule.day_of_month)
        if recurrence == RecurrenceKind.WEEKLY and dow is None:
            raise ValidationError(fields={"dayOfWeek": ["required for weekly rules"]})
        if recurrence == RecurrenceKind.MONTHLY and dom is None:
            raise ValidationError(fields={"dayOfMonth": ["required for monthly rules"]})

        if changes.get("is_active", rule.is_active):
            await self._assert_slot_free(
                doctor_id, rule.clinic_id, recurrence, dow, dom, exclude_rule_id=rule_id
            )

        for field, value in changes.items():
            setattr(rule, field, value)
        await self.db.commit()
        return rule

    async def deactivate_rule(self, doctor_id: str, rule_id: str) -> AvailabilityRule:
        rule = await self.get_rule(doctor_id, rule_id)
        rule.is_active = False
        await self.db.commit()
        logger.info("Availability rule deactivated", doctor_id=doctor_id, rule_id=rule_id)
        return rule


__all__ = [
    "AvailabilityService",
    "SlotGrid",
    "Slot",
    "compute_slots",
    "select_rule",
    "rule_matches",
    "day_of_week",
    "time_to_minutes",
    "minutes_to_hhmm",
    "parse_hhmm",
]
