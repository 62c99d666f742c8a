from datetime import date, datetime, time, timezone

import pytest
from pydantic import ValidationError as SchemaValidationError

from app.db.models import AvailabilityRule, Booking, BookingStatus, RecurrenceKind
from app.db.schemas import AvailabilityRuleCreate, AvailabilityRuleUpdate, BreakInterval
from app.services.v1 import (
    AvailabilityService,
    SlotGrid,
    compute_slots,
    day_of_week,
    minutes_to_hhmm,
    rule_matches,
    select_rule,
)
from common import ConflictError

from conftest import MONDAY


def make_rule(**overrides) -> AvailabilityRule:
    values = dict(
        rule_id="r1",
        doctor_id="d1",
        clinic_id="c1",
        recurrence=RecurrenceKind.WEEKLY,
        day_of_week=1,
        day_of_month=None,
        start_time=time(9, 0),
        end_time=time(12, 0),
        breaks=[],
        is_active=True,
        created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
    )
    values.update(overrides)
    return AvailabilityRule(**values)


# Pure slot arithmetic


def test_break_excludes_slots_and_consumes_no_serial():
    grid = SlotGrid(start_minute=540, end_minute=600, slot_duration=15, breaks=[{"start": 570, "end": 600}])
    slots = list(grid)
    assert [(s.start, s.end, s.serial) for s in slots] == [
        ("09:00", "09:15", 1),
        ("09:15", "09:30", 2),
    ]


def test_mid_window_break_keeps_serials_contiguous():
    grid = SlotGrid(540, 660, 15, breaks=[{"start": 570, "end": 600}])
    slots = list(grid)
    assert [s.start for s in slots] == ["09:00", "09:15", "10:00", "10:15", "10:30", "10:45"]
    assert [s.serial for s in slots] == [1, 2, 3, 4, 5, 6]


def test_break_boundary_is_half_open():
    # a slot starting exactly at break end is emitted
    grid = SlotGrid(540, 600, 15, breaks=[{"start": 540, "end": 555}])
    assert [s.start for s in grid] == ["09:15", "09:30", "09:45"]


def test_last_slot_must_fit_entirely():
    grid = SlotGrid(540, 590, 15)
    assert [s.end for s in grid] == ["09:15", "09:30", "09:45"]


def test_booked_serials_mark_slots_unavailable():
    grid = compute_slots(make_rule(), booked_serials=[2, 5])
    unavailable = [s.serial for s in grid if not s.available]
    assert unavailable == [2, 5]


def test_grid_is_restartable():
    grid = compute_slots(make_rule())
    assert list(grid) == list(grid)
    assert len(list(grid)) == 12


def test_minutes_to_hhmm():
    assert minutes_to_hhmm(0) == "00:00"
    assert minutes_to_hhmm(545) == "09:05"
    assert minutes_to_hhmm(1439) == "23:59"


# Rule matching


def test_day_of_week_is_sunday_based():
    assert day_of_week(date(2025, 6, 1)) == 0  # Sunday
    assert day_of_week(MONDAY) == 1
    assert day_of_week(date(2025, 6, 7)) == 6  # Saturday


def test_daily_and_monthly_matching():
    daily = make_rule(recurrence=RecurrenceKind.DAILY, day_of_week=None)
    monthly = make_rule(recurrence=RecurrenceKind.MONTHLY, day_of_week=None, day_of_month=2)
    assert rule_matches(daily, date(2025, 6, 5))
    assert rule_matches(monthly, date(2025, 6, 2))
    assert not rule_matches(monthly, date(2025, 6, 3))


def test_most_specific_rule_wins():
    daily = make_rule(rule_id="daily", recurrence=RecurrenceKind.DAILY, day_of_week=None)
    weekly = make_rule(rule_id="weekly")
    monthly = make_rule(
        rule_id="monthly", recurrence=RecurrenceKind.MONTHLY, day_of_week=None, day_of_month=2
    )
    assert select_rule([daily, weekly, monthly], MONDAY).rule_id == "monthly"
    assert select_rule([daily, weekly], MONDAY).rule_id == "weekly"
    assert select_rule([daily, weekly], date(2025, 6, 3)).rule_id == "daily"


def test_inactive_rules_are_ignored():
    assert select_rule([make_rule(is_active=False)], MONDAY) is None


# Against the database


async def test_monday_grid_has_twelve_open_slots(db_manager, seed):
    async with db_manager.session() as session:
        slots = await AvailabilityService(session).get_slots_for_date(
            seed.doctor_id, seed.clinic_id, MONDAY, 15
        )
    assert len(slots) == 12
    assert all(s.available for s in slots)
    assert [s.serial for s in slots] == list(range(1, 13))
    assert slots[0].start == "09:00" and slots[-1].end == "12:00"


async def test_resolve_rule_is_idempotent(db_manager, seed):
    async with db_manager.session() as session:
        service = AvailabilityService(session)
        first = await service.resolve_rule(seed.doctor_id, seed.clinic_id, MONDAY)
        second = await service.resolve_rule(seed.doctor_id, seed.clinic_id, MONDAY)
    assert first is not None
    assert first.rule_id == second.rule_id == seed.rule_id


async def test_no_rule_means_no_slots(db_manager, seed):
    async with db_manager.session() as session:
        slots = await AvailabilityService(session).get_slots_for_date(
            seed.doctor_id, seed.clinic_id, date(2025, 6, 3), 15
        )
    assert slots == []


async def test_existing_booking_marks_its_serial(db_manager, seed):
    async with db_manager.session() as session:
        session.add(
            Booking(
                doctor_id=seed.doctor_id,
                clinic_id=seed.clinic_id,
                patient_id=seed.patient_x,
                booking_status=BookingStatus.PENDING,
                daily_serial=3,
                serial_date=MONDAY,
            )
        )
    async with db_manager.session() as session:
        slots = await AvailabilityService(session).get_slots_for_date(
            seed.doctor_id, seed.clinic_id, MONDAY, 15
        )
    assert [s.serial for s in slots if not s.available] == [3]


async def test_next_available_date_scans_forward_inclusive(db_manager, seed):
    async with db_manager.session() as session:
        service = AvailabilityService(session)
        # from Tuesday, the next Monday is six days later
        found = await service.next_available_date(
            seed.doctor_id, seed.clinic_id, date(2025, 6, 3), max_days=30
        )
        same_day = await service.next_available_date(
            seed.doctor_id, seed.clinic_id, MONDAY, max_days=1
        )
    assert found == date(2025, 6, 9)
    assert same_day == MONDAY


async def test_next_available_date_fails_closed(db_manager, seed):
    async with db_manager.session() as session:
        found = await AvailabilityService(session).next_available_date(
            seed.doctor_id, seed.clinic_id, date(2025, 6, 3), max_days=6
        )
    assert found is None


async def test_next_available_skips_fully_booked_day(db_manager, seed):
    async with db_manager.session() as session:
        session.add_all(
            Booking(
                doctor_id=seed.doctor_id,
                clinic_id=seed.clinic_id,
                patient_id=seed.patient_x,
                booking_status=BookingStatus.CONFIRMED,
                daily_serial=serial,
                serial_date=MONDAY,
            )
            for serial in range(1, 13)
        )
    async with db_manager.session() as session:
        found = await AvailabilityService(session).next_available_date(
            seed.doctor_id, seed.clinic_id, MONDAY, max_days=14
        )
    assert found == date(2025, 6, 9)


@pytest.mark.parametrize(
    "scheduled,code",
    [
        (datetime(2025, 6, 2, 8, 59, tzinfo=timezone.utc), "OUTSIDE_HOURS"),
        (datetime(2025, 6, 2, 12, 0, tzinfo=timezone.utc), "OUTSIDE_HOURS"),
        (datetime(2025, 6, 2, 10, 30, tzinfo=timezone.utc), "DURING_BREAK"),
    ],
)
async def test_scheduled_time_is_checked_against_window(db_manager, seed, scheduled, code):
    async with db_manager.session() as session:
        rule = await session.get(AvailabilityRule, seed.rule_id)
        rule.breaks = [{"start": 600, "end": 660}]

    async with db_manager.session() as session:
        with pytest.raises(ConflictError) as exc_info:
            await AvailabilityService(session).assert_within_availability(
                seed.doctor_id, seed.clinic_id, MONDAY, scheduled
            )
    assert exc_info.value.code == code


async def test_scheduled_time_inside_window_passes(db_manager, seed):
    async with db_manager.session() as session:
        rule = await AvailabilityService(session).assert_within_availability(
            seed.doctor_id,
            seed.clinic_id,
            MONDAY,
            datetime(2025, 6, 2, 9, 0, tzinfo=timezone.utc),
        )
    assert rule.rule_id == seed.rule_id


# Rule management


async def test_second_active_rule_for_same_day_is_rejected(db_manager, seed):
    payload = AvailabilityRuleCreate(
        clinic_id=seed.clinic_id,
        day_of_week=1,
        start_time="13:00",
        end_time="15:00",
    )
    async with db_manager.session() as session:
        with pytest.raises(ConflictError) as exc_info:
            await AvailabilityService(session).create_rule(seed.doctor_id, payload)
    assert exc_info.value.code == "RULE_EXISTS"


async def test_deactivate_then_replace_rule(db_manager, seed):
    async with db_manager.session() as session:
        service = AvailabilityService(session)
        await service.deactivate_rule(seed.doctor_id, seed.rule_id)
        created = await service.create_rule(
            seed.doctor_id,
            AvailabilityRuleCreate(
                clinic_id=seed.clinic_id,
                day_of_week=1,
                start_time="14:00",
                end_time="15:00",
                breaks=[BreakInterval(start=870, end=880)],
            ),
        )
        active = await service.list_rules(seed.doctor_id)
        everything = await service.list_rules(seed.doctor_id, active_only=False)

    assert [r.rule_id for r in active] == [created.rule_id]
    assert len(everything) == 2
    assert created.start_time == time(14, 0)
    assert created.breaks == [{"start": 870, "end": 880}]


async def test_reactivating_a_duplicate_rule_is_rejected(db_manager, seed):
    async with db_manager.session() as session:
        service = AvailabilityService(session)
        await service.deactivate_rule(seed.doctor_id, seed.rule_id)
        await service.create_rule(
            seed.doctor_id,
            AvailabilityRuleCreate(
                clinic_id=seed.clinic_id, day_of_week=1, start_time="14:00", end_time="15:00"
            ),
        )
        with pytest.raises(ConflictError):
            await service.update_rule(
                seed.doctor_id, seed.rule_id, AvailabilityRuleUpdate(is_active=True)
            )


@pytest.mark.parametrize("field", ["startTime", "endTime", "recurrence", "isActive"])
def test_rule_update_rejects_null_for_required_columns(field):
    with pytest.raises(SchemaValidationError, match=f"{field} cannot be null"):
        AvailabilityRuleUpdate.model_validate({field: None})


async def test_rule_update_can_clear_day_selector_when_switching_to_daily(db_manager, seed):
    payload = AvailabilityRuleUpdate.model_validate({"recurrence": "daily", "dayOfWeek": None})
    async with db_manager.session() as session:
        rule = await AvailabilityService(session).update_rule(seed.doctor_id, seed.rule_id, payload)

    assert rule.recurrence == RecurrenceKind.DAILY
    assert rule.day_of_week is None
    assert rule.start_time == time(9, 0)
