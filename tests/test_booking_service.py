import json
from datetime import date, datetime, timezone

import pytest

from app.db.models import AppointmentType, AvailabilityRule, BookingStatus
from app.db.schemas import BookingCreate, BookingUpdate
from common import ConflictError, NotFoundError, ValidationError

from conftest import MONDAY


def request_for(seed, **overrides) -> BookingCreate:
    values = dict(clinic_id=seed.clinic_id, patient_id=seed.patient_x, serial_date=MONDAY)
    values.update(overrides)
    return BookingCreate(**values)


def drain(subscriber) -> list[tuple[str, dict]]:
    frames = []
    while not subscriber.queue.empty():
        raw = subscriber.queue.get_nowait()
        lines = dict(line.split(": ", 1) for line in raw.strip().split("\n"))
        frames.append((lines["event"], json.loads(lines["data"])))
    return frames


# Admission preconditions


async def test_unknown_doctor_is_not_found(booking_service, seed):
    with pytest.raises(NotFoundError):
        await booking_service.create_booking(
            "00000000-0000-0000-0000-000000000000", request_for(seed)
        )


async def test_doctor_must_work_at_the_clinic(booking_service, seed):
    with pytest.raises(ConflictError) as exc_info:
        await booking_service.create_booking(
            seed.doctor_id, request_for(seed, clinic_id=seed.other_clinic_id)
        )
    assert exc_info.value.code == "DOCTOR_NOT_IN_CLINIC"


async def test_day_without_a_rule_is_rejected(booking_service, seed):
    with pytest.raises(ConflictError) as exc_info:
        await booking_service.create_booking(
            seed.doctor_id, request_for(seed, serial_date=date(2025, 6, 3))
        )
    assert exc_info.value.code == "NO_AVAILABILITY"


async def test_scheduled_time_outside_hours_is_rejected(booking_service, seed):
    with pytest.raises(ConflictError) as exc_info:
        await booking_service.create_booking(
            seed.doctor_id,
            request_for(seed, scheduled_at=datetime(2025, 6, 2, 13, 0, tzinfo=timezone.utc)),
        )
    assert exc_info.value.code == "OUTSIDE_HOURS"


async def test_scheduled_time_in_break_is_rejected(booking_service, db_manager, seed):
    async with db_manager.session() as session:
        rule = await session.get(AvailabilityRule, seed.rule_id)
        rule.breaks = [{"start": 630, "end": 645}]

    with pytest.raises(ConflictError) as exc_info:
        await booking_service.create_booking(
            seed.doctor_id,
            request_for(seed, scheduled_at=datetime(2025, 6, 2, 10, 35, tzinfo=timezone.utc)),
        )
    assert exc_info.value.code == "DURING_BREAK"


async def test_unknown_patient_is_not_found(booking_service, seed):
    with pytest.raises(NotFoundError):
        await booking_service.create_booking(
            seed.doctor_id,
            request_for(seed, patient_id="00000000-0000-0000-0000-000000000001"),
        )


async def test_rejected_admission_publishes_nothing(booking_service, hub, seed):
    subscriber = hub.subscribe(seed.doctor_id, MONDAY)
    drain(subscriber)

    with pytest.raises(ConflictError):
        await booking_service.create_booking(
            seed.doctor_id, request_for(seed, clinic_id=seed.other_clinic_id)
        )
    assert drain(subscriber) == []


# Events


async def test_created_event_carries_serial_and_position(booking_service, hub, seed):
    subscriber = hub.subscribe(seed.doctor_id, MONDAY)
    await booking_service.create_booking(seed.doctor_id, request_for(seed))
    booking = await booking_service.create_booking(
        seed.doctor_id, request_for(seed, patient_id=seed.patient_y)
    )

    frames = drain(subscriber)
    assert [name for name, _ in frames] == ["connected", "booking_created", "booking_created"]

    _, payload = frames[-1]
    assert payload["bookingId"] == booking.booking_id
    assert payload["serial"] == 2
    assert payload["status"] == "pending"
    assert payload["position"] == 2
    assert payload["estimatedWaitMinutes"] == 15
    assert "patientId" not in payload


async def test_wait_estimate_uses_appointment_type_duration(booking_service, db_manager, hub, seed):
    async with db_manager.session() as session:
        visit = AppointmentType(doctor_id=seed.doctor_id, name="Consultation", duration_minutes=20)
        session.add(visit)

    subscriber = hub.subscribe(seed.doctor_id, MONDAY)
    await booking_service.create_booking(seed.doctor_id, request_for(seed))
    await booking_service.create_booking(
        seed.doctor_id, request_for(seed, appointment_type_id=visit.appointment_type_id)
    )

    _, payload = drain(subscriber)[-1]
    assert payload["estimatedWaitMinutes"] == 20


async def test_patient_subscriber_only_sees_own_bookings(booking_service, hub, seed):
    mine = hub.subscribe(seed.doctor_id, MONDAY, patient_filter=seed.patient_x)
    await booking_service.create_booking(seed.doctor_id, request_for(seed, patient_id=seed.patient_y))
    await booking_service.create_booking(seed.doctor_id, request_for(seed))

    frames = drain(mine)
    assert [name for name, _ in frames] == ["connected", "booking_created"]
    assert frames[-1][1]["serial"] == 2


# Lifecycle


async def test_pending_cannot_jump_to_completed(booking_service, seed):
    booking = await booking_service.create_booking(seed.doctor_id, request_for(seed))
    with pytest.raises(ConflictError) as exc_info:
        await booking_service.update_booking(
            booking.booking_id, BookingUpdate(booking_status=BookingStatus.COMPLETED)
        )
    assert exc_info.value.code == "INVALID_TRANSITION"


async def test_completed_booking_cannot_be_cancelled(booking_service, seed):
    booking = await booking_service.create_booking(seed.doctor_id, request_for(seed))
    await booking_service.update_booking(
        booking.booking_id, BookingUpdate(booking_status=BookingStatus.CONFIRMED)
    )
    await booking_service.update_booking(
        booking.booking_id, BookingUpdate(booking_status=BookingStatus.COMPLETED)
    )

    with pytest.raises(ConflictError) as exc_info:
        await booking_service.update_booking(
            booking.booking_id,
            BookingUpdate(booking_status=BookingStatus.CANCELLED, cancel_note="too late"),
        )
    assert exc_info.value.code == "INVALID_TRANSITION"

    stored = await booking_service.get_booking(booking.booking_id)
    assert stored.booking_status == BookingStatus.COMPLETED


async def test_cancel_requires_a_note(booking_service, hub, seed):
    booking = await booking_service.create_booking(seed.doctor_id, request_for(seed))
    subscriber = hub.subscribe(seed.doctor_id, MONDAY)

    for note in (None, "   "):
        with pytest.raises(ValidationError) as exc_info:
            await booking_service.update_booking(
                booking.booking_id,
                BookingUpdate(booking_status=BookingStatus.CANCELLED, cancel_note=note),
            )
        assert exc_info.value.code == "CANCEL_NOTE_REQUIRED"
        assert "cancelNote" in exc_info.value.fields

    stored = await booking_service.get_booking(booking.booking_id)
    assert stored.booking_status == BookingStatus.PENDING
    assert [name for name, _ in drain(subscriber)] == ["connected"]


async def test_confirmed_booking_cancelled_with_note(booking_service, hub, seed):
    booking = await booking_service.create_booking(seed.doctor_id, request_for(seed))
    await booking_service.update_booking(
        booking.booking_id, BookingUpdate(booking_status=BookingStatus.CONFIRMED)
    )
    subscriber = hub.subscribe(seed.doctor_id, MONDAY)

    with pytest.raises(ValidationError):
        await booking_service.update_booking(
            booking.booking_id, BookingUpdate(booking_status=BookingStatus.CANCELLED)
        )
    updated = await booking_service.update_booking(
        booking.booking_id,
        BookingUpdate(booking_status=BookingStatus.CANCELLED, cancel_note="patient request"),
    )

    assert updated.booking_status == BookingStatus.CANCELLED
    assert updated.cancel_note == "patient request"
    frames = drain(subscriber)
    assert [name for name, _ in frames] == ["connected", "booking_cancelled"]
    assert frames[-1][1]["status"] == "cancelled"


async def test_status_update_publishes_booking_updated(booking_service, hub, seed):
    booking = await booking_service.create_booking(seed.doctor_id, request_for(seed))
    subscriber = hub.subscribe(seed.doctor_id, MONDAY)

    await booking_service.update_booking(
        booking.booking_id, BookingUpdate(booking_status=BookingStatus.CONFIRMED)
    )
    frames = drain(subscriber)
    assert frames[-1][0] == "booking_updated"
    assert frames[-1][1]["status"] == "confirmed"


async def test_rescheduling_is_checked_against_availability(booking_service, seed):
    booking = await booking_service.create_booking(seed.doctor_id, request_for(seed))
    with pytest.raises(ConflictError) as exc_info:
        await booking_service.update_booking(
            booking.booking_id,
            BookingUpdate(scheduled_at=datetime(2025, 6, 2, 18, 0, tzinfo=timezone.utc)),
        )
    assert exc_info.value.code == "OUTSIDE_HOURS"


async def test_update_unknown_booking(booking_service, seed):
    with pytest.raises(NotFoundError):
        await booking_service.update_booking(
            "missing", BookingUpdate(booking_status=BookingStatus.CONFIRMED)
        )


async def test_hard_delete_publishes_cancellation_without_status(booking_service, hub, seed):
    booking = await booking_service.create_booking(seed.doctor_id, request_for(seed))
    subscriber = hub.subscribe(seed.doctor_id, MONDAY)

    await booking_service.delete_booking(booking.booking_id)

    frames = drain(subscriber)
    assert frames[-1][0] == "booking_cancelled"
    assert "status" not in frames[-1][1]
    with pytest.raises(NotFoundError):
        await booking_service.get_booking(booking.booking_id)


async def test_failed_publish_does_not_fail_the_write(booking_service, hub, seed, monkeypatch):
    def explode(event):
        raise RuntimeError("hub down")

    monkeypatch.setattr(hub, "publish", explode)
    booking = await booking_service.create_booking(seed.doctor_id, request_for(seed))

    stored = await booking_service.get_booking(booking.booking_id)
    assert stored.daily_serial == 1


# Reads


async def test_doctor_queue_is_ordered_by_serial(booking_service, seed):
    for patient in (seed.patient_x, seed.patient_y, seed.patient_x):
        await booking_service.create_booking(seed.doctor_id, request_for(seed, patient_id=patient))

    queue = await booking_service.list_doctor_queue(seed.doctor_id, MONDAY)
    assert [b.daily_serial for b in queue] == [1, 2, 3]

    own = await booking_service.list_doctor_queue(seed.doctor_id, MONDAY, patient_id=seed.patient_y)
    assert [b.daily_serial for b in own] == [2]


async def test_list_bookings_paginates(booking_service, seed):
    for _ in range(5):
        await booking_service.create_booking(seed.doctor_id, request_for(seed))

    rows, total, total_pages = await booking_service.list_bookings(
        page=2, limit=2, doctor_id=seed.doctor_id
    )
    assert total == 5
    assert total_pages == 3
    assert [b.daily_serial for b in rows] == [3, 4]


async def test_daily_stats_counts_by_status(booking_service, seed):
    first = await booking_service.create_booking(seed.doctor_id, request_for(seed))
    second = await booking_service.create_booking(seed.doctor_id, request_for(seed))
    await booking_service.create_booking(seed.doctor_id, request_for(seed))

    await booking_service.update_booking(
        first.booking_id,
        BookingUpdate(booking_status=BookingStatus.CANCELLED, cancel_note="sick"),
    )
    for status in (BookingStatus.CONFIRMED, BookingStatus.NO_SHOW):
        await booking_service.update_booking(
            second.booking_id, BookingUpdate(booking_status=status)
        )

    stats = await booking_service.daily_stats(seed.doctor_id, MONDAY, date(2025, 6, 30))
    assert len(stats) == 1
    day = stats[0]
    assert (day.date, day.total, day.cancelled, day.no_show, day.upcoming, day.completed) == (
        MONDAY,
        3,
        1,
        1,
        1,
        0,
    )


async def test_daily_stats_rejects_inverted_range(booking_service, seed):
    with pytest.raises(ValidationError):
        await booking_service.daily_stats(seed.doctor_id, date(2025, 6, 30), MONDAY)
