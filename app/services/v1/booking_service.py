# app/services/v1/booking_service.py
"""
Booking admission and lifecycle.

Every write follows the same order: validate, run the transaction, and only
once it has committed publish a queue event. A failed transaction publishes
nothing, and a failed publish never fails the write.
"""

import math
from datetime import date, datetime, timezone
from typing import Optional
from sqlalchemy import select, func, case
from sqlalchemy.exc import IntegrityError
from app.db import DbManager, UnitOfWork
from app.db.models import Booking, BookingStatus, SERIAL_UNIQUE_CONSTRAINT
from app.db.schemas import (
    BookingCreate,
    BookingUpdate,
    DailyStats,
    QueueEvent,
    QueueEventType,
)
from common import ConflictError, NotFoundError, ValidationError, get_app_logger
from .availability_service import AvailabilityService
from .appointment_type_service import AppointmentTypeService
from .booking_state import ACTIVE_STATES, assert_valid_transition
from .doctor_service import DoctorService
from .patient_service import PatientService
from .queue_hub import QueueHub
from .serial_allocator import SerialAllocator

logger = get_app_logger(__name__)

SERIAL_ATTEMPTS = 2


def is_serial_collision(exc: IntegrityError) -> bool:
    """True for a duplicate (doctor, date, serial); other integrity errors are not retried."""
    message = str(exc.orig) if exc.orig is not None else str(exc)
    if SERIAL_UNIQUE_CONSTRAINT in message:
        return True
    return "UNIQUE" in message.upper() and "daily_serial" in message


class BookingService:
    def __init__(
        self,
        db_manager: DbManager,
        hub: QueueHub,
        allocator: Optional[SerialAllocator] = None,
        slot_duration_minutes: int = 15,
    ):
        self.db_manager = db_manager
        self.hub = hub
        self.allocator = allocator or SerialAllocator()
        self.slot_duration_minutes = slot_duration_minutes

    # Admission

    async def create_booking(self, doctor_id: str, payload: BookingCreate) -> Booking:
        clinic_id = str(payload.clinic_id)
        patient_id = str(payload.patient_id)
        appointment_type_id = (
            str(payload.appointment_type_id) if payload.appointment_type_id else None
        )

        # Preconditions are plain reads; a stale answer only changes the error message
        visit_minutes = self.slot_duration_minutes
        async with self.db_manager.session() as session:
            doctors = DoctorService(session)
            await doctors.get_doctor(doctor_id)
            await doctors.assert_doctor_in_clinic(doctor_id, clinic_id)
            await AvailabilityService(session).assert_within_availability(
                doctor_id, clinic_id, payload.serial_date, payload.scheduled_at
            )
            await PatientService(session).get_patient_profile(patient_id)
            if appointment_type_id:
                appointment_type = await AppointmentTypeService(session).get_for_doctor(
                    doctor_id, appointment_type_id
                )
                visit_minutes = appointment_type.duration_minutes

        booking, position = await self._admit_with_retry(
            doctor_id=doctor_id,
            clinic_id=clinic_id,
            patient_id=patient_id,
            appointment_type_id=appointment_type_id,
            payload=payload,
        )
        logger.info(
            "Booking created",
            booking_id=booking.booking_id,
            doctor_id=doctor_id,
            serial_date=booking.serial_date.isoformat(),
            serial=booking.daily_serial,
        )

        self._publish(
            QueueEventType.BOOKING_CREATED,
            booking,
            position=position,
            estimated_wait_minutes=(position - 1) * visit_minutes,
        )
        return booking

    async def _admit_with_retry(self, **values) -> tuple[Booking, int]:
        """
        Allocate and insert in one unit of work. A duplicate serial means the
        lock was bypassed; the whole step is re-run once on a fresh unit of work.
        """
        doctor_id = values["doctor_id"]
        serial_date = values["payload"].serial_date
        for attempt in range(1, SERIAL_ATTEMPTS + 1):
            try:
                async with self.db_manager.unit_of_work() as uow:
                    booking = await self._admit(uow, **values)
                    position = await self._queue_position(uow, booking)
                return booking, position
            except IntegrityError as e:
                if not is_serial_collision(e):
                    raise
                logger.warning(
                    "Serial collision on insert",
                    doctor_id=doctor_id,
                    serial_date=serial_date.isoformat(),
                    attempt=attempt,
                )
                if attempt == SERIAL_ATTEMPTS:
                    raise ConflictError(
                        "Could not allocate a queue number, please retry",
                        code="SERIAL_CONFLICT",
                    ) from e
        raise ConflictError("Could not allocate a queue number", code="SERIAL_CONFLICT")

    async def _admit(
        self,
        uow: UnitOfWork,
        *,
        doctor_id: str,
        clinic_id: str,
        patient_id: str,
        appointment_type_id: Optional[str],
        payload: BookingCreate,
    ) -> Booking:
        serial = await self.allocator.allocate(uow, doctor_id, payload.serial_date)
        booking = Booking(
            doctor_id=doctor_id,
            clinic_id=clinic_id,
            patient_id=patient_id,
            appointment_type_id=appointment_type_id,
            booking_status=BookingStatus.PENDING,
            book_via=payload.book_via,
            daily_serial=serial,
            serial_date=payload.serial_date,
            scheduled_at=payload.scheduled_at,
        )
        uow.session.add(booking)
        await uow.session.flush()
        return booking

    async def _queue_position(self, uow: UnitOfWork, booking: Booking) -> int:
        """1-based place among the day's still-active bookings."""
        query = (
            select(func.count())
            .select_from(Booking)
            .where(Booking.doctor_id == booking.doctor_id)
            .where(Booking.serial_date == booking.serial_date)
            .where(Booking.daily_serial < booking.daily_serial)
            .where(Booking.booking_status.in_(list(ACTIVE_STATES)))
        )
        ahead = (await uow.session.execute(query)).scalar_one()
        return int(ahead) + 1

    # Lifecycle

    async def update_booking(self, booking_id: str, payload: BookingUpdate) -> Booking:
        async with self.db_manager.unit_of_work() as uow:
            query = (
                select(Booking)
                .where(Booking.booking_id == booking_id)
                .with_for_update()
                .execution_options(logging_token="BookingService.update_booking")
            )
            booking = (await uow.session.execute(query)).scalar_one_or_none()
            if booking is None:
                raise NotFoundError("Booking")

            previous = booking.booking_status
            requested = payload.booking_status

            if requested is not None:
                assert_valid_transition(previous, requested)
                if requested == BookingStatus.CANCELLED and not (
                    payload.cancel_note and payload.cancel_note.strip()
                ):
                    raise ValidationError(
                        "cancelNote is required when cancelling a booking",
                        fields={"cancelNote": ["Required when bookingStatus is cancelled"]},
                        code="CANCEL_NOTE_REQUIRED",
                    )
                booking.booking_status = requested

            if payload.cancel_note is not None:
                booking.cancel_note = payload.cancel_note

            if payload.scheduled_at is not None:
                await AvailabilityService(uow.session).assert_within_availability(
                    booking.doctor_id,
                    booking.clinic_id,
                    booking.serial_date,
                    payload.scheduled_at,
                )
                booking.scheduled_at = payload.scheduled_at

            await uow.session.flush()

        if requested is not None:
            logger.info(
                "Booking status changed",
                booking_id=booking_id,
                from_status=previous.value,
                to_status=requested.value,
            )

        event_type = (
            QueueEventType.BOOKING_CANCELLED
            if booking.booking_status == BookingStatus.CANCELLED
            else QueueEventType.BOOKING_UPDATED
        )
        self._publish(event_type, booking)
        return booking

    async def delete_booking(self, booking_id: str) -> None:
        """Administrative hard delete. Serials are never reused afterwards."""
        async with self.db_manager.unit_of_work() as uow:
            booking = await uow.session.get(Booking, booking_id)
            if booking is None:
                raise NotFoundError("Booking")
            await uow.session.delete(booking)

        logger.warning(
            "Booking hard-deleted",
            booking_id=booking_id,
            doctor_id=booking.doctor_id,
            serial=booking.daily_serial,
        )
        self._publish(QueueEventType.BOOKING_CANCELLED, booking, include_status=False)

    def _publish(
        self,
        event_type: QueueEventType,
        booking: Booking,
        *,
        include_status: bool = True,
        position: Optional[int] = None,
        estimated_wait_minutes: Optional[int] = None,
    ) -> None:
        try:
            event = QueueEvent(
                type=event_type,
                booking_id=booking.booking_id,
                doctor_id=booking.doctor_id,
                date=booking.serial_date,
                serial=booking.daily_serial,
                status=booking.booking_status if include_status else None,
                position=position,
                estimated_wait_minutes=estimated_wait_minutes,
                timestamp=datetime.now(tz=timezone.utc),
                patient_id=booking.patient_id,
            )
            self.hub.publish(event)
        except Exception:
            logger.exception(
                "Queue event publish failed",
                booking_id=booking.booking_id,
                event_type=event_type.value,
            )

    # Reads

    async def get_booking(self, booking_id: str) -> Booking:
        async with self.db_manager.session() as session:
            booking = await session.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError("Booking")
        return booking

    async def list_doctor_queue(
        self,
        doctor_id: str,
        on_date: date,
        status: Optional[BookingStatus] = None,
        patient_id: Optional[str] = None,
    ) -> list[Booking]:
        query = (
            select(Booking)
            .where(Booking.doctor_id == doctor_id)
            .where(Booking.serial_date == on_date)
            .order_by(Booking.daily_serial)
            .execution_options(logging_token="BookingService.list_doctor_queue")
        )
        if status is not None:
            query = query.where(Booking.booking_status == status)
        if patient_id is not None:
            query = query.where(Booking.patient_id == patient_id)

        async with self.db_manager.session() as session:
            return list((await session.execute(query)).scalars())

    async def list_bookings(
        self,
        *,
        page: int = 1,
        limit: int = 20,
        doctor_id: Optional[str] = None,
        clinic_id: Optional[str] = None,
        patient_id: Optional[str] = None,
        status: Optional[BookingStatus] = None,
        on_date: Optional[date] = None,
    ) -> tuple[list[Booking], int, int]:
        """Returns (rows, total, total_pages)."""
        conditions = []
        if doctor_id:
            conditions.append(Booking.doctor_id == doctor_id)
        if clinic_id:
            conditions.append(Booking.clinic_id == clinic_id)
        if patient_id:
            conditions.append(Booking.patient_id == patient_id)
        if status is not None:
            conditions.append(Booking.booking_status == status)
        if on_date is not None:
            conditions.append(Booking.serial_date == on_date)

        rows_query = (
            select(Booking)
            .where(*conditions)
            .order_by(Booking.serial_date.desc(), Booking.daily_serial)
            .limit(limit)
            .offset((page - 1) * limit)
            .execution_options(logging_token="BookingService.list_bookings")
        )
        count_query = select(func.count()).select_from(Booking).where(*conditions)

        async with self.db_manager.session() as session:
            rows = list((await session.execute(rows_query)).scalars())
            total = int((await session.execute(count_query)).scalar_one())

        return rows, total, math.ceil(total / limit) if total else 0

    async def daily_stats(
        self, doctor_id: str, from_date: date, to_date: date
    ) -> list[DailyStats]:
        if to_date < from_date:
            raise ValidationError(
                "'to' must not be before 'from'",
                fields={"to": ["must be on or after from"]},
            )

        def count_where(*statuses: BookingStatus):
            return func.coalesce(
                func.sum(case((Booking.booking_status.in_(statuses), 1), else_=0)), 0
            )

        query = (
            select(
                Booking.serial_date,
                func.count().label("total"),
                count_where(BookingStatus.COMPLETED).label("completed"),
                count_where(BookingStatus.CANCELLED).label("cancelled"),
                count_where(BookingStatus.NO_SHOW).label("no_show"),
                count_where(*ACTIVE_STATES).label("upcoming"),
            )
            .where(Booking.doctor_id == doctor_id)
            .where(Booking.serial_date >= from_date)
            .where(Booking.serial_date <= to_date)
            .group_by(Booking.serial_date)
            .order_by(Booking.serial_date)
            .execution_options(logging_token="BookingService.daily_stats")
        )

        async with self.db_manager.session() as session:
            result = await session.execute(query)
            return [
                DailyStats(
                    date=row.serial_date,
                    total=row.total,
                    completed=row.completed,
                    cancelled=row.cancelled,
                    no_show=row.no_show,
                    upcoming=row.upcoming,
                )
                for row in result
            ]


__all__ = ["BookingService", "is_serial_collision"]
