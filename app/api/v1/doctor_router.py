# app/api/v1/doctor_router.py
from datetime import date, datetime, timezone
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from app.auth import (
    Action,
    Actor,
    Resource,
    assert_self_or_admin,
    require_permission,
)
from app.db import get_db
from app.db.models import BookingStatus
from app.db.schemas import (
    AppointmentTypeCreate,
    AppointmentTypeResponse,
    AppointmentTypeUpdate,
    AvailabilityRuleCreate,
    AvailabilityRuleResponse,
    AvailabilityRuleUpdate,
    BookingCreate,
    BookingResponse,
    DailyStats,
    DoctorClinicAssign,
    DoctorClinicResponse,
    DoctorCreate,
    DoctorResponse,
    NextAvailableResponse,
    SlotsResponse,
    TimeSlot,
)
from app.services.v1 import (
    AppointmentTypeService,
    AvailabilityService,
    BookingService,
    DoctorService,
)
from common import ForbiddenError, get_config
from common.logger.logger_middleware import enable_perf_headers
from .dependencies import get_booking_service
from .rate_limit import booking_create_limit, limiter

doctor_router = APIRouter(
    prefix="/doctors",
    tags=["Doctors"],
)


def _today() -> date:
    return datetime.now(tz=timezone.utc).date()


def _assert_own_patient(actor: Actor, patient_id: str) -> None:
    if actor.patient_filter is not None and actor.patient_filter != patient_id:
        raise ForbiddenError("Patients can only book for themselves", code="NOT_SELF")


# Profile


@doctor_router.post(
    "",
    response_model=DoctorResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a doctor profile",
)
async def create_doctor(
    payload: DoctorCreate,
    db: AsyncSession = Depends(get_db),
    _: Actor = Depends(require_permission(Resource.DOCTOR, Action.CREATE)),
):
    return await DoctorService(db).create_doctor(payload)


@doctor_router.get(
    "/{doctor_id}",
    response_model=DoctorResponse,
    summary="Get doctor details",
    responses={404: {"description": "Doctor not found"}},
)
async def get_doctor(
    doctor_id: str,
    db: AsyncSession = Depends(get_db),
    _: Actor = Depends(require_permission(Resource.DOCTOR, Action.READ)),
):
    return await DoctorService(db).get_doctor(doctor_id)


@doctor_router.post(
    "/{doctor_id}/clinics",
    response_model=DoctorClinicResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Assign a doctor to a clinic",
    responses={409: {"description": "Already assigned"}},
)
async def assign_clinic(
    doctor_id: str,
    payload: DoctorClinicAssign,
    db: AsyncSession = Depends(get_db),
    _: Actor = Depends(require_permission(Resource.DOCTOR, Action.UPDATE)),
):
    return await DoctorService(db).assign_clinic(doctor_id, str(payload.clinic_id))


# Availability rules


@doctor_router.get(
    "/{doctor_id}/availability",
    response_model=list[AvailabilityRuleResponse],
    summary="List availability rules",
)
async def list_availability(
    doctor_id: str,
    clinic_id: Optional[UUID] = Query(None, alias="clinicId"),
    active: bool = Query(True, description="Only active rules"),
    db: AsyncSession = Depends(get_db),
    _: Actor = Depends(require_permission(Resource.AVAILABILITY, Action.READ)),
):
    return await AvailabilityService(db).list_rules(
        doctor_id, str(clinic_id) if clinic_id else None, active_only=active
    )


@doctor_router.post(
    "/{doctor_id}/availability",
    response_model=AvailabilityRuleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an availability rule",
    responses={409: {"description": "An active rule already covers this day"}},
)
async def create_availability(
    doctor_id: str,
    payload: AvailabilityRuleCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_permission(Resource.AVAILABILITY, Action.CREATE)),
):
    assert_self_or_admin(actor, doctor_id)
    return await AvailabilityService(db).create_rule(doctor_id, payload)


@doctor_router.get(
    "/{doctor_id}/availability/{rule_id}",
    response_model=AvailabilityRuleResponse,
    summary="Get an availability rule",
)
async def get_availability(
    doctor_id: str,
    rule_id: str,
    db: AsyncSession = Depends(get_db),
    _: Actor = Depends(require_permission(Resource.AVAILABILITY, Action.READ)),
):
    return await AvailabilityService(db).get_rule(doctor_id, rule_id)


@doctor_router.patch(
    "/{doctor_id}/availability/{rule_id}",
    response_model=AvailabilityRuleResponse,
    summary="Update an availability rule",
)
async def update_availability(
    doctor_id: str,
    rule_id: str,
    payload: AvailabilityRuleUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_permission(Resource.AVAILABILITY, Action.UPDATE)),
):
    assert_self_or_admin(actor, doctor_id)
    return await AvailabilityService(db).update_rule(doctor_id, rule_id, payload)


@doctor_router.delete(
    "/{doctor_id}/availability/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Deactivate an availability rule",
    description="Rules are never removed; existing bookings keep pointing at them.",
)
async def deactivate_availability(
    doctor_id: str,
    rule_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_permission(Resource.AVAILABILITY, Action.DELETE)),
):
    assert_self_or_admin(actor, doctor_id)
    await AvailabilityService(db).deactivate_rule(doctor_id, rule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Appointment types


@doctor_router.get(
    "/{doctor_id}/appointment-types",
    response_model=list[AppointmentTypeResponse],
    summary="List appointment types",
)
async def list_appointment_types(
    doctor_id: str,
    db: AsyncSession = Depends(get_db),
    _: Actor = Depends(require_permission(Resource.DOCTOR, Action.READ)),
):
    return await AppointmentTypeService(db).list_for_doctor(doctor_id)


@doctor_router.post(
    "/{doctor_id}/appointment-types",
    response_model=AppointmentTypeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an appointment type",
)
async def create_appointment_type(
    doctor_id: str,
    payload: AppointmentTypeCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_permission(Resource.AVAILABILITY, Action.CREATE)),
):
    assert_self_or_admin(actor, doctor_id)
    await DoctorService(db).get_doctor(doctor_id)
    return await AppointmentTypeService(db).create(doctor_id, payload)


@doctor_router.patch(
    "/{doctor_id}/appointment-types/{appointment_type_id}",
    response_model=AppointmentTypeResponse,
    summary="Update an appointment type",
)
async def update_appointment_type(
    doctor_id: str,
    appointment_type_id: str,
    payload: AppointmentTypeUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_permission(Resource.AVAILABILITY, Action.UPDATE)),
):
    assert_self_or_admin(actor, doctor_id)
    return await AppointmentTypeService(db).update(doctor_id, appointment_type_id, payload)


@doctor_router.delete(
    "/{doctor_id}/appointment-types/{appointment_type_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an appointment type",
)
async def delete_appointment_type(
    doctor_id: str,
    appointment_type_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_permission(Resource.AVAILABILITY, Action.DELETE)),
):
    assert_self_or_admin(actor, doctor_id)
    await AppointmentTypeService(db).delete(doctor_id, appointment_type_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Slots


@doctor_router.get(
    "/{doctor_id}/slots",
    response_model=SlotsResponse,
    summary="Slot grid for one day",
    description="Recomputed on every call from the active rule and the day's bookings.",
    dependencies=[Depends(enable_perf_headers)],
)
async def get_slots(
    doctor_id: str,
    clinic_id: UUID = Query(..., alias="clinicId"),
    on_date: date = Query(..., alias="date"),
    slot_duration: Optional[int] = Query(None, alias="slotDuration", ge=5, le=120),
    db: AsyncSession = Depends(get_db),
    _: Actor = Depends(require_permission(Resource.AVAILABILITY, Action.READ)),
):
    slots = await AvailabilityService(db).get_slots_for_date(
        doctor_id,
        str(clinic_id),
        on_date,
        slot_duration or get_config().queue.slot_duration_minutes,
    )
    return SlotsResponse(
        date=on_date,
        slots=[TimeSlot.model_validate(slot) for slot in slots],
    )


@doctor_router.get(
    "/{doctor_id}/slots/next",
    response_model=NextAvailableResponse,
    summary="Next date with an open slot",
)
async def get_next_available(
    doctor_id: str,
    clinic_id: UUID = Query(..., alias="clinicId"),
    from_date: Optional[date] = Query(None, alias="from"),
    max_days: Optional[int] = Query(None, alias="maxDays", ge=1, le=90),
    db: AsyncSession = Depends(get_db),
    _: Actor = Depends(require_permission(Resource.AVAILABILITY, Action.READ)),
):
    queue_config = get_config().queue
    next_date = await AvailabilityService(db).next_available_date(
        doctor_id,
        str(clinic_id),
        from_date or _today(),
        max_days or queue_config.next_available_max_days,
        queue_config.slot_duration_minutes,
    )
    return NextAvailableResponse(next_available_date=next_date)


# Bookings


@doctor_router.post(
    "/{doctor_id}/bookings",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book into a doctor's daily queue",
    responses={
        404: {"description": "Doctor, patient or appointment type not found"},
        409: {"description": "Doctor not in clinic, no availability, or outside hours"},
        429: {"description": "Too many booking requests from this client"},
    },
)
@limiter.shared_limit(booking_create_limit, scope="booking_create")
async def create_doctor_booking(
    request: Request,
    doctor_id: str,
    payload: BookingCreate,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(require_permission(Resource.BOOKING, Action.CREATE)),
):
    _assert_own_patient(actor, str(payload.patient_id))
    return await service.create_booking(doctor_id, payload)


@doctor_router.get(
    "/{doctor_id}/bookings",
    response_model=list[BookingResponse],
    summary="A doctor's queue for one day, in serial order",
)
async def list_doctor_bookings(
    doctor_id: str,
    on_date: Optional[date] = Query(None, alias="date"),
    booking_status: Optional[BookingStatus] = Query(None, alias="status"),
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(require_permission(Resource.BOOKING, Action.READ)),
):
    return await service.list_doctor_queue(
        doctor_id,
        on_date or _today(),
        booking_status,
        patient_id=actor.patient_filter,
    )


@doctor_router.get(
    "/{doctor_id}/bookings/stats",
    response_model=list[DailyStats],
    summary="Per-day booking totals",
)
async def doctor_booking_stats(
    doctor_id: str,
    from_date: Optional[date] = Query(None, alias="from"),
    to_date: Optional[date] = Query(None, alias="to"),
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(require_permission(Resource.BOOKING, Action.READ)),
):
    if actor.patient_filter is not None:
        raise ForbiddenError("Statistics are staff-only", code="INSUFFICIENT_ROLE")
    start = from_date or _today()
    return await service.daily_stats(doctor_id, start, to_date or start)


__all__ = ["doctor_router"]
