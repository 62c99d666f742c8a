# app/api/v1/booking_router.py
from datetime import date
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Request, Response, status
from app.auth import Action, Actor, Resource, can, require_permission
from app.db.models import BookingStatus
from app.db.schemas import (
    BookingCreateWithDoctor,
    BookingResponse,
    BookingUpdate,
    Page,
)
from app.services.v1 import BookingService
from common import ForbiddenError, NotFoundError
from .dependencies import get_booking_service
from .rate_limit import booking_create_limit, limiter

booking_router = APIRouter(
    prefix="/bookings",
    tags=["Bookings"],
)


@booking_router.get(
    "",
    response_model=Page[BookingResponse],
    summary="Search bookings",
)
async def list_bookings(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    doctor_id: Optional[UUID] = Query(None, alias="doctorId"),
    clinic_id: Optional[UUID] = Query(None, alias="clinicId"),
    patient_id: Optional[UUID] = Query(None, alias="patientId"),
    booking_status: Optional[BookingStatus] = Query(None, alias="status"),
    on_date: Optional[date] = Query(None, alias="date"),
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(require_permission(Resource.BOOKING, Action.READ)),
):
    rows, total, total_pages = await service.list_bookings(
        page=page,
        limit=limit,
        doctor_id=str(doctor_id) if doctor_id else None,
        clinic_id=str(clinic_id) if clinic_id else None,
        patient_id=actor.patient_filter or (str(patient_id) if patient_id else None),
        status=booking_status,
        on_date=on_date,
    )
    return Page[BookingResponse](
        items=[BookingResponse.model_validate(row) for row in rows],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages,
    )


@booking_router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book into a doctor's daily queue (doctor in body)",
)
@limiter.shared_limit(booking_create_limit, scope="booking_create")
async def create_booking(
    request: Request,
    payload: BookingCreateWithDoctor,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(require_permission(Resource.BOOKING, Action.CREATE)),
):
    if actor.patient_filter is not None and actor.patient_filter != str(payload.patient_id):
        raise ForbiddenError("Patients can only book for themselves", code="NOT_SELF")
    return await service.create_booking(str(payload.doctor_id), payload)


@booking_router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get a booking",
    responses={404: {"description": "Booking not found"}},
)
async def get_booking(
    booking_id: str,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(require_permission(Resource.BOOKING, Action.READ)),
):
    booking = await service.get_booking(booking_id)
    if actor.patient_filter is not None and booking.patient_id != actor.patient_filter:
        raise NotFoundError("Booking")
    return booking


@booking_router.patch(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Change status, note or time of a booking",
    responses={
        409: {"description": "Transition not allowed from the current status"},
        422: {"description": "cancelNote missing when cancelling"},
    },
)
async def update_booking(
    booking_id: str,
    payload: BookingUpdate,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(require_permission(Resource.BOOKING, Action.UPDATE)),
):
    if payload.booking_status == BookingStatus.CANCELLED and not can(
        actor.role, Action.CANCEL, Resource.BOOKING
    ):
        raise ForbiddenError(
            f"Role '{actor.role.value}' cannot cancel booking", code="INSUFFICIENT_ROLE"
        )
    return await service.update_booking(booking_id, payload)


@booking_router.delete(
    "/{booking_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Hard-delete a booking (administrative)",
    description="Bypasses the status lifecycle. Subscribers still see a cancellation.",
)
async def delete_booking(
    booking_id: str,
    service: BookingService = Depends(get_booking_service),
    _: Actor = Depends(require_permission(Resource.BOOKING, Action.DELETE)),
):
    await service.delete_booking(booking_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["booking_router"]
