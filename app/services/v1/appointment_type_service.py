# app/services/v1/appointment_type_service.py
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.db.models import AppointmentType, Booking
from app.db.schemas import AppointmentTypeCreate, AppointmentTypeUpdate
from common import NotFoundError, ConflictError


class AppointmentTypeService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_for_doctor(self, doctor_id: str, appointment_type_id: str) -> AppointmentType:
        """The type must exist and belong to this doctor."""
        query = (
            select(AppointmentType)
            .where(AppointmentType.appointment_type_id == appointment_type_id)
            .where(AppointmentType.doctor_id == doctor_id)
            .execution_options(logging_token="AppointmentTypeService.get_for_doctor")
        )
        appointment_type = (await self.db.execute(query)).scalar_one_or_none()
        if appointment_type is None:
            raise NotFoundError("Appointment type")
        return appointment_type

    async def list_for_doctor(self, doctor_id: str) -> list[AppointmentType]:
        query = (
            select(AppointmentType)
            .where(AppointmentType.doctor_id == doctor_id)
            .order_by(AppointmentType.name)
        )
        return list((await self.db.execute(query)).scalars())

    async def create(self, doctor_id: str, payload: AppointmentTypeCreate) -> AppointmentType:
        appointment_type = AppointmentType(doctor_id=doctor_id, **payload.model_dump())
        self.db.add(appointment_type)
        await self.db.commit()
        return appointment_type

    async def update(
        self, doctor_id: str, appointment_type_id: str, payload: AppointmentTypeUpdate
    ) -> AppointmentType:
        appointment_type = await self.get_for_doctor(doctor_id, appointment_type_id)
        for field, value in payload.model_dump(exclude_unset=True).items():
            setattr(appointment_type, field, value)
        await self.db.commit()
        return appointment_type

    async def delete(self, doctor_id: str, appointment_type_id: str) -> None:
        appointment_type = await self.get_for_doctor(doctor_id, appointment_type_id)
        in_use = await self.db.execute(
            select(Booking.booking_id)
            .where(Booking.appointment_type_id == appointment_type_id)
            .limit(1)
        )
        if in_use.scalar_one_or_none() is not None:
            raise ConflictError(
                "Appointment type is referenced by bookings",
                code="APPOINTMENT_TYPE_IN_USE",
            )
        await self.db.delete(appointment_type)
        await self.db.commit()


__all__ = ["AppointmentTypeService"]
