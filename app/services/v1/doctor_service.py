# app/services/v1/doctor_service.py
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.db.models import Doctor, Clinic, DoctorClinic
from app.db.schemas import DoctorCreate, ClinicCreate
from common import NotFoundError, ConflictError, get_app_logger

logger = get_app_logger(__name__)


class DoctorService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_doctor(self, doctor_id: str) -> Doctor:
        doctor = await self.db.get(Doctor, doctor_id)
        if doctor is None:
            raise NotFoundError("Doctor")
        return doctor

    async def get_clinic(self, clinic_id: str) -> Clinic:
        clinic = await self.db.get(Clinic, clinic_id)
        if clinic is None:
            raise NotFoundError("Clinic")
        return clinic

    async def is_assigned(self, doctor_id: str, clinic_id: str) -> bool:
        query = (
            select(DoctorClinic.link_id)
            .where(DoctorClinic.doctor_id == doctor_id)
            .where(DoctorClinic.clinic_id == clinic_id)
            .limit(1)
            .execution_options(logging_token="DoctorService.is_assigned")
        )
        return (await self.db.execute(query)).scalar_one_or_none() is not None

    async def assert_doctor_in_clinic(self, doctor_id: str, clinic_id: str) -> None:
        if not await self.is_assigned(doctor_id, clinic_id):
            raise ConflictError(
                "Doctor is not assigned to this clinic",
                code="DOCTOR_NOT_IN_CLINIC",
            )

    async def create_doctor(self, payload: DoctorCreate) -> Doctor:
        doctor = Doctor(**payload.model_dump())
        self.db.add(doctor)
        await self.db.commit()
        logger.info("Doctor created", doctor_id=doctor.doctor_id)
        return doctor

    async def create_clinic(self, payload: ClinicCreate) -> Clinic:
        clinic = Clinic(**payload.model_dump())
        self.db.add(clinic)
        await self.db.commit()
        logger.info("Clinic created", clinic_id=clinic.clinic_id)
        return clinic

    async def assign_clinic(self, doctor_id: str, clinic_id: str) -> DoctorClinic:
        await self.get_doctor(doctor_id)
        await self.get_clinic(clinic_id)
        if await self.is_assigned(doctor_id, clinic_id):
            raise ConflictError(
                "Doctor is already assigned to this clinic",
                code="ALREADY_ASSIGNED",
            )

        link = DoctorClinic(doctor_id=doctor_id, clinic_id=clinic_id)
        self.db.add(link)
        await self.db.commit()
        logger.info("Doctor assigned to clinic", doctor_id=doctor_id, clinic_id=clinic_id)
        return link


__all__ = ["DoctorService"]
