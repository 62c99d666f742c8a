# app/services/v1/patient_service.py
from sqlalchemy.ext.asyncio import AsyncSession
from app.db.models import Patient
from app.db.schemas import PatientCreate
from common import NotFoundError, get_app_logger
from sqlalchemy import select

logger = get_app_logger(__name__)


class PatientService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_patient_profile(self, patient_id: str) -> Patient:
        """
        Fetches a patient.
        Note: We use 'select' explicitly to stay in control of
        what columns are loaded.
        """
        query = (
            select(Patient)
            .where(Patient.patient_id == patient_id)
            .execution_options(logging_token="PatientService.get_patient_profile")
        )

        result = await self.db.execute(query)
        patient = result.scalar_one_or_none()
        if patient is None:
            raise NotFoundError("Patient")
        return patient

    async def create_patient(self, payload: PatientCreate) -> Patient:
        patient = Patient(**payload.model_dump())
        self.db.add(patient)
        await self.db.commit()
        logger.info("Patient created", patient_id=patient.patient_id)
        return patient


__all__ = ["PatientService"]
