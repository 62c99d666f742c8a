# app/api/v1/patient_router.py
from fastapi import APIRouter, Depends, status
from app.auth import Action, Actor, Resource, require_permission
from app.db.schemas import PatientCreate, PatientResponse
from sqlalchemy.ext.asyncio import AsyncSession
from app.services.v1 import PatientService
from app.db import get_db

patient_router = APIRouter(
    prefix="/patients",
    tags=["Patients"],
)


@patient_router.post(
    "",
    response_model=PatientResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a patient",
)
async def create_patient(
    payload: PatientCreate,
    db: AsyncSession = Depends(get_db),
    _: Actor = Depends(require_permission(Resource.PATIENT, Action.CREATE)),
):
    return await PatientService(db).create_patient(payload)


@patient_router.get(
    "/{patient_id}",
    response_model=PatientResponse,
    status_code=status.HTTP_200_OK,
    summary="Get patient details",
    description="""
    Fetches the profile of a specific patient.

    **Database Impact:** - Single primary-key lookup.
    - Expected Query Count: 1
    """,
    responses={
        404: {"description": "Patient not found"},
        500: {"description": "Internal Database Error"},
    },
)
async def get_patient(
    patient_id: str,
    db: AsyncSession = Depends(get_db),
    _: Actor = Depends(require_permission(Resource.PATIENT, Action.READ)),
):
    return await PatientService(db).get_patient_profile(patient_id)


__all__ = ["patient_router"]
