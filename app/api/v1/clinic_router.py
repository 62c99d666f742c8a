# app/api/v1/clinic_router.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from app.auth import Action, Actor, Resource, require_permission
from app.db import get_db
from app.db.schemas import ClinicCreate, ClinicResponse
from app.services.v1 import DoctorService

clinic_router = APIRouter(
    prefix="/clinics",
    tags=["Clinics"],
)


@clinic_router.post(
    "",
    response_model=ClinicResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a clinic",
)
async def create_clinic(
    payload: ClinicCreate,
    db: AsyncSession = Depends(get_db),
    _: Actor = Depends(require_permission(Resource.CLINIC, Action.CREATE)),
):
    return await DoctorService(db).create_clinic(payload)


@clinic_router.get(
    "/{clinic_id}",
    response_model=ClinicResponse,
    summary="Get clinic details",
    responses={404: {"description": "Clinic not found"}},
)
async def get_clinic(
    clinic_id: str,
    db: AsyncSession = Depends(get_db),
    _: Actor = Depends(require_permission(Resource.CLINIC, Action.READ)),
):
    return await DoctorService(db).get_clinic(clinic_id)


__all__ = ["clinic_router"]
