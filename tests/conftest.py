import os

# Configuration (and with it structlog) is set up once per process
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("APP_TITLE", "Clinic Queue (tests)")
os.environ.setdefault("APP_VERSION", "1.0.0")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_FORMAT", "console")
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")

from common.config import initialize_config

initialize_config()

from datetime import date, time
from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient

from app.db import DbManager
from app.db.models import (
    AvailabilityRule,
    Clinic,
    DbBaseModel,
    Doctor,
    DoctorClinic,
    Member,
    OrgRole,
    Patient,
    RecurrenceKind,
)
from app.services.v1 import BookingService, QueueHub

ORG_ID = "org-1"
MONDAY = date(2025, 6, 2)


@pytest.fixture
async def db_manager(tmp_path):
    manager = DbManager(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        serial_lock_timeout=5,
    )
    async with manager.engine.begin() as conn:
        await conn.run_sync(DbBaseModel.metadata.create_all)
    yield manager
    await manager.dispose()


@pytest.fixture
def hub():
    return QueueHub(heartbeat_seconds=0.05)


@pytest.fixture
async def seed(db_manager):
    """
    One doctor working Mondays 09:00-12:00 at one clinic, two patients,
    a second clinic the doctor is not assigned to, and one member per role.
    """
    doctor = Doctor(name="Dr. Rahman", specialty="General Practice", years_of_experience=8)
    other_doctor = Doctor(name="Dr. Chowdhury", specialty="Cardiology")
    clinic = Clinic(name="Central Clinic", address="1 Main St")
    other_clinic = Clinic(name="North Clinic")
    patient_x = Patient(name="Patient X")
    patient_y = Patient(name="Patient Y")

    async with db_manager.session() as session:
        session.add_all([doctor, other_doctor, clinic, other_clinic, patient_x, patient_y])
        await session.flush()
        session.add(DoctorClinic(doctor_id=doctor.doctor_id, clinic_id=clinic.clinic_id))
        rule = AvailabilityRule(
            doctor_id=doctor.doctor_id,
            clinic_id=clinic.clinic_id,
            recurrence=RecurrenceKind.WEEKLY,
            day_of_week=1,
            start_time=time(9, 0),
            end_time=time(12, 0),
            breaks=[],
            is_active=True,
        )
        session.add(rule)
        session.add_all(
            [
                Member(user_id="u-owner", organization_id=ORG_ID, role=OrgRole.OWNER),
                Member(user_id="u-admin", organization_id=ORG_ID, role=OrgRole.ADMIN),
                Member(
                    user_id="u-doctor",
                    organization_id=ORG_ID,
                    role=OrgRole.DOCTOR,
                    doctor_id=doctor.doctor_id,
                ),
                Member(
                    user_id="u-other-doctor",
                    organization_id=ORG_ID,
                    role=OrgRole.DOCTOR,
                    doctor_id=other_doctor.doctor_id,
                ),
                Member(user_id="u-staff", organization_id=ORG_ID, role=OrgRole.STAFF),
                Member(
                    user_id="u-patient-x",
                    organization_id=ORG_ID,
                    role=OrgRole.MEMBER,
                    patient_id=patient_x.patient_id,
                ),
            ]
        )

    return SimpleNamespace(
        doctor_id=doctor.doctor_id,
        other_doctor_id=other_doctor.doctor_id,
        clinic_id=clinic.clinic_id,
        other_clinic_id=other_clinic.clinic_id,
        patient_x=patient_x.patient_id,
        patient_y=patient_y.patient_id,
        rule_id=rule.rule_id,
    )


@pytest.fixture
def booking_service(db_manager, hub):
    return BookingService(db_manager, hub)


@pytest.fixture
async def client(db_manager, hub):
    from main import app

    app.state.limiter.reset()
    app.state.db_manager = db_manager
    app.state.queue_hub = hub
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def as_user(user_id: str, org_id: str = ORG_ID) -> dict[str, str]:
    return {"X-User-Id": user_id, "X-Organization-Id": org_id}
