import importlib

import pytest
from sqlalchemy import select

from app.db.models import Clinic
from common import NotFoundError, is_configured

db_manager_module = importlib.import_module("app.db.db_manager")


class RecordingLogger:
    def __init__(self):
        self.records = []

    def __getattr__(self, level):
        def record(msg, **kwargs):
            self.records.append((level, msg, kwargs))

        return record


@pytest.fixture
def recorded(monkeypatch):
    recorder = RecordingLogger()
    monkeypatch.setattr(db_manager_module, "logger", recorder)
    return recorder


def test_structlog_is_configured_for_the_test_session():
    assert is_configured()


async def test_domain_error_rolls_back_without_session_error_log(db_manager, recorded):
    with pytest.raises(NotFoundError):
        async with db_manager.session() as session:
            session.add(Clinic(name="Rolled Back"))
            await session.flush()
            raise NotFoundError("Doctor")

    async with db_manager.session() as session:
        names = (await session.execute(select(Clinic.name))).scalars().all()
    assert "Rolled Back" not in names
    assert [r for r in recorded.records if r[1] == "Session error, rolled back"] == []


async def test_unexpected_error_is_logged_and_rolled_back(db_manager, recorded):
    with pytest.raises(ValueError):
        async with db_manager.session() as session:
            session.add(Clinic(name="Also Rolled Back"))
            await session.flush()
            raise ValueError("boom")

    async with db_manager.session() as session:
        names = (await session.execute(select(Clinic.name))).scalars().all()
    assert "Also Rolled Back" not in names
    assert ("warning", "Session error, rolled back", {"error": "boom"}) in recorded.records
