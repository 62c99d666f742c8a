# app/services/v1/serial_allocator.py
from datetime import date
from sqlalchemy import select, func
from app.db import UnitOfWork
from app.db.models import Booking
from common import get_app_logger

logger = get_app_logger(__name__)


class SerialAllocator:
    """
    Hands out the next daily serial for a (doctor, date) queue.

    Must run inside an entered UnitOfWork: the per-(doctor, date) lock taken
    here stays held until that unit of work commits or rolls back, so the
    insert that follows sees no competing allocator.
    """

    async def allocate(self, uow: UnitOfWork, doctor_id: str, serial_date: date) -> int:
        if not uow.is_active:
            raise RuntimeError("SerialAllocator.allocate requires an active UnitOfWork")

        await uow.lock_serial(doctor_id, serial_date)

        query = (
            select(func.coalesce(func.max(Booking.daily_serial), 0) + 1)
            .where(Booking.doctor_id == doctor_id)
            .where(Booking.serial_date == serial_date)
            .execution_options(logging_token="SerialAllocator.allocate")
        )
        next_serial = int((await uow.session.execute(query)).scalar_one())

        logger.debug(
            "Serial allocated",
            doctor_id=doctor_id,
            serial_date=serial_date.isoformat(),
            serial=next_serial,
        )
        return next_serial


__all__ = ["SerialAllocator"]
