# app/api/v1/dependencies.py
from fastapi import Depends
from app.db import DbManager, get_db_manager
from app.services.v1 import BookingService, QueueHub, get_queue_hub
from common import get_config


def get_booking_service(
    db_manager: DbManager = Depends(get_db_manager),
    hub: QueueHub = Depends(get_queue_hub),
) -> BookingService:
    return BookingService(
        db_manager,
        hub,
        slot_duration_minutes=get_config().queue.slot_duration_minutes,
    )


__all__ = ["get_booking_service"]
