# app/api/v1/queue_router.py
from datetime import date, datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from app.auth import Action, Actor, Resource, require_permission
from app.db import DbManager, get_db_manager
from app.services.v1 import DoctorService, QueueHub, get_queue_hub
from common import ValidationError

queue_router = APIRouter(
    prefix="/sse",
    tags=["Queue"],
)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def parse_queue_date(value: Optional[str]) -> date:
    """YYYY-MM-DD, defaulting to today (UTC)."""
    if value is None:
        return datetime.now(tz=timezone.utc).date()
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(
            "Invalid date, use YYYY-MM-DD",
            fields={"date": ["must be a real calendar date in YYYY-MM-DD format"]},
        )


@queue_router.get(
    "/queue/{doctor_id}",
    summary="Live queue updates for one doctor and day",
    description="""
    Server-sent events stream. Frames:

    - `connected` right after subscribing
    - `booking_created`, `booking_updated`, `booking_cancelled`
    - `ping` once per heartbeat interval

    Patient accounts only receive events about their own bookings.
    """,
    response_class=StreamingResponse,
    responses={422: {"description": "Malformed date"}},
)
async def stream_queue(
    doctor_id: str,
    queue_date: Optional[str] = Query(
        None, alias="date", pattern=r"^\d{4}-\d{2}-\d{2}$"
    ),
    hub: QueueHub = Depends(get_queue_hub),
    db_manager: DbManager = Depends(get_db_manager),
    actor: Actor = Depends(require_permission(Resource.BOOKING, Action.READ)),
):
    on_date = parse_queue_date(queue_date)
    async with db_manager.session() as session:
        await DoctorService(session).get_doctor(doctor_id)

    return StreamingResponse(
        hub.stream(doctor_id, on_date, patient_filter=actor.patient_filter),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


__all__ = ["queue_router", "parse_queue_date"]
