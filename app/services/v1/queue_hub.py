# app/services/v1/queue_hub.py
"""
In-process publish/subscribe for live booking queues.

Channels are keyed by (doctor_id, date). Delivery is best-effort: events are
not stored, a subscriber that connects late never sees earlier events, and a
deployment with several instances only fans out writes made on the same
instance.

Usage:
    return StreamingResponse(
        hub.stream(doctor_id, on_date, patient_filter=None),
        media_type="text/event-stream",
    )

    # after a booking write has committed
    hub.publish(QueueEvent(...))
"""

import asyncio
import json
from datetime import date, datetime, timezone
from typing import Any, AsyncIterator, Optional
from fastapi import Request
from app.db.schemas import QueueEvent
from common import get_app_logger

logger = get_app_logger(__name__)

ChannelKey = tuple[str, date]


def format_sse(event_name: str, data: str) -> str:
    """One server-sent-event frame."""
    return f"event: {event_name}\ndata: {data}\n\n"


def _now_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


class Subscriber:
    """
    One open stream. Frames are buffered in an unbounded queue, so
    `publish` never waits on a slow reader.
    """

    def __init__(self, doctor_id: str, on_date: date, patient_filter: Optional[str] = None):
        self.doctor_id = doctor_id
        self.date = on_date
        self.patient_filter = patient_filter
        self.queue: asyncio.Queue[str] = asyncio.Queue()
        self.closed = False

    @property
    def key(self) -> ChannelKey:
        return (self.doctor_id, self.date)

    def wants(self, event: QueueEvent) -> bool:
        """Staff see the whole channel; patients only their own bookings."""
        return self.patient_filter is None or event.patient_id == self.patient_filter

    def deliver(self, frame: str) -> None:
        self.queue.put_nowait(frame)

    def close(self) -> None:
        self.closed = True


class QueueHub:
    def __init__(self, heartbeat_seconds: float = 25.0):
        self.heartbeat_seconds = heartbeat_seconds
        self._channels: dict[ChannelKey, set[Subscriber]] = {}
        self._published = 0
        self._delivered = 0
        self._pruned = 0

    def subscribe(
        self,
        doctor_id: str,
        on_date: date,
        patient_filter: Optional[str] = None,
    ) -> Subscriber:
        subscriber = Subscriber(doctor_id, on_date, patient_filter)
        self._channels.setdefault(subscriber.key, set()).add(subscriber)

        subscriber.deliver(
            format_sse(
                "connected",
                json.dumps(
                    {
                        "doctorId": doctor_id,
                        "date": on_date.isoformat(),
                        "message": "Subscribed to booking queue",
                    }
                ),
            )
        )
        logger.info(
            "Queue subscriber connected",
            doctor_id=doctor_id,
            date=on_date.isoformat(),
            filtered=patient_filter is not None,
        )
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        subscriber.close()
        channel = self._channels.get(subscriber.key)
        if channel is None:
            return
        channel.discard(subscriber)
        if not channel:
            del self._channels[subscriber.key]
        logger.info(
            "Queue subscriber disconnected",
            doctor_id=subscriber.doctor_id,
            date=subscriber.date.isoformat(),
        )

    def publish(self, event: QueueEvent) -> int:
        """
        Fan `event` out to its channel. Returns the number of subscribers
        that received it.
        """
        self._published += 1
        key = (event.doctor_id, event.date)
        channel = self._channels.get(key)
        if not channel:
            return 0

        frame = format_sse(event.type.value, event.to_wire())
        delivered = 0
        dead: list[Subscriber] = []

        for subscriber in channel:
            if subscriber.closed:
                dead.append(subscriber)
                continue
            if not subscriber.wants(event):
                continue
            subscriber.deliver(frame)
            delivered += 1

        for subscriber in dead:
            channel.discard(subscriber)
        if dead:
            self._pruned += len(dead)
            logger.debug("Pruned closed subscribers", channel=str(key), count=len(dead))
        if not channel:
            del self._channels[key]

        self._delivered += delivered
        return delivered

    async def stream(
        self,
        doctor_id: str,
        on_date: date,
        patient_filter: Optional[str] = None,
        heartbeat_seconds: Optional[float] = None,
    ) -> AsyncIterator[str]:
        """
        Subscribe and yield the subscriber's frames, starting with `connected`.

        The subscriber is registered on first iteration and removed in the
        same scope when the consumer stops (client disconnect), so a stream
        that is never started never enters the registry. A `ping` goes out
        every heartbeat interval, busy channel or not.
        """
        interval = heartbeat_seconds or self.heartbeat_seconds
        loop = asyncio.get_running_loop()
        subscriber = self.subscribe(doctor_id, on_date, patient_filter)
        try:
            next_ping = loop.time() + interval
            while not subscriber.closed:
                remaining = next_ping - loop.time()
                if remaining <= 0:
                    next_ping = loop.time() + interval
                    yield format_sse("ping", json.dumps({"ts": _now_iso()}))
                    continue
                try:
                    frame = await asyncio.wait_for(subscriber.queue.get(), timeout=remaining)
                except asyncio.TimeoutError:
                    continue
                yield frame
        finally:
            self.unsubscribe(subscriber)

    def subscriber_count(self, doctor_id: str, on_date: date) -> int:
        return len(self._channels.get((doctor_id, on_date), ()))

    @property
    def channel_count(self) -> int:
        return len(self._channels)

    def stats(self) -> dict[str, Any]:
        return {
            "channels": len(self._channels),
            "subscribers": sum(len(c) for c in self._channels.values()),
            "published": self._published,
            "delivered": self._delivered,
            "pruned": self._pruned,
        }


def get_queue_hub(request: Request) -> QueueHub:
    hub = getattr(request.app.state, "queue_hub", None)
    if hub is None:
        raise RuntimeError("QueueHub not found in app.state")
    return hub


__all__ = ["QueueHub", "Subscriber", "format_sse", "get_queue_hub"]
