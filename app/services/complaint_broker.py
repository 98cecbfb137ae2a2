"""
In-process event broker for live complaint threads.

One broker lives on each application instance (``app.state.complaint_broker``)
and is handed to routes through a dependency. Subscribers are bound to the
event loop that serves their stream, so ``publish`` can be called from the
worker threads that run sync route handlers.

The broker only sees subscribers of its own process. Running several
instances needs an external pub/sub in front of it.
"""
import asyncio
import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional, Set

logger = logging.getLogger(__name__)

KEEPALIVE = ": ping\n\n"

# Queue sentinel: the broker is shutting down, end the stream
CLOSE = object()


def format_sse(event: str, data: Any) -> str:
    return f"event: {event}\ndata: {json.dumps(data, default=str)}\n\n"


@dataclass(frozen=True)
class StreamViewer:
    """Who is reading a stream; decides how sender names are rendered."""
    user_id: int
    is_hr: bool


class Subscriber:
    def __init__(self, complaint_id: int, viewer: StreamViewer, loop: asyncio.AbstractEventLoop):
        self.complaint_id = complaint_id
        self.viewer = viewer
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def send(self, item: Any) -> bool:
        """Hand an item to the subscriber's loop. False when it can no longer receive."""
        if self.closed or self.loop.is_closed():
            self.closed = True
            return False
        try:
            self.loop.call_soon_threadsafe(self.queue.put_nowait, item)
        except RuntimeError:
            # Loop closed between the check and the call
            self.closed = True
            return False
        return True


class ComplaintEventBroker:

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: Dict[int, Set[Subscriber]] = {}

    def subscribe(self, complaint_id: int, viewer: StreamViewer) -> Subscriber:
        """Register a subscriber. Must be called from the loop that will consume it."""
        subscriber = Subscriber(complaint_id, viewer, asyncio.get_running_loop())
        with self._lock:
            self._subscribers.setdefault(complaint_id, set()).add(subscriber)
        logger.debug(f"Stream opened for complaint {complaint_id} (user {viewer.user_id})")
        return subscriber

    def unsubscribe(self, complaint_id: int, subscriber: Subscriber) -> None:
        subscriber.closed = True
        with self._lock:
            subscribers = self._subscribers.get(complaint_id)
            if subscribers is None:
                return
            subscribers.discard(subscriber)
            if not subscribers:
                del self._subscribers[complaint_id]

    def publish(self, complaint_id: int, event: str, data: Dict[str, Any]) -> int:
        """Fan an event out to every live subscriber. Returns how many accepted it."""
        with self._lock:
            subscribers = list(self._subscribers.get(complaint_id, ()))
        delivered = 0
        dead = []
        for subscriber in subscribers:
            if subscriber.send((event, data)):
                delivered += 1
            else:
                dead.append(subscriber)
        for subscriber in dead:
            self.unsubscribe(complaint_id, subscriber)
        if dead:
            logger.info(f"Dropped {len(dead)} dead subscriber(s) for complaint {complaint_id}")
        return delivered

    def subscriber_count(self, complaint_id: Optional[int] = None) -> int:
        with self._lock:
            if complaint_id is not None:
                return len(self._subscribers.get(complaint_id, ()))
            return sum(len(s) for s in self._subscribers.values())

    def has_topic(self, complaint_id: int) -> bool:
        with self._lock:
            return complaint_id in self._subscribers

    def close_all(self) -> None:
        """End every open stream. Called on application shutdown."""
        with self._lock:
            subscribers = [s for group in self._subscribers.values() for s in group]
            self._subscribers.clear()
        for subscriber in subscribers:
            subscriber.send(CLOSE)
            subscriber.closed = True
        if subscribers:
            logger.info(f"Closed {len(subscribers)} complaint stream(s)")


def render_for_viewer(event: str, data: Dict[str, Any], viewer: StreamViewer) -> Dict[str, Any]:
    """Strip internal routing fields and label the sender for this viewer."""
    if event != "message":
        return data
    payload = {k: v for k, v in data.items() if k not in ("user_id", "hr_alias")}
    is_self = data.get("user_id") == viewer.user_id
    if is_self:
        sender_name = "You"
    elif viewer.is_hr:
        sender_name = data.get("hr_alias") or "HR Staff"
    else:
        sender_name = "HR Staff" if data.get("is_from_hr") else "Anonymous Employee"
    payload["is_self"] = is_self
    payload["sender_name"] = sender_name
    return payload


async def complaint_event_stream(
    broker: ComplaintEventBroker,
    subscriber: Subscriber,
    keepalive_seconds: float,
) -> AsyncIterator[str]:
    """
    Server-sent event stream for one complaint.

    `subscriber` must already be registered with `broker`; events queued
    before the first read are delivered after ``connected``. Then
    ``message``/``status`` events follow as they are published, and a comment
    line when nothing happened for `keepalive_seconds`. A failed write ends
    the generator, which unsubscribes.
    """
    complaint_id, viewer = subscriber.complaint_id, subscriber.viewer
    try:
        yield format_sse("connected", {"complaint_id": complaint_id})
        while True:
            try:
                item = await asyncio.wait_for(subscriber.queue.get(), timeout=keepalive_seconds)
            except asyncio.TimeoutError:
                yield KEEPALIVE
                continue
            if item is CLOSE:
                break
            event, data = item
            yield format_sse(event, render_for_viewer(event, data, viewer))
    finally:
        broker.unsubscribe(complaint_id, subscriber)
