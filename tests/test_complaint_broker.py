import asyncio
import json
import pytest
from app.services.complaint_broker import (
    KEEPALIVE, ComplaintEventBroker, StreamViewer, complaint_event_stream, format_sse, render_for_viewer,
)

OWNER = StreamViewer(user_id=1, is_hr=False)
HR_READER = StreamViewer(user_id=3, is_hr=True)

HR_MESSAGE = {
    "id": 10,
    "content": "We are on it",
    "is_from_hr": True,
    "user_id": 2,
    "hr_alias": "HR Staff 1",
}


def _parse(frame):
    lines = frame.strip().split("\n")
    assert lines[0].startswith("event: ")
    assert lines[1].startswith("data: ")
    return lines[0][len("event: "):], json.loads(lines[1][len("data: "):])


def test_format_sse():
    assert format_sse("status", {"status": "DONE"}) == 'event: status\ndata: {"status": "DONE"}\n\n'


def test_render_hides_routing_fields():
    payload = render_for_viewer("message", HR_MESSAGE, OWNER)
    assert "user_id" not in payload
    assert "hr_alias" not in payload
    assert payload["sender_name"] == "HR Staff"
    assert payload["is_self"] is False


def test_render_uses_alias_for_hr_and_you_for_sender():
    assert render_for_viewer("message", HR_MESSAGE, HR_READER)["sender_name"] == "HR Staff 1"
    sender = StreamViewer(user_id=2, is_hr=True)
    payload = render_for_viewer("message", HR_MESSAGE, sender)
    assert payload["sender_name"] == "You"
    assert payload["is_self"] is True


def test_render_labels_owner_as_anonymous():
    owner_message = {**HR_MESSAGE, "is_from_hr": False, "user_id": 1, "hr_alias": "Anonymous Employee"}
    assert render_for_viewer("message", owner_message, HR_READER)["sender_name"] == "Anonymous Employee"


def test_status_events_pass_through():
    data = {"complaint_id": 4, "status": "DONE"}
    assert render_for_viewer("status", data, OWNER) == data


def test_stream_delivers_connected_then_events():
    async def scenario():
        broker = ComplaintEventBroker()
        stream = complaint_event_stream(broker, broker.subscribe(7, OWNER), keepalive_seconds=5)
        first = await stream.__anext__()
        assert broker.subscriber_count(7) == 1

        # Published from a worker thread, like a sync route handler does
        delivered = await asyncio.to_thread(broker.publish, 7, "message", HR_MESSAGE)
        second = await stream.__anext__()
        await stream.aclose()
        return first, delivered, second, broker

    first, delivered, second, broker = asyncio.run(scenario())
    assert _parse(first) == ("connected", {"complaint_id": 7})
    assert delivered == 1
    event, data = _parse(second)
    assert event == "message"
    assert data["sender_name"] == "HR Staff"
    assert "user_id" not in data
    assert broker.subscriber_count() == 0
    assert broker.has_topic(7) is False


def test_events_published_before_first_read_are_delivered():
    async def scenario():
        broker = ComplaintEventBroker()
        subscriber = broker.subscribe(7, HR_READER)
        await asyncio.to_thread(broker.publish, 7, "status", {"complaint_id": 7, "status": "IN_PROGRESS"})
        stream = complaint_event_stream(broker, subscriber, keepalive_seconds=5)
        frames = [await stream.__anext__(), await stream.__anext__()]
        await stream.aclose()
        return frames, broker

    frames, broker = asyncio.run(scenario())
    assert [_parse(f)[0] for f in frames] == ["connected", "status"]
    assert _parse(frames[1])[1] == {"complaint_id": 7, "status": "IN_PROGRESS"}
    assert broker.subscriber_count() == 0


def test_stream_sends_keepalive_when_idle():
    async def scenario():
        broker = ComplaintEventBroker()
        stream = complaint_event_stream(broker, broker.subscribe(1, OWNER), keepalive_seconds=0.01)
        await stream.__anext__()
        ping = await stream.__anext__()
        await stream.aclose()
        return ping

    assert asyncio.run(scenario()) == KEEPALIVE


def test_close_all_ends_streams():
    async def scenario():
        broker = ComplaintEventBroker()
        stream = complaint_event_stream(broker, broker.subscribe(1, OWNER), keepalive_seconds=5)
        await stream.__anext__()
        broker.close_all()
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()
        return broker

    broker = asyncio.run(scenario())
    assert broker.subscriber_count() == 0


def test_publish_without_subscribers():
    broker = ComplaintEventBroker()
    assert broker.publish(42, "status", {"complaint_id": 42, "status": "DONE"}) == 0


def test_events_are_scoped_to_their_complaint():
    async def scenario():
        broker = ComplaintEventBroker()
        watcher = broker.subscribe(1, OWNER)
        other = broker.subscribe(2, OWNER)
        broker.publish(1, "status", {"complaint_id": 1, "status": "DONE"})
        await asyncio.sleep(0)
        return watcher.queue.qsize(), other.queue.qsize()

    assert asyncio.run(scenario()) == (1, 0)


def test_dead_subscribers_are_dropped():
    broker = ComplaintEventBroker()

    async def subscribe_and_leave():
        broker.subscribe(5, HR_READER)

    # The loop that owned the subscriber is closed once asyncio.run returns
    asyncio.run(subscribe_and_leave())
    assert broker.subscriber_count(5) == 1
    assert broker.publish(5, "status", {"complaint_id": 5, "status": "DONE"}) == 0
    assert broker.subscriber_count(5) == 0
