import asyncio
import threading

import pytest

from greycat.services.messaging.hub import BroadcastHub, Connection, StreamConnection


def test_subscribe_and_publish_reaches_only_topic_subscribers(hub, drain):
    a = hub.register(Connection())
    b = hub.register(Connection())
    hub.subscribe(a.id, "c1")
    hub.subscribe(b.id, "c2")

    delivered = hub.publish("c1", "new_message", {"id": "m1"})

    assert delivered == 1
    assert drain(a) == [{"event": "new_message", "data": {"id": "m1"}}]
    assert drain(b) == []


def test_connection_can_follow_several_topics(hub, drain):
    conn = hub.register(Connection())
    assert hub.subscribe(conn.id, "c1")
    assert hub.subscribe(conn.id, "c2")
    assert not hub.subscribe(conn.id, "c1")

    hub.publish("c1", "new_message", {"n": 1})
    hub.publish("c2", "new_message", {"n": 2})

    assert [f["data"]["n"] for f in drain(conn)] == [1, 2]
    assert hub.topics_for(conn.id) == {"c1", "c2"}


def test_unsubscribe_stops_delivery(hub, drain):
    conn = hub.register(Connection())
    hub.subscribe(conn.id, "c1")
    assert hub.unsubscribe(conn.id, "c1")
    assert not hub.unsubscribe(conn.id, "c1")

    assert hub.publish("c1", "new_message", {}) == 0
    assert drain(conn) == []


def test_disconnect_drops_every_topic(hub):
    conn = hub.register(StreamConnection())
    hub.subscribe(conn.id, "c1")
    hub.subscribe(conn.id, "c2")

    hub.disconnect(conn.id)

    assert hub.subscribers("c1") == set()
    assert hub.subscribers("c2") == set()
    assert conn.closed
    assert hub.publish("c1", "new_message", {}) == 0


def test_subscribe_unknown_connection_is_rejected(hub):
    assert not hub.subscribe("nope", "c1")


def test_full_queue_drops_only_for_that_connection(hub, drain):
    slow = hub.register(Connection(queue_size=1))
    fast = hub.register(Connection(queue_size=10))
    hub.subscribe(slow.id, "c1")
    hub.subscribe(fast.id, "c1")

    hub.publish("c1", "new_message", {"n": 1})
    delivered = hub.publish("c1", "new_message", {"n": 2})

    assert delivered == 1
    assert [f["data"]["n"] for f in drain(slow)] == [1]
    assert [f["data"]["n"] for f in drain(fast)] == [1, 2]


def test_publish_to_empty_topic_is_a_no_op(hub):
    assert hub.publish("nobody", "new_message", {"id": "m1"}) == 0


def test_concurrent_subscription_changes_do_not_break_publish():
    hub = BroadcastHub()
    stable = hub.register(Connection(queue_size=10_000))
    hub.subscribe(stable.id, "c1")
    errors = []

    def churn():
        try:
            for _ in range(500):
                conn = hub.register(Connection(queue_size=10_000))
                hub.subscribe(conn.id, "c1")
                hub.disconnect(conn.id)
        except Exception as e:  # pragma: no cover - failure path
            errors.append(e)

    thread = threading.Thread(target=churn)
    thread.start()
    for i in range(500):
        hub.publish("c1", "new_message", {"n": i})
    thread.join()

    assert errors == []
    assert stable.queue.qsize() == 500
    assert hub.subscribers("c1") == {stable.id}


@pytest.mark.asyncio
async def test_publish_from_worker_thread_is_handed_to_the_loop():
    hub = BroadcastHub()
    conn = hub.register(Connection())
    hub.subscribe(conn.id, "c1")

    await asyncio.to_thread(hub.publish, "c1", "new_message", {"id": "m1"})

    frame = await asyncio.wait_for(conn.receive(), timeout=1)
    assert frame == {"event": "new_message", "data": {"id": "m1"}}


@pytest.mark.asyncio
async def test_frames_keep_publish_order_per_connection():
    hub = BroadcastHub()
    conn = hub.register(Connection())
    hub.subscribe(conn.id, "c1")

    for i in range(20):
        hub.publish("c1", "new_message", {"n": i})

    received = [(await conn.receive())["data"]["n"] for _ in range(20)]
    assert received == list(range(20))
