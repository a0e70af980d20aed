"""Connection registry tests.

Learn: Tests cover:
1. Register → notify delivers exactly one message
2. Absent recipient is a silent no-op
3. Unregister (plain and connection-scoped)
4. Superseded-connection policy, both settings
5. Send-failure policy, both settings
6. Serialization failure
7. Concurrency: notify racing unregister, threaded unregister
8. Graceful shutdown via close_all
"""

import asyncio
import json
import uuid
from concurrent.futures import ThreadPoolExecutor

import pytest

from tenderhub.events.models import AwardEvent, NewBidEvent
from tenderhub.realtime.registry import (
    ConnectionRegistry,
    NotificationDeliveryError,
    NotificationError,
    NotificationSerializationError,
)

TENDER_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
BID_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")


def new_bid(recipient: str = "u1") -> NewBidEvent:
    return NewBidEvent(
        recipient_id=recipient,
        tender_id=TENDER_ID,
        bid_id=BID_ID,
        price=100.0,
        message="New bid",
    )


# ═══════════════════════════════════════════════════════════
# Delivery
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_notify_registered_connection_sends_one_message(registry, make_connection):
    conn = make_connection()
    await registry.register("u1", conn)

    delivered = await registry.notify("u1", new_bid())

    assert delivered is True
    assert len(conn.sent) == 1
    assert json.loads(conn.sent[0]) == {
        "type": "new_bid",
        "tender_id": str(TENDER_ID),
        "bid_id": str(BID_ID),
        "price": 100.0,
        "message": "New bid",
    }


@pytest.mark.asyncio
async def test_notify_absent_recipient_is_noop(registry, make_connection):
    other = make_connection()
    await registry.register("u2", other)

    delivered = await registry.notify("u1", new_bid())

    assert delivered is False
    assert other.sent == []


@pytest.mark.asyncio
async def test_consecutive_notifies_arrive_in_order(registry, make_connection):
    conn = make_connection()
    await registry.register("c1", conn)

    await registry.notify("c1", new_bid("c1"))
    await registry.notify(
        "c1", AwardEvent(recipient_id="c1", tender_id=TENDER_ID, bid_id=BID_ID, message="won")
    )

    assert [m["type"] for m in conn.messages()] == ["new_bid", "award"]


@pytest.mark.asyncio
async def test_publish_routes_to_event_recipient(registry, make_connection):
    u1, u2 = make_connection(), make_connection()
    await registry.register("u1", u1)
    await registry.register("u2", u2)

    await registry.publish(new_bid("u2"))

    assert u1.sent == []
    assert len(u2.sent) == 1


# ═══════════════════════════════════════════════════════════
# Unregister
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_notify_after_unregister_is_noop(registry, make_connection):
    conn = make_connection()
    await registry.register("u1", conn)

    removed = registry.unregister("u1")

    assert removed is conn
    assert "u1" not in registry
    assert await registry.notify("u1", new_bid()) is False
    assert conn.sent == []


def test_unregister_unknown_identity_is_noop(registry):
    assert registry.unregister("nobody") is None
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_unregister_with_stale_connection_keeps_newer(registry, make_connection):
    old, new = make_connection(), make_connection()
    await registry.register("u1", old)
    await registry.register("u1", new)

    assert registry.unregister("u1", old) is None
    assert registry.get("u1") is new

    assert registry.unregister("u1", new) is new
    assert "u1" not in registry


# ═══════════════════════════════════════════════════════════
# Superseded connections
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_reregister_keeps_old_connection_open_by_default(registry, make_connection):
    old, new = make_connection(), make_connection()
    await registry.register("u1", old)

    previous = await registry.register("u1", new)

    assert previous is old
    assert old.closed is False
    assert registry.get("u1") is new
    assert len(registry) == 1

    await registry.notify("u1", new_bid())
    assert old.sent == []
    assert len(new.sent) == 1


@pytest.mark.asyncio
async def test_reregister_closes_old_connection_when_configured(make_connection):
    registry = ConnectionRegistry(close_superseded=True)
    old, new = make_connection(), make_connection()
    await registry.register("u1", old)

    await registry.register("u1", new)

    assert old.closed is True
    assert new.closed is False
    assert registry.get("u1") is new


@pytest.mark.asyncio
async def test_reregister_same_connection_does_not_close_it(make_connection):
    registry = ConnectionRegistry(close_superseded=True)
    conn = make_connection()
    await registry.register("u1", conn)
    await registry.register("u1", conn)

    assert conn.closed is False
    assert registry.get("u1") is conn


@pytest.mark.asyncio
async def test_superseded_close_failure_is_swallowed(make_connection):
    registry = ConnectionRegistry(close_superseded=True)
    old = make_connection(fail_close=True)
    await registry.register("u1", old)

    await registry.register("u1", make_connection())

    assert old.close_calls == 1
    assert "u1" in registry


# ═══════════════════════════════════════════════════════════
# Failures
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_send_failure_raises_but_keeps_registration(registry, make_connection):
    conn = make_connection(fail_sends=True)
    await registry.register("u1", conn)

    with pytest.raises(NotificationDeliveryError) as exc_info:
        await registry.notify("u1", new_bid())

    assert exc_info.value.identity == "u1"
    assert isinstance(exc_info.value, NotificationError)
    assert registry.get("u1") is conn
    assert conn.closed is False


@pytest.mark.asyncio
async def test_send_failure_unregisters_when_configured(make_connection):
    registry = ConnectionRegistry(unregister_on_send_failure=True)
    conn = make_connection(fail_sends=True)
    await registry.register("u1", conn)

    with pytest.raises(NotificationDeliveryError):
        await registry.notify("u1", new_bid())

    assert "u1" not in registry
    assert conn.closed is True


@pytest.mark.asyncio
async def test_serialization_failure(registry, make_connection, monkeypatch):
    conn = make_connection()
    await registry.register("u1", conn)

    def explode(event):
        raise ValueError("not encodable")

    monkeypatch.setattr("tenderhub.realtime.registry.serialize_event", explode)

    with pytest.raises(NotificationSerializationError):
        await registry.notify("u1", new_bid())

    assert conn.sent == []
    assert registry.get("u1") is conn


# ═══════════════════════════════════════════════════════════
# Concurrency
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_notify_racing_unregister(registry, make_connection):
    conn = make_connection()
    await registry.register("u1", conn)

    async def unregister_soon():
        await asyncio.sleep(0)
        registry.unregister("u1", conn)

    results = await asyncio.gather(
        *(registry.notify("u1", new_bid()) for _ in range(20)),
        unregister_soon(),
    )

    delivered = results[:-1]
    assert all(isinstance(r, bool) for r in delivered)
    assert len(conn.sent) == delivered.count(True)
    assert await registry.notify("u1", new_bid()) is False


@pytest.mark.asyncio
async def test_threaded_unregister_of_many_identities(registry, make_connection):
    identities = [f"u{i}" for i in range(200)]
    for identity in identities:
        await registry.register(identity, make_connection())

    with ThreadPoolExecutor(max_workers=16) as pool:
        removed = list(pool.map(registry.unregister, identities))

    assert all(r is not None for r in removed)
    assert len(registry) == 0


# ═══════════════════════════════════════════════════════════
# Shutdown
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_close_all_empties_and_closes(registry, make_connection):
    conns = [make_connection() for _ in range(3)]
    conns.append(make_connection(fail_close=True))
    for i, conn in enumerate(conns):
        await registry.register(f"u{i}", conn)

    closed = await registry.close_all()

    assert closed == 4
    assert len(registry) == 0
    assert all(c.close_calls == 1 for c in conns)
