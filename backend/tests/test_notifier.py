import asyncio

import pytest

from dispatcher.errors import StaleReference
from dispatcher.notifier import AGENTS_GROUP, CUSTOMERS_GROUP, ConnectionManager, Notifier


class FakeSocket:
    """Just enough of a WebSocket for ConnectionManager."""

    def __init__(self, fail_on_send: bool = False) -> None:
        self.accepted = False
        self.frames: list[dict] = []
        self.fail_on_send = fail_on_send

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, frame: dict) -> None:
        if self.fail_on_send:
            raise RuntimeError("socket closed")
        self.frames.append(frame)


def test_notifier_is_abstract():
    with pytest.raises(TypeError):
        Notifier()


def test_unknown_connection_is_a_stale_reference():
    manager = ConnectionManager()
    with pytest.raises(StaleReference):
        manager.send("gone", "call:ended", {"call_id": "c1"})
    with pytest.raises(StaleReference):
        manager.join("gone", AGENTS_GROUP)
    assert manager.deliver("gone", "call:ended", {"call_id": "c1"}) is False


def test_broadcast_to_empty_group_is_quiet():
    manager = ConnectionManager()
    manager.broadcast(AGENTS_GROUP, "agents:updated", [])
    manager.disconnect("never-connected")
    assert not manager.is_connected("never-connected")


def test_broadcast_reaches_only_group_members():
    async def scenario():
        manager = ConnectionManager()
        agent_ws, customer_ws = FakeSocket(), FakeSocket()
        agent = await manager.connect(agent_ws)
        customer = await manager.connect(customer_ws)
        manager.join(agent, AGENTS_GROUP)
        manager.join(customer, CUSTOMERS_GROUP)

        manager.broadcast(AGENTS_GROUP, "queue:updated", {"total": 0})
        manager.send(customer, "customer:queued", {"position": 1})

        pumps = [asyncio.create_task(manager.pump(c)) for c in (agent, customer)]
        await asyncio.sleep(0)
        manager.disconnect(agent)
        manager.disconnect(customer)
        await asyncio.wait_for(asyncio.gather(*pumps), timeout=1)
        return agent_ws, customer_ws

    agent_ws, customer_ws = asyncio.run(scenario())
    assert agent_ws.accepted and customer_ws.accepted
    assert agent_ws.frames == [{"event": "queue:updated", "data": {"total": 0}}]
    assert customer_ws.frames == [{"event": "customer:queued", "data": {"position": 1}}]


def test_disconnect_drops_connection_from_every_group():
    async def scenario():
        manager = ConnectionManager()
        leaving_ws, staying_ws = FakeSocket(), FakeSocket()
        leaving = await manager.connect(leaving_ws)
        staying = await manager.connect(staying_ws)
        for group in (AGENTS_GROUP, CUSTOMERS_GROUP):
            manager.join(leaving, group)
        manager.join(staying, AGENTS_GROUP)

        manager.disconnect(leaving)
        manager.broadcast(AGENTS_GROUP, "agents:updated", [])
        manager.broadcast(CUSTOMERS_GROUP, "queue:position", {"position": 1})

        pump = asyncio.create_task(manager.pump(staying))
        await asyncio.sleep(0)
        manager.disconnect(staying)
        await asyncio.wait_for(pump, timeout=1)
        return manager, leaving, leaving_ws, staying_ws

    manager, leaving, leaving_ws, staying_ws = asyncio.run(scenario())
    assert not manager.is_connected(leaving)
    assert leaving_ws.frames == []
    assert staying_ws.frames == [{"event": "agents:updated", "data": []}]
    with pytest.raises(StaleReference):
        manager.send(leaving, "call:ended", {"call_id": "c1"})


def test_leave_stops_broadcasts_but_not_direct_sends():
    async def scenario():
        manager = ConnectionManager()
        ws = FakeSocket()
        conn = await manager.connect(ws)
        manager.join(conn, AGENTS_GROUP)
        manager.leave(conn, AGENTS_GROUP)

        manager.broadcast(AGENTS_GROUP, "agents:updated", [])
        manager.send(conn, "call:ended", {"call_id": "c1"})

        pump = asyncio.create_task(manager.pump(conn))
        await asyncio.sleep(0)
        manager.disconnect(conn)
        await asyncio.wait_for(pump, timeout=1)
        return ws

    ws = asyncio.run(scenario())
    assert ws.frames == [{"event": "call:ended", "data": {"call_id": "c1"}}]


def test_pump_stops_on_send_error():
    async def scenario():
        manager = ConnectionManager()
        ws = FakeSocket(fail_on_send=True)
        conn = await manager.connect(ws)
        manager.send(conn, "call:ended", {"call_id": "c1"})
        manager.send(conn, "call:ended", {"call_id": "c2"})
        # returns without the close sentinel ever being queued
        await asyncio.wait_for(manager.pump(conn), timeout=1)
        return manager, conn

    manager, conn = asyncio.run(scenario())
    assert manager.is_connected(conn)


def test_pump_for_unknown_connection_returns_at_once():
    asyncio.run(asyncio.wait_for(ConnectionManager().pump("nobody"), timeout=1))
