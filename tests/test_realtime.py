import asyncio
import json
from contextlib import asynccontextmanager
from datetime import datetime

import pytest
from starlette.websockets import WebSocketDisconnect

from gueswi.realtime.client import RealtimeClient
from gueswi.realtime.manager import TopicConnectionManager, build_envelope, tenant_topic

# ==================== MANAGER ====================


class FakeWebSocket:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(message)


def test_build_envelope():
    envelope = build_envelope("conversations:updated", {"at": datetime(2025, 6, 2, 12, 0)})
    assert envelope["type"] == "broadcast"
    assert envelope["channel"] == "conversations:updated"
    assert envelope["data"] == {"at": "2025-06-02T12:00:00"}
    assert envelope["timestamp"].endswith("Z")


async def test_broadcast_reaches_topic_subscribers_only():
    manager = TopicConnectionManager()
    subscribed, other = FakeWebSocket(), FakeWebSocket()
    await manager.connect("a", subscribed)
    await manager.connect("b", other)
    await manager.subscribe_to_topic("a", tenant_topic("t1"))

    delivered = await manager.broadcast_to_topic(tenant_topic("t1"), {"hello": 1})
    assert delivered == 1
    assert subscribed.sent == [{"hello": 1}]
    assert other.sent == []


async def test_failed_sockets_are_dropped():
    manager = TopicConnectionManager()
    await manager.connect("dead", FakeWebSocket(fail=True))
    await manager.subscribe_to_topic("dead", "tenant:t1")

    assert await manager.broadcast_to_topic("tenant:t1", {}) == 0
    assert "dead" not in manager.active_connections
    assert manager.subscriber_count("tenant:t1") == 0


async def test_subscribe_requires_connection():
    manager = TopicConnectionManager()
    await manager.subscribe_to_topic("ghost", "tenant:t1")
    assert manager.subscriber_count("tenant:t1") == 0


# ==================== ENDPOINT ====================


def test_socket_requires_session(client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
    assert exc.value.code == 4401


def test_socket_authenticates_own_tenant(auth_client):
    tenant_id = auth_client.user["tenantId"]
    with auth_client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "authenticate", "tenantId": tenant_id})
        assert ws.receive_json() == {"type": "authenticated", "tenantId": tenant_id}

        ws.send_json({"type": "ping"})
        assert ws.receive_json()["type"] == "pong"

        ws.send_text("not json")
        assert ws.receive_json() == {"type": "error", "error": "Invalid JSON payload"}

        ws.send_json({"type": "dance"})
        assert ws.receive_json()["error"] == "Unknown message type: dance"


def test_socket_rejects_foreign_tenant(auth_client):
    with auth_client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "authenticate", "tenantId": "someone-else"})
        with pytest.raises(WebSocketDisconnect) as exc:
            ws.receive_json()
    assert exc.value.code == 4403


# ==================== CLIENT ====================


class ScriptedSocket:
    """Yields canned frames, then reports the given close code"""

    def __init__(self, frames, close_code=1000):
        self.frames = list(frames)
        self.final_code = close_code
        self.close_code = None
        self.sent = []

    async def send(self, data):
        self.sent.append(json.loads(data))

    def __aiter__(self):
        return self._frames()

    async def _frames(self):
        for frame in self.frames:
            yield frame
        self.close_code = self.final_code

    async def close(self, code=1000):
        self.close_code = code


def scripted_connect(outcomes, calls):
    """A connect() stand-in: each call consumes a socket or raises an exception"""

    @asynccontextmanager
    async def connect(url, additional_headers=None):
        calls.append(additional_headers)
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        yield outcome

    return connect


def broadcast(channel, data):
    return json.dumps({"type": "broadcast", "channel": channel, "data": data})


async def test_client_authenticates_and_dispatches():
    socket = ScriptedSocket(
        [
            json.dumps({"type": "authenticated", "tenantId": "t1"}),
            broadcast("messages:new", {"id": "m1"}),
            "garbage",
            broadcast("call_status", {"status": "ringing"}),
        ]
    )
    calls = []
    client = RealtimeClient(
        "ws://test/ws", "t1", session_cookie="abc", connect=scripted_connect([socket], calls)
    )

    received = []

    async def on_call(data):
        received.append(("call", data))

    client.on("messages:new", lambda data: received.append(("message", data)))
    client.on("call_status", on_call)

    await client.run()

    assert socket.sent == [{"type": "authenticate", "tenantId": "t1"}]
    assert calls == [{"Cookie": "gueswi.sid=abc"}]
    assert received == [("message", {"id": "m1"}), ("call", {"status": "ringing"})]
    assert client.state == "disconnected"


async def test_client_handler_errors_are_isolated():
    socket = ScriptedSocket([broadcast("messages:new", {"id": "m1"})])
    client = RealtimeClient("ws://test/ws", "t1", connect=scripted_connect([socket], []))
    received = []

    def broken(data):
        raise ValueError("boom")

    client.on("messages:new", broken)
    client.on("messages:new", received.append)
    await client.run()
    assert received == [{"id": "m1"}]


async def test_client_unsubscribe():
    socket = ScriptedSocket([broadcast("messages:new", {"id": "m1"})])
    client = RealtimeClient("ws://test/ws", "t1", connect=scripted_connect([socket], []))
    received = []
    unsubscribe = client.on("messages:new", received.append)
    unsubscribe()
    await client.run()
    assert received == []


async def test_client_reconnects_after_abnormal_close():
    dropped = ScriptedSocket([], close_code=1006)
    clean = ScriptedSocket([], close_code=1000)
    calls = []
    client = RealtimeClient(
        "ws://test/ws", "t1", reconnect_delay=0, connect=scripted_connect([dropped, clean], calls)
    )

    await client.run()
    assert len(calls) == 2
    # A successful connection resets the counter
    assert client.reconnect_attempts == 0


async def test_client_gives_up_after_max_attempts():
    failures = [OSError("refused") for _ in range(4)]
    calls = []
    client = RealtimeClient(
        "ws://test/ws",
        "t1",
        reconnect_delay=0,
        max_reconnect_attempts=3,
        connect=scripted_connect(failures, calls),
    )

    await client.run()
    assert len(calls) == 4
    assert client.reconnect_attempts == 3


class HeldSocket:
    """Stays open until close() is called"""

    def __init__(self):
        self.sent = []
        self.close_code = None
        self._closed = asyncio.Event()

    async def send(self, data):
        self.sent.append(json.loads(data))

    def __aiter__(self):
        return self

    async def __anext__(self):
        await self._closed.wait()
        raise StopAsyncIteration

    async def close(self, code=1000):
        self.close_code = code
        self._closed.set()


async def wait_until(predicate, timeout=1.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


async def test_client_stop_closes_normally():
    socket = HeldSocket()
    calls = []
    client = RealtimeClient("ws://test/ws", "t1", connect=scripted_connect([socket], calls))
    task = asyncio.create_task(client.run())

    await wait_until(lambda: client.state == "connected")
    await client.stop()
    await asyncio.wait_for(task, 1)

    assert socket.close_code == 1000
    assert len(calls) == 1
    assert client.state == "disconnected"


async def test_client_stop_during_reconnect_wait():
    dropped = ScriptedSocket([], close_code=1006)
    calls = []
    client = RealtimeClient(
        "ws://test/ws",
        "t1",
        reconnect_delay=0.2,
        connect=scripted_connect([dropped, HeldSocket()], calls),
    )
    task = asyncio.create_task(client.run())

    await wait_until(lambda: client.reconnect_attempts == 1)
    await client.stop()
    await asyncio.wait_for(task, 1)

    assert len(calls) == 1


async def test_client_stop_during_handshake():
    socket = HeldSocket()
    gate = asyncio.Event()
    calls = []

    @asynccontextmanager
    async def slow_connect(url, additional_headers=None):
        calls.append(additional_headers)
        await gate.wait()
        yield socket

    client = RealtimeClient("ws://test/ws", "t1", connect=slow_connect)
    task = asyncio.create_task(client.run())

    await wait_until(lambda: calls)
    await client.stop()
    gate.set()
    await asyncio.wait_for(task, 1)

    assert socket.close_code == 1000
    assert socket.sent == []
    assert len(calls) == 1


async def test_client_heartbeat_pings_until_closed():
    socket = HeldSocket()
    client = RealtimeClient(
        "ws://test/ws", "t1", heartbeat_interval=0.01, connect=scripted_connect([socket], [])
    )
    task = asyncio.create_task(client.run())

    await wait_until(lambda: len(socket.sent) >= 3)
    await client.stop()
    await asyncio.wait_for(task, 1)

    assert socket.sent[0] == {"type": "authenticate", "tenantId": "t1"}
    assert all(message == {"type": "ping"} for message in socket.sent[1:])

    sent_at_close = len(socket.sent)
    await asyncio.sleep(0.05)
    assert len(socket.sent) == sent_at_close
