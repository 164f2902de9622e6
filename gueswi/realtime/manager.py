"""Topic-based WebSocket connection manager.

Sockets subscribe to ``tenant:{id}`` topics once they authenticate. Route
handlers publish cache-invalidation events to every socket of a tenant.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Set

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)


def tenant_topic(tenant_id: str) -> str:
    return f"tenant:{tenant_id}"


def build_envelope(channel: str, data: Any) -> Dict[str, Any]:
    """Wrap an event in the broadcast envelope sent to browsers."""
    return {
        "type": "broadcast",
        "channel": channel,
        "data": jsonable_encoder(data),
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }


class TopicConnectionManager:
    """Manages WebSocket connections with topic-based subscriptions."""

    def __init__(self):
        # client_id -> socket (guarded by `_lock`)
        self.active_connections: Dict[str, WebSocket] = {}
        # topic -> subscribed client_ids (guarded by `_lock`)
        self.topic_subscriptions: Dict[str, Set[str]] = {}
        # client_id -> subscribed topics (guarded by `_lock`)
        self.client_topics: Dict[str, Set[str]] = {}
        self._lock: asyncio.Lock | None = None
        self._lock_loop_id: int | None = None

    def _get_lock(self) -> asyncio.Lock:
        """Get lock for current event loop, creating new one if needed."""
        current_loop_id = id(asyncio.get_running_loop())
        if self._lock is None or self._lock_loop_id != current_loop_id:
            self._lock = asyncio.Lock()
            self._lock_loop_id = current_loop_id
        return self._lock

    async def connect(self, client_id: str, websocket: WebSocket) -> None:
        async with self._get_lock():
            self.active_connections[client_id] = websocket
            self.client_topics[client_id] = set()
        logger.info(f"🔌 WebSocket client {client_id} connected")

    async def disconnect(self, client_id: str) -> None:
        async with self._get_lock():
            self.active_connections.pop(client_id, None)
            for topic in self.client_topics.pop(client_id, set()):
                subscribers = self.topic_subscriptions.get(topic)
                if subscribers is None:
                    continue
                subscribers.discard(client_id)
                if not subscribers:
                    del self.topic_subscriptions[topic]
        logger.info(f"🔌 WebSocket client {client_id} disconnected")

    async def subscribe_to_topic(self, client_id: str, topic: str) -> None:
        async with self._get_lock():
            if client_id not in self.active_connections:
                return
            self.topic_subscriptions.setdefault(topic, set()).add(client_id)
            self.client_topics[client_id].add(topic)
        logger.debug(f"Client {client_id} subscribed to {topic}")

    def subscriber_count(self, topic: str) -> int:
        return len(self.topic_subscriptions.get(topic, ()))

    async def broadcast_to_topic(self, topic: str, message: Dict[str, Any]) -> int:
        """Send a message to every client on a topic. Returns the number delivered."""
        async with self._get_lock():
            targets = [
                (client_id, self.active_connections[client_id])
                for client_id in self.topic_subscriptions.get(topic, set())
                if client_id in self.active_connections
            ]

        if not targets:
            logger.debug(f"No subscribers for topic {topic}")
            return 0

        delivered = 0
        dead: list[str] = []
        for client_id, websocket in targets:
            try:
                await websocket.send_json(message)
                delivered += 1
            except Exception as e:
                logger.warning(f"⚠️ Send error for client {client_id}: {e}")
                dead.append(client_id)

        for client_id in dead:
            await self.disconnect(client_id)

        return delivered


topic_manager = TopicConnectionManager()


async def broadcast_to_tenant(tenant_id: str, channel: str, data: Any) -> int:
    """Publish an event on a tenant's topic."""
    delivered = await topic_manager.broadcast_to_topic(
        tenant_topic(tenant_id), build_envelope(channel, data)
    )
    logger.info(f"📡 Broadcast {channel} to tenant {tenant_id} ({delivered} client(s))")
    return delivered
