"""Reconnecting WebSocket client for the console event channel.

Used by integrations and test harnesses that need the same live updates the
browser receives. The reconnect policy is a fixed delay with a bounded number
of attempts; a clean close (code 1000) ends the loop.
"""

import asyncio
import inspect
import json
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, WebSocketException

logger = logging.getLogger(__name__)

NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006

# Channels the console publishes
CONVERSATION_CHANNELS = (
    "conversations:updated",
    "conversations:closed",
    "conversations:reopened",
    "conversations:tags-added",
    "conversations:tag-removed",
)
MESSAGE_CHANNELS = ("messages:new",)
CALL_CHANNELS = ("call_status", "call_mute", "call_hold", "call_transfer")

Handler = Callable[[Any], Union[None, Awaitable[None]]]


class RealtimeClient:
    """Subscribe to a tenant's broadcast events over ``/ws``."""

    def __init__(
        self,
        url: str,
        tenant_id: str,
        session_cookie: Optional[str] = None,
        cookie_name: str = "gueswi.sid",
        reconnect_delay: float = 3.0,
        max_reconnect_attempts: int = 5,
        heartbeat_interval: float = 30.0,
        connect: Callable = ws_connect,
    ):
        self.url = url
        self.tenant_id = tenant_id
        self.session_cookie = session_cookie
        self.cookie_name = cookie_name
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_attempts = max_reconnect_attempts
        self.heartbeat_interval = heartbeat_interval
        self._connect = connect

        self.state = "disconnected"
        self.authenticated = False
        self.reconnect_attempts = 0
        self._handlers: dict[str, list[Handler]] = {}
        self._ws = None
        self._should_reconnect = True

    def on(self, channel: str, handler: Handler) -> Callable[[], None]:
        """Register a handler for a channel. Returns a function that unregisters it."""
        self._handlers.setdefault(channel, []).append(handler)

        def unsubscribe():
            handlers = self._handlers.get(channel, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    async def run(self) -> None:
        """Connect and keep reconnecting until stopped or out of attempts."""
        self._should_reconnect = True
        while True:
            close_code = await self._connect_once()
            self.state = "disconnected"
            self.authenticated = False

            if not self._should_reconnect or close_code == NORMAL_CLOSURE:
                logger.info(f"WebSocket closed cleanly (code {close_code})")
                return

            if self.reconnect_attempts >= self.max_reconnect_attempts:
                logger.error(
                    f"❌ Giving up after {self.reconnect_attempts} reconnect attempts (last code {close_code})"
                )
                return

            self.reconnect_attempts += 1
            logger.warning(
                f"⚠️ WebSocket closed (code {close_code}), reconnecting in {self.reconnect_delay}s "
                f"({self.reconnect_attempts}/{self.max_reconnect_attempts})"
            )
            await asyncio.sleep(self.reconnect_delay)
            if not self._should_reconnect:
                logger.info("Reconnect cancelled, client stopped")
                return

    async def stop(self) -> None:
        """Close with 1000 and disable reconnection."""
        self._should_reconnect = False
        if self._ws is not None:
            await self._ws.close(NORMAL_CLOSURE)

    async def _connect_once(self) -> int:
        self.state = "connecting"
        headers = {}
        if self.session_cookie:
            headers["Cookie"] = f"{self.cookie_name}={self.session_cookie}"

        try:
            async with self._connect(self.url, additional_headers=headers) as ws:
                if not self._should_reconnect:
                    # stop() ran during the handshake
                    await ws.close(NORMAL_CLOSURE)
                    return NORMAL_CLOSURE
                self._ws = ws
                self.reconnect_attempts = 0
                self.state = "connected"
                logger.info(f"✅ WebSocket connected to {self.url}")

                await ws.send(json.dumps({"type": "authenticate", "tenantId": self.tenant_id}))
                heartbeat = asyncio.create_task(self._heartbeat(ws))
                try:
                    async for raw in ws:
                        await self._handle_message(raw)
                except ConnectionClosed:
                    pass
                finally:
                    heartbeat.cancel()
                    self._ws = None

                return ws.close_code if ws.close_code is not None else ABNORMAL_CLOSURE
        except (OSError, WebSocketException) as e:
            logger.warning(f"⚠️ WebSocket connection failed: {e}")
            return ABNORMAL_CLOSURE

    async def _heartbeat(self, ws) -> None:
        try:
            while True:
                await asyncio.sleep(self.heartbeat_interval)
                await ws.send(json.dumps({"type": "ping"}))
        except ConnectionClosed:
            logger.debug("Heartbeat stopped, connection closed")

    async def _handle_message(self, raw: Union[str, bytes]) -> None:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"⚠️ Ignoring unparseable message: {raw!r}")
            return

        if not isinstance(message, dict):
            return

        message_type = message.get("type")
        if message_type == "authenticated":
            self.authenticated = True
            logger.info(f"✅ Subscribed to tenant {message.get('tenantId')}")
        elif message_type == "broadcast":
            channel = message.get("channel")
            if channel and "data" in message:
                await self._dispatch(channel, message["data"])
        elif message_type == "error":
            logger.warning(f"⚠️ Server error: {message.get('error')}")

    async def _dispatch(self, channel: str, data: Any) -> None:
        for handler in list(self._handlers.get(channel, [])):
            try:
                result = handler(data)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"❌ Handler for {channel} failed: {e}")
