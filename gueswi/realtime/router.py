"""WebSocket endpoint.

The session cookie is checked before the handshake is accepted. A socket
only receives tenant events after an ``authenticate`` message naming the
user's own tenant.
"""

import json
import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..auth import get_user_from_session
from ..config import SESSION_COOKIE_NAME
from ..database import SessionLocal
from .manager import tenant_topic, topic_manager

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    client_id = str(uuid.uuid4())

    db = SessionLocal()
    try:
        user = get_user_from_session(db, websocket.cookies.get(SESSION_COOKIE_NAME))
        user_tenant_id = user.tenant_id if user else None
    finally:
        db.close()

    if user is None:
        logger.info(f"WebSocket auth failed, closing client {client_id}")
        await websocket.close(code=4401, reason="Unauthorized")
        return

    await websocket.accept()
    await topic_manager.connect(client_id, websocket)

    try:
        while True:
            raw_data = await websocket.receive_text()
            try:
                message = json.loads(raw_data)
            except json.JSONDecodeError as e:
                logger.warning(f"Invalid JSON from client {client_id}: {e}")
                await websocket.send_json({"type": "error", "error": "Invalid JSON payload"})
                continue

            if not isinstance(message, dict):
                await websocket.send_json({"type": "error", "error": "Message must be an object"})
                continue

            message_type = message.get("type")

            if message_type == "authenticate":
                tenant_id = message.get("tenantId")
                if not tenant_id or tenant_id != user_tenant_id:
                    logger.warning(
                        f"⚠️ Client {client_id} tried to join tenant {tenant_id} (user tenant {user_tenant_id})"
                    )
                    await websocket.close(code=4403, reason="Forbidden")
                    break
                await topic_manager.subscribe_to_topic(client_id, tenant_topic(tenant_id))
                await websocket.send_json({"type": "authenticated", "tenantId": tenant_id})
            elif message_type == "ping":
                await websocket.send_json(
                    {"type": "pong", "timestamp": datetime.now(timezone.utc).isoformat()}
                )
            else:
                await websocket.send_json(
                    {"type": "error", "error": f"Unknown message type: {message_type}"}
                )
    except WebSocketDisconnect:
        logger.debug(f"Client {client_id} went away")
    finally:
        await topic_manager.disconnect(client_id)
