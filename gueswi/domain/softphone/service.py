"""
Softphone service - mock call control and the conversation inbox

Every state change is pushed to the tenant's realtime topic so open consoles
refresh without polling.
"""

import asyncio
import logging
import time
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ... import config
from ...cache import invalidate_dashboard_stats
from ...database import SessionLocal
from ...models import Conversation, User, utc_now
from ...realtime.manager import broadcast_to_tenant
from ...security_utils import generate_short_id
from ...shared.pagination import total_pages
from ...utils.sanitization import validate_and_sanitize_input
from .repository import ConversationRepository

logger = logging.getLogger(__name__)

CALL_STARTED_MESSAGE = "Llamada iniciada"


def conversation_event(conversation: Conversation) -> dict:
    return {
        "conversationId": conversation.id,
        "callId": conversation.call_id,
        "status": conversation.status,
        "phoneNumber": conversation.phone_number,
    }


async def answer_call_later(conversation_id: str, tenant_id: str, delay: Optional[float] = None) -> None:
    """Mock PBX progression: a ringing call is answered after a short delay"""
    delay = config.SOFTPHONE_ANSWER_DELAY_SECONDS if delay is None else delay
    if delay > 0:
        await asyncio.sleep(delay)

    db = SessionLocal()
    try:
        conversation = ConversationRepository.get(db, tenant_id, conversation_id)
        if not conversation or conversation.status != "ringing":
            return
        conversation.status = "answered"
        conversation.answered_at = utc_now()
        ConversationRepository.save(db, conversation)
        event = conversation_event(conversation)
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Error answering call {conversation_id}: {e}")
        return
    finally:
        db.close()

    await broadcast_to_tenant(tenant_id, "call_status", {"type": "call_status", **event})
    await broadcast_to_tenant(tenant_id, "conversations:updated", event)


class SoftphoneService:
    """Service layer for call control and conversations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ConversationRepository()

    def get_conversation(self, user: User, conversation_id: str) -> Conversation:
        conversation = self.repo.get(self.db, user.tenant_id, conversation_id)
        if not conversation:
            raise HTTPException(status_code=404, detail="Conversation not found")
        return conversation

    # ==================== CALL CONTROL ====================

    async def dial(self, user: User, to: Optional[str]) -> Conversation:
        to = (to or "").strip()
        if not to:
            raise HTTPException(status_code=400, detail="Phone number required")

        call_id = f"call_{int(time.time() * 1000)}_{generate_short_id()}"
        conversation = self.repo.create(
            self.db,
            first_message=CALL_STARTED_MESSAGE,
            tenant_id=user.tenant_id,
            user_id=user.id,
            call_id=call_id,
            phone_number=to,
            status="ringing",
        )
        invalidate_dashboard_stats(user.tenant_id)
        logger.info(f"📞 Dialing {to} for tenant {user.tenant_id} ({call_id})")

        await broadcast_to_tenant(
            user.tenant_id, "call_status", {"type": "call_status", **conversation_event(conversation)}
        )
        return conversation

    def status(self, user: User) -> Optional[dict]:
        conversation = self.repo.get_active_for_user(self.db, user.tenant_id, user.id)
        if not conversation:
            return None
        started = conversation.created_at or utc_now()
        return {
            "number": conversation.phone_number,
            "status": conversation.status,
            "duration": max(0, int((utc_now() - started).total_seconds())),
            "conversationId": conversation.id,
        }

    async def mute(self, user: User, conversation_id: str, muted: bool) -> dict:
        conversation = self.get_conversation(user, conversation_id)
        await broadcast_to_tenant(
            user.tenant_id,
            "call_mute",
            {"type": "call_mute", "conversationId": conversation.id, "muted": muted},
        )
        return {"success": True, "conversationId": conversation.id, "muted": muted}

    async def hold(self, user: User, conversation_id: str, held: bool) -> dict:
        conversation = self.get_conversation(user, conversation_id)
        await broadcast_to_tenant(
            user.tenant_id,
            "call_hold",
            {"type": "call_hold", "conversationId": conversation.id, "held": held},
        )
        return {"success": True, "conversationId": conversation.id, "held": held}

    async def transfer(self, user: User, conversation_id: str, to: Optional[str]) -> dict:
        to = (to or "").strip()
        if not to:
            raise HTTPException(status_code=400, detail="Transfer target required")

        conversation = self.get_conversation(user, conversation_id)
        await broadcast_to_tenant(
            user.tenant_id,
            "call_transfer",
            {"type": "call_transfer", "conversationId": conversation.id, "transferTo": to},
        )
        logger.info(f"🔀 Call {conversation.call_id} transferred to {to}")
        return {"success": True, "conversationId": conversation.id, "transferTo": to}

    async def hangup(self, user: User, conversation_id: str) -> dict:
        """End the call; hanging up an ended call is a no-op"""
        conversation = self.get_conversation(user, conversation_id)
        if conversation.status != "ended":
            conversation.status = "ended"
            conversation.ended_at = utc_now()
            self.repo.save(self.db, conversation)
            invalidate_dashboard_stats(user.tenant_id)

        await broadcast_to_tenant(
            user.tenant_id, "ended", {"type": "ended", "conversationId": conversation.id}
        )
        await broadcast_to_tenant(user.tenant_id, "conversations:closed", conversation_event(conversation))
        return {"ok": True}

    async def save_notes(self, user: User, conversation_id: str, notes: Optional[str]) -> dict:
        conversation = self.get_conversation(user, conversation_id)
        try:
            conversation.notes = validate_and_sanitize_input(notes)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        self.repo.save(self.db, conversation)

        await broadcast_to_tenant(user.tenant_id, "conversations:updated", conversation_event(conversation))
        return {"success": True, "callId": conversation.id, "notes": conversation.notes}

    # ==================== CONVERSATIONS ====================

    def list_conversations(self, user: User, page: int, page_size: int) -> dict:
        rows, total = self.repo.list_for_tenant(self.db, user.tenant_id, page, page_size)
        return {
            "data": rows,
            "total": total,
            "page": page,
            "pageSize": page_size,
            "totalPages": total_pages(total, page_size),
        }

    async def add_tags(self, user: User, conversation_id: str, tags: list[str]) -> Conversation:
        conversation = self.get_conversation(user, conversation_id)
        current = list(conversation.tags or [])
        added = [tag for tag in dict.fromkeys(tags) if tag not in current]
        # Reassign so the JSON column is flagged dirty
        conversation.tags = current + added
        self.repo.save(self.db, conversation)

        await broadcast_to_tenant(
            user.tenant_id,
            "conversations:tags-added",
            {"conversationId": conversation.id, "tags": added},
        )
        return conversation

    async def remove_tag(self, user: User, conversation_id: str, tag: str) -> Conversation:
        conversation = self.get_conversation(user, conversation_id)
        current = list(conversation.tags or [])
        if tag not in current:
            raise HTTPException(status_code=404, detail="Tag not found")
        conversation.tags = [t for t in current if t != tag]
        self.repo.save(self.db, conversation)

        await broadcast_to_tenant(
            user.tenant_id,
            "conversations:tag-removed",
            {"conversationId": conversation.id, "tag": tag},
        )
        return conversation

    async def add_message(self, user: User, conversation_id: str, sender: str, content: str):
        conversation = self.get_conversation(user, conversation_id)
        try:
            content = validate_and_sanitize_input(content)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        message = self.repo.add_message(self.db, conversation, sender, content)

        await broadcast_to_tenant(
            user.tenant_id,
            "messages:new",
            {
                "conversationId": conversation.id,
                "messageId": message.id,
                "sender": message.sender,
                "content": message.content,
            },
        )
        return message

    async def reopen(self, user: User, conversation_id: str) -> Conversation:
        conversation = self.get_conversation(user, conversation_id)
        conversation.status = "answered"
        conversation.ended_at = None
        self.repo.save(self.db, conversation)
        invalidate_dashboard_stats(user.tenant_id)

        await broadcast_to_tenant(user.tenant_id, "conversations:reopened", conversation_event(conversation))
        return conversation
