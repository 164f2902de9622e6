"""Softphone repository - Database operations for conversations"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Conversation, ConversationMessage
from ...shared.pagination import paginate


class ConversationRepository:
    """Repository for conversation and message operations"""

    @staticmethod
    def get(db: Session, tenant_id: str, conversation_id: str) -> Optional[Conversation]:
        return (
            db.query(Conversation)
            .filter(Conversation.id == conversation_id, Conversation.tenant_id == tenant_id)
            .first()
        )

    @staticmethod
    def get_active_for_user(db: Session, tenant_id: str, user_id: str) -> Optional[Conversation]:
        """Newest conversation of the user that has not ended"""
        return (
            db.query(Conversation)
            .filter(
                Conversation.tenant_id == tenant_id,
                Conversation.user_id == user_id,
                Conversation.status != "ended",
            )
            .order_by(Conversation.created_at.desc())
            .first()
        )

    @staticmethod
    def list_for_tenant(db: Session, tenant_id: str, page: int, page_size: int) -> tuple[list[Conversation], int]:
        query = (
            db.query(Conversation)
            .filter(Conversation.tenant_id == tenant_id)
            .order_by(Conversation.created_at.desc())
        )
        return paginate(query, page, page_size)

    @staticmethod
    def create(db: Session, first_message: Optional[str] = None, **data) -> Conversation:
        conversation = Conversation(**data)
        db.add(conversation)
        db.flush()
        if first_message:
            db.add(
                ConversationMessage(
                    conversation_id=conversation.id, sender="system", content=first_message
                )
            )
        db.commit()
        db.refresh(conversation)
        return conversation

    @staticmethod
    def add_message(db: Session, conversation: Conversation, sender: str, content: str) -> ConversationMessage:
        message = ConversationMessage(conversation_id=conversation.id, sender=sender, content=content)
        db.add(message)
        db.commit()
        db.refresh(message)
        return message

    @staticmethod
    def save(db: Session, conversation: Conversation) -> Conversation:
        db.add(conversation)
        db.commit()
        db.refresh(conversation)
        return conversation
