"""Softphone and conversation schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

MESSAGE_SENDERS = ("agent", "customer", "system")


class DialRequest(BaseModel):
    to: Optional[str] = None


class MuteRequest(BaseModel):
    muted: bool = False


class HoldRequest(BaseModel):
    held: bool = False


class TransferRequest(BaseModel):
    to: Optional[str] = None


class NotesRequest(BaseModel):
    notes: Optional[str] = None


class TagsRequest(BaseModel):
    tags: list[str]

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v):
        tags = [tag.strip() for tag in v if tag and tag.strip()]
        if not tags:
            raise ValueError("At least one tag is required")
        return tags


class MessageCreate(BaseModel):
    content: str
    sender: str = "agent"

    @field_validator("content")
    @classmethod
    def check_content(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Message content is required")
        return v

    @field_validator("sender")
    @classmethod
    def check_sender(cls, v):
        if v not in MESSAGE_SENDERS:
            raise ValueError(f"Sender must be one of: {', '.join(MESSAGE_SENDERS)}")
        return v


class MessageResponse(BaseModel):
    id: str
    conversationId: str
    sender: str
    content: str
    createdAt: Optional[datetime] = None


class ConversationResponse(BaseModel):
    id: str
    tenantId: str
    userId: Optional[str] = None
    callId: str
    phoneNumber: str
    status: str
    notes: Optional[str] = None
    tags: list[str]
    startedAt: Optional[datetime] = None
    answeredAt: Optional[datetime] = None
    endedAt: Optional[datetime] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class ConversationDetail(ConversationResponse):
    messages: list[MessageResponse]


class ConversationPage(BaseModel):
    data: list[ConversationResponse]
    total: int
    page: int
    pageSize: int
    totalPages: int
