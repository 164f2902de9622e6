"""Softphone router - call control, call notes and conversations"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_tenant_user
from ...database import get_db
from ...models import Conversation, ConversationMessage, User
from ...shared.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from .schemas import (
    ConversationDetail,
    ConversationPage,
    ConversationResponse,
    DialRequest,
    HoldRequest,
    MessageCreate,
    MessageResponse,
    MuteRequest,
    NotesRequest,
    TagsRequest,
    TransferRequest,
)
from .service import SoftphoneService, answer_call_later

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Softphone"])


def get_softphone_service(db: Session = Depends(get_db)) -> SoftphoneService:
    """Dependency injection for SoftphoneService"""
    return SoftphoneService(db)


def conversation_response(conversation: Conversation) -> ConversationResponse:
    return ConversationResponse(
        id=conversation.id,
        tenantId=conversation.tenant_id,
        userId=conversation.user_id,
        callId=conversation.call_id,
        phoneNumber=conversation.phone_number,
        status=conversation.status,
        notes=conversation.notes,
        tags=conversation.tags or [],
        startedAt=conversation.started_at,
        answeredAt=conversation.answered_at,
        endedAt=conversation.ended_at,
        createdAt=conversation.created_at,
        updatedAt=conversation.updated_at,
    )


def message_response(message: ConversationMessage) -> MessageResponse:
    return MessageResponse(
        id=message.id,
        conversationId=message.conversation_id,
        sender=message.sender,
        content=message.content,
        createdAt=message.created_at,
    )


# ============================================================================
# CALL CONTROL
# ============================================================================


@router.post("/softphone/calls/dial")
async def dial(
    data: DialRequest,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_tenant_user),
    service: SoftphoneService = Depends(get_softphone_service),
):
    """Start an outbound call; it is answered after the configured delay"""
    conversation = await service.dial(user, data.to)
    background_tasks.add_task(answer_call_later, conversation.id, user.tenant_id)
    return {"callId": conversation.call_id, "status": "ringing", "conversationId": conversation.id}


@router.get("/softphone/status")
async def softphone_status(
    user: User = Depends(get_tenant_user),
    service: SoftphoneService = Depends(get_softphone_service),
):
    return service.status(user)


@router.post("/softphone/calls/{conversation_id}/mute")
async def mute_call(
    conversation_id: str,
    data: MuteRequest,
    user: User = Depends(get_tenant_user),
    service: SoftphoneService = Depends(get_softphone_service),
):
    return await service.mute(user, conversation_id, data.muted)


@router.post("/softphone/calls/{conversation_id}/hold")
async def hold_call(
    conversation_id: str,
    data: HoldRequest,
    user: User = Depends(get_tenant_user),
    service: SoftphoneService = Depends(get_softphone_service),
):
    return await service.hold(user, conversation_id, data.held)


@router.post("/softphone/calls/{conversation_id}/transfer")
async def transfer_call(
    conversation_id: str,
    data: TransferRequest,
    user: User = Depends(get_tenant_user),
    service: SoftphoneService = Depends(get_softphone_service),
):
    return await service.transfer(user, conversation_id, data.to)


@router.post("/softphone/calls/{conversation_id}/hangup")
async def hangup_call(
    conversation_id: str,
    user: User = Depends(get_tenant_user),
    service: SoftphoneService = Depends(get_softphone_service),
):
    return await service.hangup(user, conversation_id)


@router.post("/calls/{conversation_id}/notes")
async def save_call_notes(
    conversation_id: str,
    data: NotesRequest,
    user: User = Depends(get_tenant_user),
    service: SoftphoneService = Depends(get_softphone_service),
):
    return await service.save_notes(user, conversation_id, data.notes)


# ============================================================================
# CONVERSATIONS
# ============================================================================


@router.get("/conversations", response_model=ConversationPage)
async def list_conversations(
    page: int = Query(1, ge=1),
    pageSize: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    user: User = Depends(get_tenant_user),
    service: SoftphoneService = Depends(get_softphone_service),
):
    result = service.list_conversations(user, page, pageSize)
    result["data"] = [conversation_response(c) for c in result["data"]]
    return result


@router.get("/conversations/{conversation_id}", response_model=ConversationDetail)
async def get_conversation(
    conversation_id: str,
    user: User = Depends(get_tenant_user),
    service: SoftphoneService = Depends(get_softphone_service),
):
    conversation = service.get_conversation(user, conversation_id)
    return ConversationDetail(
        **conversation_response(conversation).model_dump(),
        messages=[message_response(m) for m in conversation.messages],
    )


@router.post("/conversations/{conversation_id}/tags", response_model=ConversationResponse)
async def add_conversation_tags(
    conversation_id: str,
    data: TagsRequest,
    user: User = Depends(get_tenant_user),
    service: SoftphoneService = Depends(get_softphone_service),
):
    return conversation_response(await service.add_tags(user, conversation_id, data.tags))


@router.delete("/conversations/{conversation_id}/tags/{tag}", response_model=ConversationResponse)
async def remove_conversation_tag(
    conversation_id: str,
    tag: str,
    user: User = Depends(get_tenant_user),
    service: SoftphoneService = Depends(get_softphone_service),
):
    return conversation_response(await service.remove_tag(user, conversation_id, tag))


@router.post("/conversations/{conversation_id}/messages", response_model=MessageResponse)
async def add_conversation_message(
    conversation_id: str,
    data: MessageCreate,
    user: User = Depends(get_tenant_user),
    service: SoftphoneService = Depends(get_softphone_service),
):
    message = await service.add_message(user, conversation_id, data.sender, data.content)
    return message_response(message)


@router.post("/conversations/{conversation_id}/reopen", response_model=ConversationResponse)
async def reopen_conversation(
    conversation_id: str,
    user: User = Depends(get_tenant_user),
    service: SoftphoneService = Depends(get_softphone_service),
):
    return conversation_response(await service.reopen(user, conversation_id))
