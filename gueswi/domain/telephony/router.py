"""Telephony router - extensions, IVRs, queues, recordings, provisioning and TTS"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...auth import get_tenant_user
from ...database import get_db
from ...models import Extension, IvrMenu, Queue, Recording, User
from ...shared.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ...shared.validators import parse_date_param
from .schemas import (
    ExtensionCreate,
    ExtensionPage,
    ExtensionResponse,
    ExtensionUpdate,
    IvrCreate,
    IvrResponse,
    IvrUpdate,
    ProvisionExtensionResponse,
    ProvisionIvrRequest,
    QueueCreate,
    QueueResponse,
    QueueUpdate,
    RecordingPage,
    RecordingResponse,
    ResetPinResponse,
    SipConfig,
    TtsRequest,
)
from .service import TelephonyService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Telephony"])


def get_telephony_service(db: Session = Depends(get_db)) -> TelephonyService:
    """Dependency injection for TelephonyService"""
    return TelephonyService(db)


def extension_response(extension: Extension) -> ExtensionResponse:
    return ExtensionResponse(
        id=extension.id,
        tenantId=extension.tenant_id,
        number=extension.number,
        userName=extension.user_name,
        userId=extension.user_id,
        status=extension.status,
        sipPassword=extension.sip_password,
        createdAt=extension.created_at,
        updatedAt=extension.updated_at,
    )


def ivr_response(ivr: IvrMenu) -> IvrResponse:
    return IvrResponse(
        id=ivr.id,
        tenantId=ivr.tenant_id,
        name=ivr.name,
        greetingText=ivr.greeting_text,
        greetingAudioUrl=ivr.greeting_audio_url,
        options=ivr.options or [],
        isActive=ivr.is_active,
        createdAt=ivr.created_at,
        updatedAt=ivr.updated_at,
    )


def queue_response(queue: Queue) -> QueueResponse:
    return QueueResponse(
        id=queue.id,
        tenantId=queue.tenant_id,
        name=queue.name,
        strategy=queue.strategy,
        maxWaitTime=queue.max_wait_time,
        members=queue.members or [],
        createdAt=queue.created_at,
        updatedAt=queue.updated_at,
    )


def recording_response(recording: Recording) -> RecordingResponse:
    return RecordingResponse(
        id=recording.id,
        tenantId=recording.tenant_id,
        callId=recording.call_id,
        startedAt=recording.started_at,
        durationSec=recording.duration_sec,
        sizeBytes=recording.size_bytes,
        url=recording.url,
    )


# ============================================================================
# EXTENSIONS
# ============================================================================


@router.get("/extensions", response_model=ExtensionPage)
async def list_extensions(
    status: Optional[str] = None,
    q: Optional[str] = None,
    page: int = Query(1, ge=1),
    pageSize: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    user: User = Depends(get_tenant_user),
    service: TelephonyService = Depends(get_telephony_service),
):
    result = service.list_extensions(user, status, q, page, pageSize)
    result["data"] = [extension_response(e) for e in result["data"]]
    return result


@router.post("/extensions", response_model=ExtensionResponse)
async def create_extension(
    data: ExtensionCreate,
    user: User = Depends(get_tenant_user),
    service: TelephonyService = Depends(get_telephony_service),
):
    return extension_response(service.create_extension(user, data))


@router.patch("/extensions/{extension_id}", response_model=ExtensionResponse)
async def update_extension(
    extension_id: str,
    data: ExtensionUpdate,
    user: User = Depends(get_tenant_user),
    service: TelephonyService = Depends(get_telephony_service),
):
    return extension_response(service.update_extension(user, extension_id, data))


@router.delete("/extensions/{extension_id}")
async def delete_extension(
    extension_id: str,
    user: User = Depends(get_tenant_user),
    service: TelephonyService = Depends(get_telephony_service),
):
    return service.delete_extension(user, extension_id)


@router.post("/extensions/{extension_id}/reset-pin", response_model=ResetPinResponse)
async def reset_extension_pin(
    extension_id: str,
    user: User = Depends(get_tenant_user),
    service: TelephonyService = Depends(get_telephony_service),
):
    """Issue a new SIP secret for the extension"""
    extension, new_pin = service.reset_pin(user, extension_id)
    return ResetPinResponse(extension=extension_response(extension), newPin=new_pin)


# ============================================================================
# IVR MENUS
# ============================================================================


@router.get("/ivrs", response_model=list[IvrResponse])
async def list_ivrs(
    user: User = Depends(get_tenant_user),
    service: TelephonyService = Depends(get_telephony_service),
):
    return [ivr_response(ivr) for ivr in service.list_ivrs(user)]


@router.post("/ivrs", response_model=IvrResponse)
async def create_ivr(
    data: IvrCreate,
    user: User = Depends(get_tenant_user),
    service: TelephonyService = Depends(get_telephony_service),
):
    return ivr_response(service.create_ivr(user, data))


@router.patch("/ivrs/{ivr_id}", response_model=IvrResponse)
async def update_ivr(
    ivr_id: str,
    data: IvrUpdate,
    user: User = Depends(get_tenant_user),
    service: TelephonyService = Depends(get_telephony_service),
):
    return ivr_response(service.update_ivr(user, ivr_id, data))


# ============================================================================
# QUEUES
# ============================================================================


@router.get("/queues", response_model=list[QueueResponse])
async def list_queues(
    user: User = Depends(get_tenant_user),
    service: TelephonyService = Depends(get_telephony_service),
):
    return [queue_response(queue) for queue in service.list_queues(user)]


@router.post("/queues", response_model=QueueResponse)
async def create_queue(
    data: QueueCreate,
    user: User = Depends(get_tenant_user),
    service: TelephonyService = Depends(get_telephony_service),
):
    return queue_response(service.create_queue(user, data))


@router.patch("/queues/{queue_id}", response_model=QueueResponse)
async def update_queue(
    queue_id: str,
    data: QueueUpdate,
    user: User = Depends(get_tenant_user),
    service: TelephonyService = Depends(get_telephony_service),
):
    return queue_response(service.update_queue(user, queue_id, data))


# ============================================================================
# RECORDINGS
# ============================================================================


@router.get("/recordings", response_model=RecordingPage)
async def list_recordings(
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    page: int = Query(1, ge=1),
    pageSize: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    user: User = Depends(get_tenant_user),
    service: TelephonyService = Depends(get_telephony_service),
):
    try:
        start = parse_date_param(date_from)
        end = parse_date_param(date_to)
    except ValueError as e:
        raise HTTPException(status_code=400, detail="Invalid date format") from e

    result = service.list_recordings(user, start, end, page, pageSize)
    result["data"] = [recording_response(r) for r in result["data"]]
    return result


# ============================================================================
# PROVISIONING (mock PBX backend)
# ============================================================================


@router.post("/provision/tenant")
async def provision_tenant(user: User = Depends(get_tenant_user)):
    return TelephonyService.provision_tenant(user)


@router.post("/provision/extension", response_model=ProvisionExtensionResponse)
async def provision_extension(
    data: ExtensionCreate,
    user: User = Depends(get_tenant_user),
    service: TelephonyService = Depends(get_telephony_service),
):
    extension, sip_config = service.provision_extension(user, data)
    return ProvisionExtensionResponse(
        extension=extension_response(extension), sipConfig=SipConfig(**sip_config)
    )


@router.post("/provision/ivr")
async def provision_ivr(data: ProvisionIvrRequest, user: User = Depends(get_tenant_user)):
    return TelephonyService.provision_ivr(user, data.menu)


# ============================================================================
# TEXT TO SPEECH
# ============================================================================


@router.post("/ivr/tts")
async def generate_ivr_tts(
    data: TtsRequest,
    user: User = Depends(get_tenant_user),
    service: TelephonyService = Depends(get_telephony_service),
):
    """Generate greeting audio for an IVR menu"""
    return await service.generate_tts(user, data.text, data.voice)


@router.get("/ivr/tts/config")
async def get_tts_config(user: User = Depends(get_tenant_user)):
    return TelephonyService.tts_config()
