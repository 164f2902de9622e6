"""Telephony domain schemas - extensions, IVR menus, queues, recordings"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_extension_number

EXTENSION_STATUSES = ("ACTIVE", "INACTIVE")
QUEUE_STRATEGIES = ("ringall", "roundrobin", "leastrecent", "random")
IVR_KEYS = tuple("0123456789") + ("*", "#", "default")


def _check_extension_status(v):
    if v is not None and v not in EXTENSION_STATUSES:
        raise ValueError(f"Status must be one of: {', '.join(EXTENSION_STATUSES)}")
    return v


def _check_strategy(v):
    if v is not None and v not in QUEUE_STRATEGIES:
        raise ValueError(f"Strategy must be one of: {', '.join(QUEUE_STRATEGIES)}")
    return v


def _check_required_name(v):
    if v is not None:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
    return v


# ============================================================================
# EXTENSIONS
# ============================================================================


class ExtensionCreate(BaseModel):
    number: str
    userName: Optional[str] = None
    userId: Optional[str] = None
    status: Optional[str] = "ACTIVE"

    @field_validator("number")
    @classmethod
    def check_number(cls, v):
        return validate_extension_number(v)

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        return _check_extension_status(v)


class ExtensionUpdate(BaseModel):
    number: Optional[str] = None
    userName: Optional[str] = None
    userId: Optional[str] = None
    status: Optional[str] = None

    @field_validator("number")
    @classmethod
    def check_number(cls, v):
        if v is not None:
            return validate_extension_number(v)
        return v

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        return _check_extension_status(v)


class ExtensionResponse(BaseModel):
    id: str
    tenantId: str
    number: str
    userName: Optional[str] = None
    userId: Optional[str] = None
    status: str
    sipPassword: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class ExtensionPage(BaseModel):
    data: list[ExtensionResponse]
    total: int
    page: int
    pageSize: int
    totalPages: int


class ResetPinResponse(BaseModel):
    extension: ExtensionResponse
    newPin: str


# ============================================================================
# IVR MENUS
# ============================================================================


class IvrOption(BaseModel):
    key: str
    action: str
    target: str
    description: Optional[str] = None

    @field_validator("key")
    @classmethod
    def check_key(cls, v):
        v = v.strip()
        if v not in IVR_KEYS:
            raise ValueError("Option key must be a digit, *, # or default")
        return v

    @field_validator("action", "target")
    @classmethod
    def check_not_empty(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Option action and target are required")
        return v


def _check_unique_keys(options):
    if options is None:
        return options
    keys = [option.key for option in options]
    duplicates = sorted({key for key in keys if keys.count(key) > 1})
    if duplicates:
        raise ValueError(f"Duplicate option keys: {', '.join(duplicates)}")
    return options


class IvrCreate(BaseModel):
    name: str
    greetingText: Optional[str] = None
    greetingAudioUrl: Optional[str] = None
    options: list[IvrOption] = []
    isActive: bool = True

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        return _check_required_name(v)

    @field_validator("options")
    @classmethod
    def check_options(cls, v):
        return _check_unique_keys(v)


class IvrUpdate(BaseModel):
    name: Optional[str] = None
    greetingText: Optional[str] = None
    greetingAudioUrl: Optional[str] = None
    options: Optional[list[IvrOption]] = None
    isActive: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        return _check_required_name(v)

    @field_validator("options")
    @classmethod
    def check_options(cls, v):
        return _check_unique_keys(v)


class IvrResponse(BaseModel):
    id: str
    tenantId: str
    name: str
    greetingText: Optional[str] = None
    greetingAudioUrl: Optional[str] = None
    options: list[dict]
    isActive: bool
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


# ============================================================================
# QUEUES
# ============================================================================


class QueueCreate(BaseModel):
    name: str
    strategy: str = "ringall"
    maxWaitTime: int = 300
    members: list[str] = []

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        return _check_required_name(v)

    @field_validator("strategy")
    @classmethod
    def check_strategy(cls, v):
        return _check_strategy(v)

    @field_validator("maxWaitTime")
    @classmethod
    def check_wait(cls, v):
        if v is not None and v < 0:
            raise ValueError("maxWaitTime must be positive")
        return v


class QueueUpdate(BaseModel):
    name: Optional[str] = None
    strategy: Optional[str] = None
    maxWaitTime: Optional[int] = None
    members: Optional[list[str]] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        return _check_required_name(v)

    @field_validator("strategy")
    @classmethod
    def check_strategy(cls, v):
        return _check_strategy(v)


class QueueResponse(BaseModel):
    id: str
    tenantId: str
    name: str
    strategy: str
    maxWaitTime: int
    members: list[str]
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


# ============================================================================
# RECORDINGS
# ============================================================================


class RecordingResponse(BaseModel):
    id: str
    tenantId: str
    callId: str
    startedAt: datetime
    durationSec: int
    sizeBytes: int
    url: str


class RecordingPage(BaseModel):
    data: list[RecordingResponse]
    total: int
    page: int
    pageSize: int


# ============================================================================
# PROVISIONING / TTS
# ============================================================================


class SipConfig(BaseModel):
    extension: str
    sipUsername: str
    sipPassword: str
    sipServer: str


class ProvisionExtensionResponse(BaseModel):
    extension: ExtensionResponse
    sipConfig: SipConfig


class ProvisionIvrRequest(BaseModel):
    menu: Optional[dict[str, Any]] = None


class TtsRequest(BaseModel):
    text: Any = None
    voice: Any = None
