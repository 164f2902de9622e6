"""Pipeline domain schemas - pipelines, stages, leads and activities"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_email

ACTIVITY_TYPES = ("note", "call", "email", "meeting", "stage_change", "task")


def _required_text(v, message):
    if v is None or not v.strip():
        raise ValueError(message)
    return v.strip()


# ============================================================================
# PIPELINES
# ============================================================================


class PipelineCreate(BaseModel):
    name: str
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        return _required_text(v, "Name is required")


class PipelineUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        if v is not None:
            return _required_text(v, "Name is required")
        return v


class PipelineResponse(BaseModel):
    id: str
    tenantId: str
    name: str
    description: Optional[str] = None
    isDefault: bool
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


# ============================================================================
# STAGES
# ============================================================================


class StageCreate(BaseModel):
    pipelineId: str
    name: str
    color: Optional[str] = None
    order: Optional[int] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        return _required_text(v, "Name is required")


class StageUpdate(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        if v is not None:
            return _required_text(v, "Name is required")
        return v


class StageOrder(BaseModel):
    id: str
    order: int


class StageReorderRequest(BaseModel):
    stages: list[StageOrder]


class StageResponse(BaseModel):
    id: str
    tenantId: str
    pipelineId: str
    name: str
    order: int
    color: str
    isFixed: bool
    kind: str
    createdAt: Optional[datetime] = None


# ============================================================================
# LEADS
# ============================================================================


class LeadFields(BaseModel):
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    value: Optional[Decimal] = None
    currency: Optional[str] = None
    probability: Optional[int] = Field(None, ge=0, le=100)
    expectedCloseDate: Optional[datetime] = None
    notes: Optional[str] = None
    tags: Optional[list[str]] = None
    source: Optional[str] = None
    assignedTo: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        if v is None or not v.strip():
            return None
        return validate_email(v)

    @field_validator("currency")
    @classmethod
    def check_currency(cls, v):
        if v is not None:
            v = v.strip().upper()
            if len(v) != 3:
                raise ValueError("Currency must be a 3-letter code")
        return v


class LeadCreate(LeadFields):
    name: str
    stageId: str

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        return _required_text(v, "Name is required")

    @field_validator("stageId")
    @classmethod
    def check_stage(cls, v):
        return _required_text(v, "stageId is required")


class LeadUpdate(LeadFields):
    name: Optional[str] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        if v is not None:
            return _required_text(v, "Name is required")
        return v


class LeadMoveRequest(BaseModel):
    stageId: str


class LeadResponse(BaseModel):
    id: str
    tenantId: str
    pipelineId: str
    stageId: str
    name: str
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    value: Optional[Decimal] = None
    currency: str
    probability: int
    expectedCloseDate: Optional[datetime] = None
    closedAt: Optional[datetime] = None
    notes: Optional[str] = None
    tags: list[str]
    source: Optional[str] = None
    assignedTo: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


# ============================================================================
# ACTIVITIES
# ============================================================================


class ActivityCreate(BaseModel):
    type: str
    description: str
    metadata: Optional[dict[str, Any]] = None

    @field_validator("type")
    @classmethod
    def check_type(cls, v):
        if v not in ACTIVITY_TYPES:
            raise ValueError(f"Activity type must be one of: {', '.join(ACTIVITY_TYPES)}")
        return v

    @field_validator("description")
    @classmethod
    def check_description(cls, v):
        return _required_text(v, "Description is required")


class ActivityResponse(BaseModel):
    id: str
    leadId: str
    userId: Optional[str] = None
    type: str
    description: str
    metadata: Optional[dict[str, Any]] = None
    createdAt: Optional[datetime] = None


class LeadDetail(LeadResponse):
    activities: list[ActivityResponse]


class PipelineMetrics(BaseModel):
    totalValue: float
    conversionRate: float
    avgClosingDays: int
    wonCount: int
    wonValue: float
    lostValue: float
    totalCount: int
