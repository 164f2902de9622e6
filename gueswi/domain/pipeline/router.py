"""Pipeline router - pipelines, stages, leads, activities and metrics"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_tenant_user
from ...database import get_db
from ...models import User
from ...models_pipeline import Lead, LeadActivity, Pipeline, PipelineStage
from .schemas import (
    ActivityCreate,
    ActivityResponse,
    LeadCreate,
    LeadDetail,
    LeadMoveRequest,
    LeadResponse,
    LeadUpdate,
    PipelineCreate,
    PipelineMetrics,
    PipelineResponse,
    PipelineUpdate,
    StageCreate,
    StageReorderRequest,
    StageResponse,
    StageUpdate,
)
from .service import PipelineService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Pipeline"])


def get_pipeline_service(db: Session = Depends(get_db)) -> PipelineService:
    """Dependency injection for PipelineService"""
    return PipelineService(db)


def pipeline_response(pipeline: Pipeline) -> PipelineResponse:
    return PipelineResponse(
        id=pipeline.id,
        tenantId=pipeline.tenant_id,
        name=pipeline.name,
        description=pipeline.description,
        isDefault=pipeline.is_default,
        createdAt=pipeline.created_at,
        updatedAt=pipeline.updated_at,
    )


def stage_response(stage: PipelineStage) -> StageResponse:
    return StageResponse(
        id=stage.id,
        tenantId=stage.tenant_id,
        pipelineId=stage.pipeline_id,
        name=stage.name,
        order=stage.order,
        color=stage.color,
        isFixed=stage.is_fixed,
        kind=stage.kind,
        createdAt=stage.created_at,
    )


def lead_response(lead: Lead) -> LeadResponse:
    return LeadResponse(
        id=lead.id,
        tenantId=lead.tenant_id,
        pipelineId=lead.pipeline_id,
        stageId=lead.stage_id,
        name=lead.name,
        company=lead.company,
        email=lead.email,
        phone=lead.phone,
        value=lead.value,
        currency=lead.currency,
        probability=lead.probability,
        expectedCloseDate=lead.expected_close_date,
        closedAt=lead.closed_at,
        notes=lead.notes,
        tags=lead.tags or [],
        source=lead.source,
        assignedTo=lead.assigned_to,
        createdAt=lead.created_at,
        updatedAt=lead.updated_at,
    )


def activity_response(activity: LeadActivity) -> ActivityResponse:
    return ActivityResponse(
        id=activity.id,
        leadId=activity.lead_id,
        userId=activity.user_id,
        type=activity.type,
        description=activity.description,
        metadata=activity.meta,
        createdAt=activity.created_at,
    )


# ============================================================================
# PIPELINES
# ============================================================================


@router.get("/pipelines", response_model=list[PipelineResponse])
async def list_pipelines(
    user: User = Depends(get_tenant_user),
    service: PipelineService = Depends(get_pipeline_service),
):
    return [pipeline_response(p) for p in service.list_pipelines(user)]


@router.post("/pipelines", response_model=PipelineResponse)
async def create_pipeline(
    data: PipelineCreate,
    user: User = Depends(get_tenant_user),
    service: PipelineService = Depends(get_pipeline_service),
):
    return pipeline_response(service.create_pipeline(user, data))


@router.patch("/pipelines/{pipeline_id}")
async def update_pipeline(
    pipeline_id: str,
    data: PipelineUpdate,
    user: User = Depends(get_tenant_user),
    service: PipelineService = Depends(get_pipeline_service),
):
    return service.update_pipeline(user, pipeline_id, data)


@router.delete("/pipelines/{pipeline_id}")
async def delete_pipeline(
    pipeline_id: str,
    user: User = Depends(get_tenant_user),
    service: PipelineService = Depends(get_pipeline_service),
):
    return service.delete_pipeline(user, pipeline_id)


# ============================================================================
# STAGES
# ============================================================================


@router.get("/pipeline/stages", response_model=list[StageResponse])
async def list_stages(
    pipelineId: Optional[str] = None,
    user: User = Depends(get_tenant_user),
    service: PipelineService = Depends(get_pipeline_service),
):
    return [stage_response(s) for s in service.list_stages(user, pipelineId)]


@router.post("/pipeline/stages", response_model=StageResponse)
async def create_stage(
    data: StageCreate,
    user: User = Depends(get_tenant_user),
    service: PipelineService = Depends(get_pipeline_service),
):
    return stage_response(service.create_stage(user, data))


# Declared before /{stage_id} so "reorder" is not captured as an id
@router.patch("/pipeline/stages/reorder")
async def reorder_stages(
    data: StageReorderRequest,
    user: User = Depends(get_tenant_user),
    service: PipelineService = Depends(get_pipeline_service),
):
    return service.reorder_stages(user, data)


@router.patch("/pipeline/stages/{stage_id}", response_model=StageResponse)
async def update_stage(
    stage_id: str,
    data: StageUpdate,
    user: User = Depends(get_tenant_user),
    service: PipelineService = Depends(get_pipeline_service),
):
    return stage_response(service.update_stage(user, stage_id, data))


@router.delete("/pipeline/stages/{stage_id}")
async def delete_stage(
    stage_id: str,
    user: User = Depends(get_tenant_user),
    service: PipelineService = Depends(get_pipeline_service),
):
    return service.delete_stage(user, stage_id)


# ============================================================================
# LEADS
# ============================================================================


@router.get("/pipeline/leads", response_model=list[LeadResponse])
async def list_leads(
    pipelineId: Optional[str] = None,
    user: User = Depends(get_tenant_user),
    service: PipelineService = Depends(get_pipeline_service),
):
    return [lead_response(lead) for lead in service.list_leads(user, pipelineId)]


@router.post("/pipeline/leads", response_model=LeadResponse)
async def create_lead(
    data: LeadCreate,
    user: User = Depends(get_tenant_user),
    service: PipelineService = Depends(get_pipeline_service),
):
    return lead_response(service.create_lead(user, data))


@router.get("/pipeline/leads/{lead_id}", response_model=LeadDetail)
async def get_lead(
    lead_id: str,
    user: User = Depends(get_tenant_user),
    service: PipelineService = Depends(get_pipeline_service),
):
    lead = service.get_lead(user, lead_id)
    activities = service.list_activities(user, lead_id)
    return LeadDetail(
        **lead_response(lead).model_dump(),
        activities=[activity_response(a) for a in activities],
    )


@router.patch("/pipeline/leads/{lead_id}", response_model=LeadResponse)
async def update_lead(
    lead_id: str,
    data: LeadUpdate,
    user: User = Depends(get_tenant_user),
    service: PipelineService = Depends(get_pipeline_service),
):
    return lead_response(service.update_lead(user, lead_id, data))


@router.patch("/pipeline/leads/{lead_id}/move")
async def move_lead(
    lead_id: str,
    data: LeadMoveRequest,
    user: User = Depends(get_tenant_user),
    service: PipelineService = Depends(get_pipeline_service),
):
    """Drag-and-drop a lead onto another stage"""
    return service.move_lead(user, lead_id, data.stageId)


@router.delete("/pipeline/leads/{lead_id}")
async def delete_lead(
    lead_id: str,
    user: User = Depends(get_tenant_user),
    service: PipelineService = Depends(get_pipeline_service),
):
    return service.delete_lead(user, lead_id)


# ============================================================================
# ACTIVITIES
# ============================================================================


@router.get("/pipeline/leads/{lead_id}/activities", response_model=list[ActivityResponse])
async def list_activities(
    lead_id: str,
    user: User = Depends(get_tenant_user),
    service: PipelineService = Depends(get_pipeline_service),
):
    return [activity_response(a) for a in service.list_activities(user, lead_id)]


@router.post("/pipeline/leads/{lead_id}/activities", response_model=ActivityResponse)
async def create_activity(
    lead_id: str,
    data: ActivityCreate,
    user: User = Depends(get_tenant_user),
    service: PipelineService = Depends(get_pipeline_service),
):
    return activity_response(service.create_activity(user, lead_id, data))


# ============================================================================
# METRICS
# ============================================================================


@router.get("/pipeline/metrics", response_model=PipelineMetrics)
async def get_pipeline_metrics(
    pipelineId: Optional[str] = None,
    user: User = Depends(get_tenant_user),
    service: PipelineService = Depends(get_pipeline_service),
):
    return service.get_metrics(user, pipelineId)
