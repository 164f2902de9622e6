"""Dashboard router - stats, activity, consumption and metrics"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...auth import get_tenant_user
from ...database import get_db
from ...models import AiMetric, CallRecord, User
from ...shared.validators import parse_date_param
from .schemas import (
    AdvancedMetrics,
    AiMetricResponse,
    AiMetricsSummary,
    CallRecordResponse,
    ConsumptionResponse,
    DashboardActivity,
    DashboardStats,
)
from .service import DashboardService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Dashboard"])


def get_dashboard_service(db: Session = Depends(get_db)) -> DashboardService:
    """Dependency injection for DashboardService"""
    return DashboardService(db)


def parse_period(date_from: Optional[str], date_to: Optional[str]):
    try:
        return parse_date_param(date_from), parse_date_param(date_to)
    except ValueError as e:
        raise HTTPException(status_code=400, detail="Invalid date format") from e


def call_record_response(record: CallRecord) -> CallRecordResponse:
    return CallRecordResponse(
        id=record.id,
        tenantId=record.tenant_id,
        extensionId=record.extension_id,
        duration=record.duration or 0,
        callType=record.call_type,
        aiProcessed=bool(record.ai_processed),
        aiDuration=record.ai_duration or 0,
        cost=record.cost or 0,
        createdAt=record.created_at,
    )


def ai_metric_response(metric: AiMetric) -> AiMetricResponse:
    return AiMetricResponse(
        id=metric.id,
        tenantId=metric.tenant_id,
        date=metric.date,
        totalSeconds=metric.total_seconds or 0,
        totalCalls=metric.total_calls or 0,
        totalCost=metric.total_cost or 0,
        language=metric.language,
        successRate=metric.success_rate or 0,
    )


@router.get("/dashboard/stats", response_model=DashboardStats)
async def get_dashboard_stats(
    user: User = Depends(get_tenant_user),
    service: DashboardService = Depends(get_dashboard_service),
):
    return service.get_stats(user)


@router.get("/dashboard/activity", response_model=DashboardActivity)
async def get_dashboard_activity(
    user: User = Depends(get_tenant_user),
    service: DashboardService = Depends(get_dashboard_service),
):
    return service.get_activity(user)


@router.get("/dashboard/consumption", response_model=ConsumptionResponse)
async def get_consumption(
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    user: User = Depends(get_tenant_user),
    service: DashboardService = Depends(get_dashboard_service),
):
    """Call records and daily AI metrics in the range (last 30 days by default)"""
    start, end = parse_period(date_from, date_to)
    records, metrics = service.get_consumption(user, start, end)
    return ConsumptionResponse(
        voiceMinutes=[call_record_response(r) for r in records],
        aiMinutes=[ai_metric_response(m) for m in metrics],
    )


@router.get("/ai/metrics", response_model=AiMetricsSummary)
async def get_ai_metrics(
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    user: User = Depends(get_tenant_user),
    service: DashboardService = Depends(get_dashboard_service),
):
    start, end = parse_period(date_from, date_to)
    return service.get_ai_metrics(user, start, end)


@router.get("/metrics/dashboard", response_model=AdvancedMetrics)
async def get_advanced_metrics(
    user: User = Depends(get_tenant_user),
    service: DashboardService = Depends(get_dashboard_service),
):
    return service.get_advanced_metrics(user)
