"""Pipeline service - kanban business rules and metrics aggregation"""

import logging
from decimal import Decimal
from typing import Optional

from fastapi import HTTPException
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from ...cache import PIPELINE_METRICS_TTL, cache, invalidate_pipeline_metrics, pipeline_metrics_key
from ...models import User, utc_now
from ...models_pipeline import Lead, LeadActivity, Pipeline, PipelineStage
from ...utils.sanitization import validate_and_sanitize_input
from .repository import PipelineRepository
from .schemas import (
    ActivityCreate,
    LeadCreate,
    LeadUpdate,
    PipelineCreate,
    PipelineUpdate,
    StageCreate,
    StageReorderRequest,
    StageUpdate,
)

logger = logging.getLogger(__name__)

DEFAULT_PIPELINE_NAME = "Pipeline Principal"
DEFAULT_PIPELINE_DESCRIPTION = "Pipeline principal de ventas"
DEFAULT_STAGE_COLOR = "#3b82f6"

# API field -> Lead column
LEAD_FIELDS = {
    "name": "name",
    "company": "company",
    "email": "email",
    "phone": "phone",
    "value": "value",
    "currency": "currency",
    "probability": "probability",
    "expectedCloseDate": "expected_close_date",
    "notes": "notes",
    "tags": "tags",
    "source": "source",
    "assignedTo": "assigned_to",
}


def is_closing_stage(stage: PipelineStage) -> bool:
    return stage.kind in ("won", "lost")


def _sanitize(value: Optional[str]) -> Optional[str]:
    try:
        return validate_and_sanitize_input(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


class PipelineService:
    """Service layer for pipeline business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PipelineRepository()

    # ==================== PIPELINES ====================

    def list_pipelines(self, user: User) -> list[Pipeline]:
        """List pipelines, creating the default one on first access"""
        pipelines = self.repo.list_pipelines(self.db, user.tenant_id)
        if not pipelines:
            pipeline = self.repo.create_pipeline(
                self.db,
                user.tenant_id,
                DEFAULT_PIPELINE_NAME,
                DEFAULT_PIPELINE_DESCRIPTION,
                is_default=True,
            )
            logger.info(f"🌱 Default pipeline created for tenant {user.tenant_id}")
            pipelines = [pipeline]
        return pipelines

    def get_pipeline(self, user: User, pipeline_id: str) -> Pipeline:
        pipeline = self.repo.get_pipeline(self.db, user.tenant_id, pipeline_id)
        if not pipeline:
            raise HTTPException(status_code=404, detail="Pipeline not found")
        return pipeline

    def create_pipeline(self, user: User, data: PipelineCreate) -> Pipeline:
        pipeline = self.repo.create_pipeline(
            self.db, user.tenant_id, data.name, data.description, is_default=False
        )
        logger.info(f"✅ Pipeline '{pipeline.name}' created for tenant {user.tenant_id}")
        return pipeline

    def update_pipeline(self, user: User, pipeline_id: str, data: PipelineUpdate) -> dict:
        pipeline = self.get_pipeline(user, pipeline_id)
        updates = data.model_dump(exclude_unset=True)
        if updates.get("name"):
            pipeline.name = updates["name"]
        if "description" in updates:
            pipeline.description = updates["description"]
        self.repo.save(self.db, pipeline)
        return {"success": True}

    def delete_pipeline(self, user: User, pipeline_id: str) -> dict:
        pipeline = self.get_pipeline(user, pipeline_id)
        if pipeline.is_default:
            raise HTTPException(status_code=400, detail="No puedes eliminar el pipeline principal")

        lead_count = self.repo.count_leads(self.db, pipeline_id=pipeline.id)
        if lead_count > 0:
            raise HTTPException(
                status_code=400,
                detail=f"Este pipeline tiene {lead_count} leads. Muévelos o elimínalos primero.",
            )

        self.repo.delete_pipeline(self.db, pipeline)
        invalidate_pipeline_metrics(user.tenant_id, pipeline_id)
        logger.info(f"🗑️ Pipeline {pipeline_id} deleted for tenant {user.tenant_id}")
        return {"success": True}

    # ==================== STAGES ====================

    def list_stages(self, user: User, pipeline_id: Optional[str]) -> list[PipelineStage]:
        if not pipeline_id:
            raise HTTPException(status_code=400, detail="pipelineId query param required")
        return self.repo.list_stages(self.db, user.tenant_id, pipeline_id)

    def get_stage(self, user: User, stage_id: str) -> PipelineStage:
        stage = self.repo.get_stage(self.db, user.tenant_id, stage_id)
        if not stage:
            raise HTTPException(status_code=404, detail="Stage not found")
        return stage

    def create_stage(self, user: User, data: StageCreate) -> PipelineStage:
        pipeline = self.get_pipeline(user, data.pipelineId)
        order = data.order
        if order is None:
            current_max = self.repo.max_stage_order(self.db, user.tenant_id, pipeline.id)
            order = 0 if current_max is None else current_max + 1

        stage = PipelineStage(
            tenant_id=user.tenant_id,
            pipeline_id=pipeline.id,
            name=data.name,
            color=data.color or DEFAULT_STAGE_COLOR,
            order=order,
            is_fixed=False,
            kind="open",
        )
        stage = self.repo.save(self.db, stage)
        invalidate_pipeline_metrics(user.tenant_id, pipeline.id)
        return stage

    def reorder_stages(self, user: User, data: StageReorderRequest) -> dict:
        """
        Persist a new column order.

        Each requested stage is placed at its requested position within its
        pipeline, the stages not mentioned keep their relative order, and the
        whole pipeline is renumbered 0..n-1.
        """
        if not data.stages:
            raise HTTPException(status_code=400, detail="Invalid stages array")

        ids = [item.id for item in data.stages]
        if len(set(ids)) != len(ids):
            raise HTTPException(status_code=400, detail="Duplicate stage id in stages array")
        stages = {s.id: s for s in self.repo.get_stages_by_ids(self.db, user.tenant_id, ids)}
        unknown = [stage_id for stage_id in ids if stage_id not in stages]
        if unknown:
            raise HTTPException(status_code=400, detail=f"Invalid stage id: {unknown[0]}")

        pipeline_ids = {s.pipeline_id for s in stages.values()}
        if len(pipeline_ids) > 1:
            raise HTTPException(status_code=400, detail="All stages must belong to the same pipeline")
        pipeline_id = pipeline_ids.pop()

        column = [s for s in self.repo.list_stages(self.db, user.tenant_id, pipeline_id) if s.id not in stages]
        # Ascending targets, so later inserts never shift earlier ones
        target = -1
        for item in sorted(data.stages, key=lambda item: item.order):
            target = max(item.order, target + 1)
            column.insert(min(target, len(column)), stages[item.id])
        for position, stage in enumerate(column):
            stage.order = position
        self.db.commit()

        invalidate_pipeline_metrics(user.tenant_id, pipeline_id)
        logger.info(f"✅ Reordered {len(column)} stages of pipeline {pipeline_id} for tenant {user.tenant_id}")
        return {"success": True}

    def update_stage(self, user: User, stage_id: str, data: StageUpdate) -> PipelineStage:
        stage = self.get_stage(user, stage_id)
        updates = data.model_dump(exclude_unset=True)
        if not updates:
            return stage
        if updates.get("name"):
            stage.name = updates["name"]
        if updates.get("color"):
            stage.color = updates["color"]
        stage = self.repo.save(self.db, stage)
        invalidate_pipeline_metrics(user.tenant_id, stage.pipeline_id)
        return stage

    def delete_stage(self, user: User, stage_id: str) -> dict:
        stage = self.get_stage(user, stage_id)
        if stage.is_fixed:
            raise HTTPException(status_code=400, detail="Cannot delete fixed stages (Won/Lost)")
        if self.repo.count_leads(self.db, stage_id=stage.id) > 0:
            raise HTTPException(
                status_code=400, detail="Cannot delete stage with leads. Move or delete leads first."
            )

        pipeline_id = stage.pipeline_id
        self.db.delete(stage)
        self.db.commit()
        invalidate_pipeline_metrics(user.tenant_id, pipeline_id)
        return {"success": True}

    # ==================== LEADS ====================

    def list_leads(self, user: User, pipeline_id: Optional[str]) -> list[Lead]:
        if not pipeline_id:
            raise HTTPException(status_code=400, detail="pipelineId query param required")
        return self.repo.list_leads(self.db, user.tenant_id, pipeline_id)

    def get_lead(self, user: User, lead_id: str) -> Lead:
        lead = self.repo.get_lead(self.db, user.tenant_id, lead_id)
        if not lead:
            raise HTTPException(status_code=404, detail="Lead not found")
        return lead

    def _stage_for_lead(self, user: User, stage_id: str) -> PipelineStage:
        stage = self.repo.get_stage(self.db, user.tenant_id, stage_id)
        if not stage:
            raise HTTPException(status_code=400, detail="Invalid stage")
        return stage

    def create_lead(self, user: User, data: LeadCreate) -> Lead:
        stage = self._stage_for_lead(user, data.stageId)

        lead = Lead(tenant_id=user.tenant_id, pipeline_id=stage.pipeline_id, stage_id=stage.id)
        for field, column in LEAD_FIELDS.items():
            value = getattr(data, field)
            if value is not None:
                setattr(lead, column, value)
        lead.notes = _sanitize(lead.notes)
        lead.tags = lead.tags or []
        if is_closing_stage(stage):
            lead.closed_at = utc_now()

        self.db.add(lead)
        self.db.flush()
        self.repo.add_activity(self.db, lead.id, user.id, "note", "Lead creado")
        self.db.commit()
        self.db.refresh(lead)

        invalidate_pipeline_metrics(user.tenant_id, lead.pipeline_id)
        logger.info(f"✅ Lead '{lead.name}' created in pipeline {lead.pipeline_id}")
        return lead

    def update_lead(self, user: User, lead_id: str, data: LeadUpdate) -> Lead:
        updates = data.model_dump(exclude_unset=True)
        if not updates:
            raise HTTPException(status_code=400, detail="No data provided for update")

        lead = self.get_lead(user, lead_id)
        for field, value in updates.items():
            column = LEAD_FIELDS[field]
            if column == "notes":
                value = _sanitize(value)
            elif column == "tags":
                value = value or []
            elif column in ("name", "currency", "probability") and value is None:
                continue
            setattr(lead, column, value)

        self.repo.add_activity(
            self.db,
            lead.id,
            user.id,
            "note",
            "Lead actualizado",
            metadata=jsonable_encoder(updates),
        )
        lead = self.repo.save(self.db, lead)
        invalidate_pipeline_metrics(user.tenant_id, lead.pipeline_id)
        return lead

    def move_lead(self, user: User, lead_id: str, stage_id: str) -> dict:
        """Move a lead to another stage, possibly in another pipeline"""
        lead = self.get_lead(user, lead_id)
        stage = self._stage_for_lead(user, stage_id)
        old_stage_id = lead.stage_id
        old_pipeline_id = lead.pipeline_id

        lead.stage_id = stage.id
        lead.pipeline_id = stage.pipeline_id
        if is_closing_stage(stage):
            lead.closed_at = utc_now()
        else:
            lead.closed_at = None

        self.repo.add_activity(
            self.db,
            lead.id,
            user.id,
            "stage_change",
            f"Lead movido a {stage.name}",
            metadata={"oldStageId": old_stage_id, "newStageId": stage.id},
        )
        self.repo.save(self.db, lead)

        invalidate_pipeline_metrics(user.tenant_id, old_pipeline_id)
        if stage.pipeline_id != old_pipeline_id:
            invalidate_pipeline_metrics(user.tenant_id, stage.pipeline_id)
        logger.info(f"✅ Lead {lead.id} moved to stage '{stage.name}'")
        return {"success": True}

    def delete_lead(self, user: User, lead_id: str) -> dict:
        lead = self.get_lead(user, lead_id)
        pipeline_id = lead.pipeline_id
        self.repo.delete_lead(self.db, lead)
        invalidate_pipeline_metrics(user.tenant_id, pipeline_id)
        return {"success": True}

    # ==================== ACTIVITIES ====================

    def list_activities(self, user: User, lead_id: str) -> list[LeadActivity]:
        lead = self.get_lead(user, lead_id)
        return self.repo.list_activities(self.db, lead.id)

    def create_activity(self, user: User, lead_id: str, data: ActivityCreate) -> LeadActivity:
        lead = self.get_lead(user, lead_id)
        activity = self.repo.add_activity(
            self.db,
            lead.id,
            user.id,
            data.type,
            _sanitize(data.description),
            metadata=data.metadata,
        )
        self.db.commit()
        self.db.refresh(activity)
        return activity

    # ==================== METRICS ====================

    def get_metrics(self, user: User, pipeline_id: Optional[str]) -> dict:
        if not pipeline_id:
            raise HTTPException(status_code=400, detail="pipelineId query param required")

        cache_key = pipeline_metrics_key(user.tenant_id, pipeline_id)
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

        metrics = self.compute_metrics(self.repo.leads_with_stage_kind(self.db, user.tenant_id, pipeline_id))
        cache.set(cache_key, metrics, ttl=PIPELINE_METRICS_TTL)
        return metrics

    @staticmethod
    def compute_metrics(rows: list[tuple[Lead, str]]) -> dict:
        """
        Aggregate kanban metrics from (lead, stage kind) pairs.

        Returns:
            totalValue, conversionRate (won/total in percent, 1 decimal),
            avgClosingDays (rounded, won leads with closed_at), wonCount,
            wonValue, lostValue, totalCount
        """
        total_value = Decimal("0")
        won_value = Decimal("0")
        lost_value = Decimal("0")
        won_count = 0
        closing_days = []

        for lead, kind in rows:
            value = Decimal(lead.value or 0)
            total_value += value
            if kind == "won":
                won_count += 1
                won_value += value
                if lead.closed_at and lead.created_at:
                    closing_days.append((lead.closed_at - lead.created_at).total_seconds() / 86400)
            elif kind == "lost":
                lost_value += value

        total_count = len(rows)
        conversion_rate = round(won_count / total_count * 100, 1) if total_count else 0.0
        avg_closing_days = round(sum(closing_days) / len(closing_days)) if closing_days else 0

        return {
            "totalValue": float(total_value),
            "conversionRate": conversion_rate,
            "avgClosingDays": avg_closing_days,
            "wonCount": won_count,
            "wonValue": float(won_value),
            "lostValue": float(lost_value),
            "totalCount": total_count,
        }
