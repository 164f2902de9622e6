"""Pipeline repository - Database operations for the sales kanban"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models_pipeline import Lead, LeadActivity, Pipeline, PipelineStage

# (name, color, is_fixed, kind)
DEFAULT_STAGES = [
    ("Nuevo", "#10b981", False, "open"),
    ("Contactado", "#3b82f6", False, "open"),
    ("Calificado", "#8b5cf6", False, "open"),
    ("Propuesta", "#f59e0b", False, "open"),
    ("Negociación", "#ef4444", False, "open"),
    ("Ganado", "#22c55e", True, "won"),
    ("Perdido", "#6b7280", True, "lost"),
]


class PipelineRepository:
    """Repository for pipeline, stage, lead and activity operations"""

    # ==================== PIPELINES ====================

    @staticmethod
    def list_pipelines(db: Session, tenant_id: str) -> list[Pipeline]:
        return (
            db.query(Pipeline)
            .filter(Pipeline.tenant_id == tenant_id)
            .order_by(Pipeline.is_default.desc(), Pipeline.created_at.asc())
            .all()
        )

    @staticmethod
    def get_pipeline(db: Session, tenant_id: str, pipeline_id: str) -> Optional[Pipeline]:
        return (
            db.query(Pipeline)
            .filter(Pipeline.id == pipeline_id, Pipeline.tenant_id == tenant_id)
            .first()
        )

    @staticmethod
    def create_pipeline(db: Session, tenant_id: str, name: str, description: Optional[str], is_default: bool) -> Pipeline:
        """Create a pipeline together with its default stages"""
        pipeline = Pipeline(tenant_id=tenant_id, name=name, description=description, is_default=is_default)
        db.add(pipeline)
        db.flush()

        for order, (stage_name, color, is_fixed, kind) in enumerate(DEFAULT_STAGES):
            db.add(
                PipelineStage(
                    tenant_id=tenant_id,
                    pipeline_id=pipeline.id,
                    name=stage_name,
                    order=order,
                    color=color,
                    is_fixed=is_fixed,
                    kind=kind,
                )
            )

        db.commit()
        db.refresh(pipeline)
        return pipeline

    @staticmethod
    def delete_pipeline(db: Session, pipeline: Pipeline) -> None:
        db.query(PipelineStage).filter(PipelineStage.pipeline_id == pipeline.id).delete(
            synchronize_session=False
        )
        db.delete(pipeline)
        db.commit()

    # ==================== STAGES ====================

    @staticmethod
    def list_stages(db: Session, tenant_id: str, pipeline_id: str) -> list[PipelineStage]:
        return (
            db.query(PipelineStage)
            .filter(PipelineStage.tenant_id == tenant_id, PipelineStage.pipeline_id == pipeline_id)
            .order_by(PipelineStage.order.asc())
            .all()
        )

    @staticmethod
    def get_stage(db: Session, tenant_id: str, stage_id: str) -> Optional[PipelineStage]:
        return (
            db.query(PipelineStage)
            .filter(PipelineStage.id == stage_id, PipelineStage.tenant_id == tenant_id)
            .first()
        )

    @staticmethod
    def get_stages_by_ids(db: Session, tenant_id: str, stage_ids: list[str]) -> list[PipelineStage]:
        return (
            db.query(PipelineStage)
            .filter(PipelineStage.tenant_id == tenant_id, PipelineStage.id.in_(stage_ids))
            .all()
        )

    @staticmethod
    def max_stage_order(db: Session, tenant_id: str, pipeline_id: str) -> Optional[int]:
        return (
            db.query(func.max(PipelineStage.order))
            .filter(PipelineStage.tenant_id == tenant_id, PipelineStage.pipeline_id == pipeline_id)
            .scalar()
        )

    # ==================== LEADS ====================

    @staticmethod
    def count_leads(db: Session, pipeline_id: Optional[str] = None, stage_id: Optional[str] = None) -> int:
        query = db.query(func.count(Lead.id))
        if pipeline_id:
            query = query.filter(Lead.pipeline_id == pipeline_id)
        if stage_id:
            query = query.filter(Lead.stage_id == stage_id)
        return query.scalar() or 0

    @staticmethod
    def list_leads(db: Session, tenant_id: str, pipeline_id: str) -> list[Lead]:
        return (
            db.query(Lead)
            .filter(Lead.tenant_id == tenant_id, Lead.pipeline_id == pipeline_id)
            .order_by(Lead.created_at.desc())
            .all()
        )

    @staticmethod
    def get_lead(db: Session, tenant_id: str, lead_id: str) -> Optional[Lead]:
        return db.query(Lead).filter(Lead.id == lead_id, Lead.tenant_id == tenant_id).first()

    @staticmethod
    def delete_lead(db: Session, lead: Lead) -> None:
        db.query(LeadActivity).filter(LeadActivity.lead_id == lead.id).delete(synchronize_session=False)
        db.delete(lead)
        db.commit()

    @staticmethod
    def leads_with_stage_kind(db: Session, tenant_id: str, pipeline_id: str) -> list[tuple[Lead, str]]:
        """Every lead of the pipeline paired with the kind of its current stage"""
        return (
            db.query(Lead, PipelineStage.kind)
            .join(PipelineStage, Lead.stage_id == PipelineStage.id)
            .filter(Lead.tenant_id == tenant_id, Lead.pipeline_id == pipeline_id)
            .all()
        )

    # ==================== ACTIVITIES ====================

    @staticmethod
    def list_activities(db: Session, lead_id: str) -> list[LeadActivity]:
        return (
            db.query(LeadActivity)
            .filter(LeadActivity.lead_id == lead_id)
            .order_by(LeadActivity.created_at.desc())
            .all()
        )

    @staticmethod
    def add_activity(
        db: Session,
        lead_id: str,
        user_id: Optional[str],
        type: str,
        description: str,
        metadata: Optional[dict] = None,
    ) -> LeadActivity:
        """Stage an activity row (flushed, committed by the caller)"""
        activity = LeadActivity(lead_id=lead_id, user_id=user_id, type=type, description=description, meta=metadata)
        db.add(activity)
        db.flush()
        return activity

    # ==================== COMMON ====================

    @staticmethod
    def save(db: Session, obj):
        db.add(obj)
        db.commit()
        db.refresh(obj)
        return obj
