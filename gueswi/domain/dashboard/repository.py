"""Dashboard repository - aggregate queries over calls, conversations and AI metrics"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import AiMetric, CallRecord, Conversation, Extension, Recording, Tenant


class DashboardRepository:
    """Read-only aggregates, every query is tenant scoped"""

    @staticmethod
    def get_tenant(db: Session, tenant_id: str) -> Optional[Tenant]:
        return db.query(Tenant).filter(Tenant.id == tenant_id).first()

    @staticmethod
    def count_conversations(db: Session, tenant_id: str, statuses: tuple[str, ...]) -> int:
        return (
            db.query(func.count(Conversation.id))
            .filter(Conversation.tenant_id == tenant_id, Conversation.status.in_(statuses))
            .scalar()
            or 0
        )

    @staticmethod
    def count_active_extensions(db: Session, tenant_id: str) -> int:
        return (
            db.query(func.count(Extension.id))
            .filter(Extension.tenant_id == tenant_id, Extension.status == "ACTIVE")
            .scalar()
            or 0
        )

    @staticmethod
    def count_calls_since(db: Session, tenant_id: str, since: datetime, call_type: Optional[str] = None) -> int:
        query = db.query(func.count(CallRecord.id)).filter(
            CallRecord.tenant_id == tenant_id, CallRecord.created_at >= since
        )
        if call_type:
            query = query.filter(CallRecord.call_type == call_type)
        return query.scalar() or 0

    @staticmethod
    def count_recordings_since(db: Session, tenant_id: str, since: datetime) -> int:
        return (
            db.query(func.count(Recording.id))
            .filter(Recording.tenant_id == tenant_id, Recording.started_at >= since)
            .scalar()
            or 0
        )

    @staticmethod
    def ai_seconds_since(db: Session, tenant_id: str, since: datetime) -> int:
        total = (
            db.query(func.sum(AiMetric.total_seconds))
            .filter(AiMetric.tenant_id == tenant_id, AiMetric.date >= since)
            .scalar()
        )
        return int(total or 0)

    @staticmethod
    def call_records_between(db: Session, tenant_id: str, start: datetime, end: datetime) -> list[CallRecord]:
        return (
            db.query(CallRecord)
            .filter(CallRecord.tenant_id == tenant_id, CallRecord.created_at >= start, CallRecord.created_at <= end)
            .order_by(CallRecord.created_at.asc())
            .all()
        )

    @staticmethod
    def ai_metrics_between(db: Session, tenant_id: str, start: datetime, end: datetime) -> list[AiMetric]:
        return (
            db.query(AiMetric)
            .filter(AiMetric.tenant_id == tenant_id, AiMetric.date >= start, AiMetric.date <= end)
            .order_by(AiMetric.date.asc())
            .all()
        )

    @staticmethod
    def average_success_rate(db: Session, tenant_id: str, since: datetime) -> Optional[float]:
        avg = (
            db.query(func.avg(AiMetric.success_rate))
            .filter(AiMetric.tenant_id == tenant_id, AiMetric.date >= since)
            .scalar()
        )
        return float(avg) if avg is not None else None

    @staticmethod
    def call_totals_by_type(db: Session, tenant_id: str, since: Optional[datetime] = None) -> dict[str, dict]:
        """{call_type: {count, duration, cost}}"""
        query = db.query(
            CallRecord.call_type,
            func.count(CallRecord.id),
            func.coalesce(func.sum(CallRecord.duration), 0),
            func.coalesce(func.sum(CallRecord.cost), 0),
        ).filter(CallRecord.tenant_id == tenant_id)
        if since:
            query = query.filter(CallRecord.created_at >= since)
        return {
            call_type: {"count": count, "duration": int(duration or 0), "cost": float(cost or 0)}
            for call_type, count, duration, cost in query.group_by(CallRecord.call_type).all()
        }
