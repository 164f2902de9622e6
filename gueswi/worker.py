"""
ARQ Background Worker
Nightly AI metric rollups and housekeeping of abandoned calls
"""

import logging
import os
from datetime import datetime, timedelta
from typing import Optional

from arq.connections import RedisSettings
from arq.cron import cron
from sqlalchemy import case, func
from sqlalchemy.orm import Session

from . import config
# Every model module is imported so SQLAlchemy can resolve relationships
from . import models_booking  # noqa: F401
from . import models_pipeline  # noqa: F401
from .cache import invalidate_dashboard_stats
from .database import SessionLocal
from .models import AiMetric, CallRecord, Conversation, utc_now

logger = logging.getLogger(__name__)


def get_redis_settings() -> RedisSettings:
    """arq connection built from REDIS_URL (rediss:// enables TLS)"""
    settings = RedisSettings.from_dsn(config.REDIS_URL)
    settings.conn_timeout = 15
    settings.conn_retry_delay = 1
    return settings


# ==================== JOBS ====================


def rollup_ai_metrics(db: Session, day: datetime) -> int:
    """
    Aggregate one day of AI-handled call records into ai_metrics rows.

    Args:
        db: Database session
        day: Any moment of the UTC day to roll up

    Returns:
        Number of tenants written
    """
    start = day.replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=1)

    rows = (
        db.query(
            CallRecord.tenant_id,
            func.count(CallRecord.id),
            func.coalesce(func.sum(CallRecord.ai_duration), 0),
            func.coalesce(func.sum(CallRecord.cost), 0),
            func.sum(case((CallRecord.duration > 0, 1), else_=0)),
        )
        .filter(
            CallRecord.ai_processed.is_(True),
            CallRecord.created_at >= start,
            CallRecord.created_at < end,
        )
        .group_by(CallRecord.tenant_id)
        .all()
    )

    for tenant_id, calls, seconds, cost, connected in rows:
        success_rate = round((connected or 0) * 100 / calls, 2) if calls else 0

        metric = db.query(AiMetric).filter(AiMetric.tenant_id == tenant_id, AiMetric.date == start).first()
        if metric is None:
            metric = AiMetric(tenant_id=tenant_id, date=start)
            db.add(metric)
        metric.total_seconds = int(seconds or 0)
        metric.total_calls = calls
        metric.total_cost = cost or 0
        metric.success_rate = success_rate

    db.commit()
    for tenant_id, *_ in rows:
        invalidate_dashboard_stats(tenant_id)
    return len(rows)


def end_stale_conversations(db: Session, now: Optional[datetime] = None) -> int:
    """Close conversations still ringing or answered past the stale threshold"""
    now = now or utc_now()
    cutoff = now - timedelta(minutes=config.STALE_CONVERSATION_MINUTES)

    stale = (
        db.query(Conversation)
        .filter(Conversation.status.in_(("ringing", "answered")), Conversation.started_at < cutoff)
        .all()
    )
    for conversation in stale:
        conversation.status = "ended"
        conversation.ended_at = now
    db.commit()

    for tenant_id in {c.tenant_id for c in stale}:
        invalidate_dashboard_stats(tenant_id)
    return len(stale)


async def rollup_ai_metrics_task(ctx):
    """Nightly cron job rolling up yesterday's AI calls"""
    day = utc_now() - timedelta(days=1)
    logger.info(f"📊 Rolling up AI metrics for {day.date()}")

    db = SessionLocal()
    try:
        tenants = rollup_ai_metrics(db, day)
        logger.info(f"✅ AI metrics rollup complete: {tenants} tenants")
        return {"tenants": tenants, "date": day.date().isoformat()}
    except Exception as e:
        logger.error(f"❌ AI metrics rollup failed: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()


async def end_stale_conversations_task(ctx):
    db = SessionLocal()
    try:
        ended = end_stale_conversations(db)
        if ended:
            logger.info(f"📞 Ended {ended} stale conversations")
        return {"ended": ended}
    except Exception as e:
        logger.error(f"❌ Stale conversation cleanup failed: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()


class WorkerSettings:
    """ARQ Worker Settings"""

    functions = [rollup_ai_metrics_task, end_stale_conversations_task]
    redis_settings = get_redis_settings()

    max_jobs = int(os.getenv("ARQ_MAX_JOBS", "10"))
    job_timeout = int(os.getenv("ARQ_JOB_TIMEOUT", "300"))
    keep_result = int(os.getenv("ARQ_KEEP_RESULT", "3600"))

    health_check_interval = 60
    max_tries = 3

    cron_jobs = [
        cron(rollup_ai_metrics_task, hour=0, minute=15),  # 00:15 UTC
        cron(end_stale_conversations_task, minute={0, 10, 20, 30, 40, 50}),
    ]
