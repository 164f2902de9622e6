"""Dashboard service - tenant counters, consumption and advanced metrics"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ... import config
from ...cache import DASHBOARD_STATS_TTL, cache, dashboard_stats_key
from ...models import User, utc_now
from .repository import DashboardRepository

logger = logging.getLogger(__name__)

DEFAULT_RANGE_DAYS = 30
OPEN_CALL_STATUSES = ("ringing", "answered")


def start_of_today() -> datetime:
    return utc_now().replace(hour=0, minute=0, second=0, microsecond=0)


def default_range(start: Optional[datetime], end: Optional[datetime]) -> tuple[datetime, datetime]:
    """Fill a missing bound so the period covers the last 30 days"""
    end = end or utc_now()
    start = start or end - timedelta(days=DEFAULT_RANGE_DAYS)
    return start, end


class DashboardService:
    """Service layer for the console dashboard"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = DashboardRepository()

    # ==================== COUNTERS ====================

    def get_stats(self, user: User) -> dict:
        cache_key = dashboard_stats_key(user.tenant_id)
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

        tenant = self.repo.get_tenant(self.db, user.tenant_id)
        plan = tenant.plan if tenant else "starter"
        stats = {
            "activeCalls": self.repo.count_conversations(self.db, user.tenant_id, OPEN_CALL_STATUSES),
            "aiMinutes": self.repo.ai_seconds_since(self.db, user.tenant_id, start_of_today()) // 60,
            "extensions": self.repo.count_active_extensions(self.db, user.tenant_id),
            "monthlyCost": config.PLAN_PRICES.get(plan, 0.0),
        }
        cache.set(cache_key, stats, ttl=DASHBOARD_STATS_TTL)
        return stats

    def get_activity(self, user: User) -> dict:
        today = start_of_today()
        satisfaction = self.repo.average_success_rate(
            self.db, user.tenant_id, utc_now() - timedelta(days=DEFAULT_RANGE_DAYS)
        )
        return {
            "incomingCalls": self.repo.count_calls_since(self.db, user.tenant_id, today, "incoming"),
            "waitingCalls": self.repo.count_conversations(self.db, user.tenant_id, ("ringing",)),
            "recordingsToday": self.repo.count_recordings_since(self.db, user.tenant_id, today),
            "satisfactionScore": round(satisfaction, 2) if satisfaction is not None else 0,
        }

    # ==================== CONSUMPTION ====================

    def get_consumption(self, user: User, start: Optional[datetime], end: Optional[datetime]):
        start, end = default_range(start, end)
        return (
            self.repo.call_records_between(self.db, user.tenant_id, start, end),
            self.repo.ai_metrics_between(self.db, user.tenant_id, start, end),
        )

    def get_ai_metrics(self, user: User, start: Optional[datetime], end: Optional[datetime]) -> dict:
        start, end = default_range(start, end)
        rows = self.repo.ai_metrics_between(self.db, user.tenant_id, start, end)

        rates = [float(row.success_rate) for row in rows if row.success_rate is not None]
        return {
            "totalSeconds": sum(row.total_seconds or 0 for row in rows),
            "totalCalls": sum(row.total_calls or 0 for row in rows),
            "totalCost": round(sum(float(row.total_cost or 0) for row in rows), 2),
            "successRate": round(sum(rates) / len(rates), 2) if rates else 0,
            # Latest day wins
            "language": next((row.language for row in reversed(rows) if row.language), "es"),
            "period": {"from": start, "to": end},
        }

    # ==================== ADVANCED ====================

    def get_call_summary(self, user: User) -> dict:
        totals = self.repo.call_totals_by_type(self.db, user.tenant_id)
        total = sum(t["count"] for t in totals.values())
        total_duration = sum(t["duration"] for t in totals.values())
        return {
            "total": total,
            "incoming": totals.get("incoming", {}).get("count", 0),
            "outgoing": totals.get("outgoing", {}).get("count", 0),
            "internal": totals.get("internal", {}).get("count", 0),
            "totalDuration": total_duration,
            "avgDuration": round(total_duration / total, 2) if total else 0,
            "totalCost": round(sum(t["cost"] for t in totals.values()), 4),
        }

    def get_advanced_metrics(self, user: User) -> dict:
        logger.debug(f"📊 Building advanced metrics for tenant {user.tenant_id}")
        return {
            "stats": self.get_stats(user),
            "activity": self.get_activity(user),
            "calls": self.get_call_summary(user),
            "ai": self.get_ai_metrics(user, None, None),
        }
