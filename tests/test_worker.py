from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from gueswi import worker
from gueswi.models import AiMetric, CallRecord, Conversation, Tenant

DAY = datetime(2025, 6, 2, 0, 0)


@pytest.fixture
def tenants(db_session):
    acme = Tenant(name="Acme", status="active")
    globex = Tenant(name="Globex", status="active")
    db_session.add_all([acme, globex])
    db_session.commit()
    return acme, globex


def ai_call(tenant, hour, duration, ai_duration, cost="0.10", ai_processed=True):
    return CallRecord(
        tenant_id=tenant.id,
        call_type="incoming",
        duration=duration,
        ai_processed=ai_processed,
        ai_duration=ai_duration,
        cost=Decimal(cost),
        created_at=DAY + timedelta(hours=hour),
    )


def test_rollup_aggregates_per_tenant(db_session, tenants):
    acme, globex = tenants
    db_session.add_all(
        [
            ai_call(acme, 9, 120, 100),
            ai_call(acme, 10, 0, 15),
            ai_call(acme, 11, 60, 45, cost="0.20"),
            ai_call(acme, 12, 300, 0, ai_processed=False),
            ai_call(acme, 30, 60, 60),  # next day
            ai_call(globex, 8, 30, 30),
        ]
    )
    db_session.commit()

    assert worker.rollup_ai_metrics(db_session, DAY + timedelta(hours=13)) == 2

    metric = db_session.query(AiMetric).filter(AiMetric.tenant_id == acme.id).one()
    assert metric.date == DAY
    assert metric.total_calls == 3
    assert metric.total_seconds == 160
    assert float(metric.total_cost) == pytest.approx(0.40)
    assert float(metric.success_rate) == pytest.approx(66.67)

    other = db_session.query(AiMetric).filter(AiMetric.tenant_id == globex.id).one()
    assert float(other.success_rate) == 100.0


def test_rollup_is_idempotent(db_session, tenants):
    acme, _ = tenants
    db_session.add(ai_call(acme, 9, 120, 100))
    db_session.commit()

    worker.rollup_ai_metrics(db_session, DAY)
    db_session.add(ai_call(acme, 10, 60, 50))
    db_session.commit()
    worker.rollup_ai_metrics(db_session, DAY)

    metrics = db_session.query(AiMetric).filter(AiMetric.tenant_id == acme.id).all()
    assert len(metrics) == 1
    assert metrics[0].total_calls == 2
    assert metrics[0].total_seconds == 150


def test_rollup_without_calls_writes_nothing(db_session, tenants):
    assert worker.rollup_ai_metrics(db_session, DAY) == 0
    assert db_session.query(AiMetric).count() == 0


def test_end_stale_conversations(db_session, tenants):
    acme, _ = tenants
    now = datetime(2025, 6, 2, 12, 0)
    stale = Conversation(
        tenant_id=acme.id, call_id="old", phone_number="1", status="answered", started_at=now - timedelta(hours=5)
    )
    ringing = Conversation(
        tenant_id=acme.id, call_id="ring", phone_number="2", status="ringing", started_at=now - timedelta(hours=3)
    )
    fresh = Conversation(
        tenant_id=acme.id, call_id="new", phone_number="3", status="answered", started_at=now - timedelta(minutes=5)
    )
    ended = Conversation(
        tenant_id=acme.id,
        call_id="done",
        phone_number="4",
        status="ended",
        started_at=now - timedelta(hours=6),
        ended_at=now - timedelta(hours=5),
    )
    db_session.add_all([stale, ringing, fresh, ended])
    db_session.commit()

    assert worker.end_stale_conversations(db_session, now=now) == 2

    db_session.expire_all()
    assert db_session.get(Conversation, stale.id).status == "ended"
    assert db_session.get(Conversation, stale.id).ended_at == now
    assert db_session.get(Conversation, ringing.id).status == "ended"
    assert db_session.get(Conversation, fresh.id).status == "answered"
    assert db_session.get(Conversation, ended.id).ended_at == now - timedelta(hours=5)


def test_worker_settings_schedule_both_jobs():
    names = {job.__name__ for job in worker.WorkerSettings.functions}
    assert names == {"rollup_ai_metrics_task", "end_stale_conversations_task"}
    assert len(worker.WorkerSettings.cron_jobs) == 2
