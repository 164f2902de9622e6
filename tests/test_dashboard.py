from datetime import timedelta
from decimal import Decimal

import pytest

from gueswi.domain.dashboard.service import start_of_today
from gueswi.models import AiMetric, CallRecord, Conversation, utc_now


@pytest.fixture
def tenant_id(auth_client):
    return auth_client.user["tenantId"]


@pytest.fixture
def usage(db_session, tenant_id):
    """Two days of AI metrics and a handful of call records"""
    today = start_of_today()
    db_session.add_all(
        [
            AiMetric(
                tenant_id=tenant_id,
                date=today - timedelta(days=1),
                total_seconds=600,
                total_calls=10,
                total_cost=Decimal("1.50"),
                language="es",
                success_rate=Decimal("80.00"),
            ),
            AiMetric(
                tenant_id=tenant_id,
                date=today,
                total_seconds=150,
                total_calls=3,
                total_cost=Decimal("0.25"),
                language="en",
                success_rate=Decimal("90.00"),
            ),
            CallRecord(tenant_id=tenant_id, call_type="incoming", duration=120, cost=Decimal("0.10")),
            CallRecord(tenant_id=tenant_id, call_type="incoming", duration=60, cost=Decimal("0.05")),
            CallRecord(tenant_id=tenant_id, call_type="outgoing", duration=30, cost=Decimal("0.03")),
            CallRecord(
                tenant_id=tenant_id,
                call_type="internal",
                duration=90,
                created_at=utc_now() - timedelta(days=45),
            ),
        ]
    )
    db_session.commit()


def test_stats(auth_client, db_session, tenant_id, usage):
    db_session.add_all(
        [
            Conversation(tenant_id=tenant_id, call_id="c1", phone_number="1", status="ringing"),
            Conversation(tenant_id=tenant_id, call_id="c2", phone_number="2", status="answered"),
            Conversation(tenant_id=tenant_id, call_id="c3", phone_number="3", status="ended"),
        ]
    )
    db_session.commit()

    stats = auth_client.get("/api/dashboard/stats").json()
    assert stats == {"activeCalls": 2, "aiMinutes": 2, "extensions": 4, "monthlyCost": 15.0}


def test_stats_without_activity(auth_client):
    stats = auth_client.get("/api/dashboard/stats").json()
    assert stats["activeCalls"] == 0
    assert stats["aiMinutes"] == 0


def test_activity(auth_client, db_session, tenant_id, usage):
    db_session.add(Conversation(tenant_id=tenant_id, call_id="c1", phone_number="1", status="ringing"))
    db_session.commit()

    activity = auth_client.get("/api/dashboard/activity").json()
    assert activity["incomingCalls"] == 2
    assert activity["waitingCalls"] == 1
    assert activity["satisfactionScore"] == 85.0
    # One demo recording is three hours old
    assert activity["recordingsToday"] in (0, 1)


def test_activity_without_metrics_scores_zero(auth_client):
    assert auth_client.get("/api/dashboard/activity").json()["satisfactionScore"] == 0


def test_consumption_defaults_to_last_30_days(auth_client, usage):
    body = auth_client.get("/api/dashboard/consumption").json()
    assert sorted(r["callType"] for r in body["voiceMinutes"]) == ["incoming", "incoming", "outgoing"]
    assert [m["totalSeconds"] for m in body["aiMinutes"]] == [600, 150]


def test_consumption_range(auth_client, usage):
    since_today = auth_client.get(
        "/api/dashboard/consumption", params={"from": start_of_today().isoformat()}
    ).json()
    assert [m["language"] for m in since_today["aiMinutes"]] == ["en"]

    older = auth_client.get(
        "/api/dashboard/consumption",
        params={"from": (utc_now() - timedelta(days=60)).date().isoformat()},
    ).json()
    assert len(older["voiceMinutes"]) == 4


def test_consumption_rejects_bad_dates(auth_client):
    response = auth_client.get("/api/dashboard/consumption", params={"from": "last week"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid date format"


def test_ai_metrics_summary(auth_client, usage):
    summary = auth_client.get("/api/ai/metrics").json()
    assert summary["totalSeconds"] == 750
    assert summary["totalCalls"] == 13
    assert summary["totalCost"] == 1.75
    assert summary["successRate"] == 85.0
    assert summary["language"] == "en"
    assert set(summary["period"]) == {"from", "to"}


def test_ai_metrics_empty_period(auth_client):
    summary = auth_client.get("/api/ai/metrics", params={"from": "2020-01-01", "to": "2020-01-31"}).json()
    assert summary["totalSeconds"] == 0
    assert summary["successRate"] == 0
    assert summary["language"] == "es"
    assert summary["period"]["from"].startswith("2020-01-01T00:00:00")


def test_advanced_metrics(auth_client, usage):
    body = auth_client.get("/api/metrics/dashboard").json()
    assert body["stats"]["extensions"] == 4
    assert body["calls"]["total"] == 4
    assert body["calls"]["incoming"] == 2
    assert body["calls"]["internal"] == 1
    assert body["calls"]["totalDuration"] == 300
    assert body["calls"]["avgDuration"] == 75.0
    assert body["ai"]["totalCalls"] == 13


def test_dashboard_is_tenant_scoped(admin_client, usage):
    assert admin_client.get("/api/ai/metrics").json()["totalCalls"] == 0
    assert admin_client.get("/api/dashboard/consumption").json()["voiceMinutes"] == []
