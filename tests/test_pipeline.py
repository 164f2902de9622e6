from datetime import timedelta

import pytest

from gueswi.domain.pipeline.service import PipelineService
from gueswi.models import utc_now
from gueswi.models_pipeline import Lead


@pytest.fixture
def pipeline(auth_client):
    pipelines = auth_client.get("/api/pipelines").json()
    assert len(pipelines) == 1
    return pipelines[0]


def stages_by_name(client, pipeline_id):
    stages = client.get("/api/pipeline/stages", params={"pipelineId": pipeline_id}).json()
    return {stage["name"]: stage for stage in stages}


def create_lead(client, stage_id, **fields):
    payload = {"name": "Lead", "stageId": stage_id, **fields}
    response = client.post("/api/pipeline/leads", json=payload)
    assert response.status_code == 200, response.text
    return response.json()


def test_default_pipeline_created_on_first_access(auth_client, pipeline):
    assert pipeline["name"] == "Pipeline Principal"
    assert pipeline["isDefault"] is True

    stages = auth_client.get("/api/pipeline/stages", params={"pipelineId": pipeline["id"]}).json()
    assert [s["name"] for s in stages] == [
        "Nuevo",
        "Contactado",
        "Calificado",
        "Propuesta",
        "Negociación",
        "Ganado",
        "Perdido",
    ]
    assert [s["order"] for s in stages] == list(range(7))
    assert [s["kind"] for s in stages if s["isFixed"]] == ["won", "lost"]

    # Second access does not create another one
    assert len(auth_client.get("/api/pipelines").json()) == 1


def test_stage_and_lead_lists_require_pipeline_id(auth_client):
    for path in ("/api/pipeline/stages", "/api/pipeline/leads", "/api/pipeline/metrics"):
        response = auth_client.get(path)
        assert response.status_code == 400
        assert response.json()["detail"] == "pipelineId query param required"


def test_default_pipeline_cannot_be_deleted(auth_client, pipeline):
    response = auth_client.delete(f"/api/pipelines/{pipeline['id']}")
    assert response.status_code == 400
    assert response.json()["detail"] == "No puedes eliminar el pipeline principal"


def test_pipeline_with_leads_cannot_be_deleted(auth_client, pipeline):
    created = auth_client.post("/api/pipelines", json={"name": "Partners"}).json()
    assert created["isDefault"] is False
    nuevo = stages_by_name(auth_client, created["id"])["Nuevo"]
    create_lead(auth_client, nuevo["id"])

    response = auth_client.delete(f"/api/pipelines/{created['id']}")
    assert response.status_code == 400
    assert "1 leads" in response.json()["detail"]


def test_create_update_and_delete_pipeline(auth_client, pipeline):
    created = auth_client.post("/api/pipelines", json={"name": "Partners", "description": "Canal"}).json()
    assert len(stages_by_name(auth_client, created["id"])) == 7

    assert auth_client.patch(f"/api/pipelines/{created['id']}", json={"name": "Resellers"}).json() == {
        "success": True
    }
    names = [p["name"] for p in auth_client.get("/api/pipelines").json()]
    assert names == ["Pipeline Principal", "Resellers"]

    assert auth_client.delete(f"/api/pipelines/{created['id']}").json() == {"success": True}
    assert auth_client.get("/api/pipeline/stages", params={"pipelineId": created["id"]}).json() == []


def test_create_stage_appends_to_end(auth_client, pipeline):
    response = auth_client.post(
        "/api/pipeline/stages", json={"pipelineId": pipeline["id"], "name": "Demo agendada"}
    )
    assert response.status_code == 200
    stage = response.json()
    assert stage["order"] == 7
    assert stage["color"] == "#3b82f6"
    assert stage["isFixed"] is False
    assert stage["kind"] == "open"


def stage_orders(client, pipeline_id):
    stages = client.get("/api/pipeline/stages", params={"pipelineId": pipeline_id}).json()
    return [(stage["name"], stage["order"]) for stage in stages]


def test_reorder_full_column(auth_client, pipeline):
    stages = stages_by_name(auth_client, pipeline["id"])
    order = ["Perdido", "Ganado", "Negociación", "Propuesta", "Calificado", "Contactado", "Nuevo"]
    payload = {"stages": [{"id": stages[name]["id"], "order": i} for i, name in enumerate(order)]}
    assert auth_client.patch("/api/pipeline/stages/reorder", json=payload).json() == {"success": True}

    assert stage_orders(auth_client, pipeline["id"]) == [(name, i) for i, name in enumerate(order)]


def test_reorder_single_stage_keeps_column_sequential(auth_client, pipeline):
    stages = stages_by_name(auth_client, pipeline["id"])
    payload = {"stages": [{"id": stages["Calificado"]["id"], "order": 5}]}
    assert auth_client.patch("/api/pipeline/stages/reorder", json=payload).status_code == 200

    assert stage_orders(auth_client, pipeline["id"]) == [
        ("Nuevo", 0),
        ("Contactado", 1),
        ("Propuesta", 2),
        ("Negociación", 3),
        ("Ganado", 4),
        ("Calificado", 5),
        ("Perdido", 6),
    ]


def test_reorder_resolves_ties_and_out_of_range(auth_client, pipeline):
    stages = stages_by_name(auth_client, pipeline["id"])
    payload = {
        "stages": [
            {"id": stages["Propuesta"]["id"], "order": 1},
            {"id": stages["Nuevo"]["id"], "order": 5},
            {"id": stages["Contactado"]["id"], "order": 5},
            {"id": stages["Calificado"]["id"], "order": 40},
        ]
    }
    assert auth_client.patch("/api/pipeline/stages/reorder", json=payload).status_code == 200

    assert stage_orders(auth_client, pipeline["id"]) == [
        ("Negociación", 0),
        ("Propuesta", 1),
        ("Ganado", 2),
        ("Perdido", 3),
        ("Nuevo", 4),
        ("Contactado", 5),
        ("Calificado", 6),
    ]


def test_reorder_rejects_mixed_pipelines(auth_client, pipeline):
    other = auth_client.post("/api/pipelines", json={"name": "Partners"}).json()
    mine = stages_by_name(auth_client, pipeline["id"])
    theirs = stages_by_name(auth_client, other["id"])
    payload = {
        "stages": [
            {"id": mine["Nuevo"]["id"], "order": 1},
            {"id": theirs["Nuevo"]["id"], "order": 0},
        ]
    }
    response = auth_client.patch("/api/pipeline/stages/reorder", json=payload)
    assert response.status_code == 400
    assert response.json()["detail"] == "All stages must belong to the same pipeline"


def test_reorder_rejects_duplicate_ids(auth_client, pipeline):
    stage_id = stages_by_name(auth_client, pipeline["id"])["Nuevo"]["id"]
    payload = {"stages": [{"id": stage_id, "order": 0}, {"id": stage_id, "order": 3}]}
    assert auth_client.patch("/api/pipeline/stages/reorder", json=payload).status_code == 400


def test_reorder_rejects_unknown_stage(auth_client, pipeline):
    response = auth_client.patch("/api/pipeline/stages/reorder", json={"stages": [{"id": "nope", "order": 0}]})
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid stage id: nope"

    empty = auth_client.patch("/api/pipeline/stages/reorder", json={"stages": []})
    assert empty.status_code == 400
    assert empty.json()["detail"] == "Invalid stages array"


def test_fixed_stage_cannot_be_deleted(auth_client, pipeline):
    stages = stages_by_name(auth_client, pipeline["id"])
    response = auth_client.delete(f"/api/pipeline/stages/{stages['Ganado']['id']}")
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot delete fixed stages (Won/Lost)"


def test_stage_with_leads_cannot_be_deleted(auth_client, pipeline):
    stages = stages_by_name(auth_client, pipeline["id"])
    create_lead(auth_client, stages["Calificado"]["id"])

    response = auth_client.delete(f"/api/pipeline/stages/{stages['Calificado']['id']}")
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot delete stage with leads. Move or delete leads first."

    assert auth_client.delete(f"/api/pipeline/stages/{stages['Propuesta']['id']}").json() == {"success": True}
    assert "Propuesta" not in stages_by_name(auth_client, pipeline["id"])


def test_update_stage(auth_client, pipeline):
    stage = stages_by_name(auth_client, pipeline["id"])["Nuevo"]
    updated = auth_client.patch(f"/api/pipeline/stages/{stage['id']}", json={"name": "Entrante", "color": "#000000"})
    assert updated.json()["name"] == "Entrante"
    assert updated.json()["color"] == "#000000"


def test_create_lead_records_activity(auth_client, pipeline):
    stage = stages_by_name(auth_client, pipeline["id"])["Nuevo"]
    lead = create_lead(
        auth_client,
        stage["id"],
        name="Ferretería López",
        email="Compras@Lopez.mx",
        value="12500.50",
        currency="usd",
        notes="<script>x</script>Llamar lunes",
    )
    assert lead["pipelineId"] == pipeline["id"]
    assert lead["currency"] == "USD"
    assert lead["probability"] == 50
    assert lead["tags"] == []
    assert lead["closedAt"] is None
    assert "<script>" not in lead["notes"]

    detail = auth_client.get(f"/api/pipeline/leads/{lead['id']}").json()
    assert [a["description"] for a in detail["activities"]] == ["Lead creado"]


def test_create_lead_in_unknown_stage(auth_client, pipeline):
    response = auth_client.post("/api/pipeline/leads", json={"name": "X", "stageId": "missing"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid stage"


def test_create_lead_validates_payload(auth_client, pipeline):
    stage = stages_by_name(auth_client, pipeline["id"])["Nuevo"]
    bad_probability = auth_client.post(
        "/api/pipeline/leads", json={"name": "X", "stageId": stage["id"], "probability": 150}
    )
    assert bad_probability.status_code == 400

    bad_currency = auth_client.post(
        "/api/pipeline/leads", json={"name": "X", "stageId": stage["id"], "currency": "EURO"}
    )
    assert bad_currency.status_code == 400


def test_update_lead(auth_client, pipeline):
    stage = stages_by_name(auth_client, pipeline["id"])["Nuevo"]
    lead = create_lead(auth_client, stage["id"])

    updated = auth_client.patch(
        f"/api/pipeline/leads/{lead['id']}", json={"probability": 60, "tags": ["hot"]}
    ).json()
    assert updated["probability"] == 60
    assert updated["tags"] == ["hot"]

    empty = auth_client.patch(f"/api/pipeline/leads/{lead['id']}", json={})
    assert empty.status_code == 400
    assert empty.json()["detail"] == "No data provided for update"

    activities = auth_client.get(f"/api/pipeline/leads/{lead['id']}/activities").json()
    assert {a["description"] for a in activities} == {"Lead creado", "Lead actualizado"}


def test_move_lead_sets_and_clears_closed_at(auth_client, pipeline):
    stages = stages_by_name(auth_client, pipeline["id"])
    lead = create_lead(auth_client, stages["Nuevo"]["id"])

    moved = auth_client.patch(f"/api/pipeline/leads/{lead['id']}/move", json={"stageId": stages["Ganado"]["id"]})
    assert moved.json() == {"success": True}
    won = auth_client.get(f"/api/pipeline/leads/{lead['id']}").json()
    assert won["stageId"] == stages["Ganado"]["id"]
    assert won["closedAt"] is not None

    stage_changes = [a for a in won["activities"] if a["type"] == "stage_change"]
    assert stage_changes[0]["description"] == "Lead movido a Ganado"
    assert stage_changes[0]["metadata"] == {
        "oldStageId": stages["Nuevo"]["id"],
        "newStageId": stages["Ganado"]["id"],
    }

    auth_client.patch(f"/api/pipeline/leads/{lead['id']}/move", json={"stageId": stages["Propuesta"]["id"]})
    reopened = auth_client.get(f"/api/pipeline/leads/{lead['id']}").json()
    assert reopened["closedAt"] is None


def test_move_lead_to_unknown_stage(auth_client, pipeline):
    stage = stages_by_name(auth_client, pipeline["id"])["Nuevo"]
    lead = create_lead(auth_client, stage["id"])
    response = auth_client.patch(f"/api/pipeline/leads/{lead['id']}/move", json={"stageId": "missing"})
    assert response.status_code == 400


def test_delete_lead(auth_client, pipeline):
    stage = stages_by_name(auth_client, pipeline["id"])["Nuevo"]
    lead = create_lead(auth_client, stage["id"])
    assert auth_client.delete(f"/api/pipeline/leads/{lead['id']}").json() == {"success": True}
    assert auth_client.get(f"/api/pipeline/leads/{lead['id']}").status_code == 404


def test_activities(auth_client, pipeline):
    stage = stages_by_name(auth_client, pipeline["id"])["Nuevo"]
    lead = create_lead(auth_client, stage["id"])

    created = auth_client.post(
        f"/api/pipeline/leads/{lead['id']}/activities",
        json={"type": "call", "description": "Llamada de seguimiento", "metadata": {"minutes": 5}},
    )
    assert created.status_code == 200
    assert created.json()["type"] == "call"
    assert created.json()["metadata"] == {"minutes": 5}

    bad = auth_client.post(
        f"/api/pipeline/leads/{lead['id']}/activities", json={"type": "sms", "description": "x"}
    )
    assert bad.status_code == 400


def test_metrics(auth_client, pipeline):
    stages = stages_by_name(auth_client, pipeline["id"])
    create_lead(auth_client, stages["Nuevo"]["id"], value="100")
    create_lead(auth_client, stages["Ganado"]["id"], value="300")
    create_lead(auth_client, stages["Perdido"]["id"], value="50")

    metrics = auth_client.get("/api/pipeline/metrics", params={"pipelineId": pipeline["id"]}).json()
    assert metrics["totalCount"] == 3
    assert metrics["totalValue"] == 450.0
    assert metrics["wonCount"] == 1
    assert metrics["wonValue"] == 300.0
    assert metrics["lostValue"] == 50.0
    assert metrics["conversionRate"] == 33.3
    assert metrics["avgClosingDays"] == 0


def test_metrics_empty_pipeline(auth_client, pipeline):
    metrics = auth_client.get("/api/pipeline/metrics", params={"pipelineId": pipeline["id"]}).json()
    assert metrics["totalCount"] == 0
    assert metrics["conversionRate"] == 0.0


def test_compute_metrics_averages_closing_days():
    now = utc_now()
    won_fast = Lead(value=10, created_at=now - timedelta(days=2), closed_at=now)
    won_slow = Lead(value=20, created_at=now - timedelta(days=6), closed_at=now)
    open_lead = Lead(value=5, created_at=now)

    metrics = PipelineService.compute_metrics([(won_fast, "won"), (won_slow, "won"), (open_lead, "open")])
    assert metrics["avgClosingDays"] == 4
    assert metrics["conversionRate"] == 66.7
    assert metrics["wonValue"] == 30.0


def test_leads_are_tenant_scoped(auth_client, admin_client, pipeline):
    stage = stages_by_name(auth_client, pipeline["id"])["Nuevo"]
    lead = create_lead(auth_client, stage["id"])

    assert admin_client.get(f"/api/pipeline/leads/{lead['id']}").status_code == 404
    response = admin_client.post("/api/pipeline/leads", json={"name": "X", "stageId": stage["id"]})
    assert response.status_code == 400
