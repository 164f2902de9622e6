import pytest

from gueswi.config import SESSION_COOKIE_NAME

PASSWORD = "secret123"


def test_register_sets_session_and_returns_public_user(client):
    response = client.post(
        "/api/register",
        json={"email": "Ana@Example.com", "password": PASSWORD, "firstName": "Ana"},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["email"] == "ana@example.com"
    assert body["username"] == "ana"
    assert body["role"] == "user"
    assert body["tenantId"] is None
    assert "password" not in body
    assert SESSION_COOKIE_NAME in response.cookies


def test_register_duplicate_email_is_rejected(client, register_user):
    register_user(client, "dup@example.com")
    response = client.post("/api/register", json={"email": "dup@example.com", "password": PASSWORD})
    assert response.status_code == 400
    assert response.json()["detail"] == "Email already exists"


def test_register_validates_payload(client):
    response = client.post("/api/register", json={"email": "not-an-email", "password": PASSWORD})
    assert response.status_code == 400

    response = client.post("/api/register", json={"email": "short@example.com", "password": "123"})
    assert response.status_code == 400


def test_login_reports_reason(client, register_user):
    register_user(client, "login@example.com")
    client.cookies.clear()

    unknown = client.post("/api/login", json={"email": "nobody@example.com", "password": PASSWORD})
    assert unknown.status_code == 401
    assert unknown.json() == {"ok": False, "reason": "User not found"}

    wrong = client.post("/api/login", json={"email": "login@example.com", "password": "wrong-pass"})
    assert wrong.status_code == 401
    assert wrong.json()["reason"] == "Invalid password"

    ok = client.post("/api/login", json={"email": "login@example.com", "password": PASSWORD})
    assert ok.status_code == 200
    assert ok.json() == {"ok": True}
    assert client.get("/api/whoami").status_code == 200


def test_protected_routes_require_session(client):
    assert client.get("/api/user").status_code == 401
    assert client.get("/api/extensions").status_code == 401


def test_first_authenticated_request_bootstraps_tenant(client, register_user):
    register_user(client, "maria@example.com")

    response = client.get("/api/user")
    assert response.status_code == 200
    body = response.json()
    assert body["tenantId"]
    assert body["role"] == "owner"

    # Idempotent: the same tenant on later requests
    whoami = client.get("/api/whoami").json()
    assert whoami["tenantId"] == body["tenantId"]

    extensions = client.get("/api/extensions", params={"pageSize": 100}).json()
    assert extensions["total"] == 8
    assert len(client.get("/api/ivrs").json()) == 1
    assert len(client.get("/api/queues").json()) == 2


def test_logout_clears_session(auth_client):
    response = auth_client.post("/api/logout")
    assert response.json() == {"ok": True}
    auth_client.cookies.clear()
    assert auth_client.get("/api/user").status_code == 401


def test_complete_onboarding_creates_inactive_tenant(auth_client):
    response = auth_client.post(
        "/api/complete-onboarding",
        json={
            "tenantData": {"name": "Acme", "industry": "Retail", "employeeCount": "11-50"},
            "selectedPlan": "growth",
        },
    )
    assert response.status_code == 200
    tenant = response.json()["tenant"]
    assert tenant["name"] == "Acme"
    assert tenant["plan"] == "growth"
    assert tenant["status"] == "inactive"
    assert auth_client.get("/api/whoami").json()["tenantId"] == tenant["id"]


def test_complete_onboarding_rejects_unknown_plan(auth_client):
    response = auth_client.post(
        "/api/complete-onboarding",
        json={"tenantData": {"name": "Acme"}, "selectedPlan": "enterprise"},
    )
    assert response.status_code == 400


def test_seed_reset_restores_demo_extensions(auth_client):
    first = auth_client.get("/api/extensions").json()["data"][0]
    assert auth_client.delete(f"/api/extensions/{first['id']}").status_code == 200

    response = auth_client.post("/api/dev/seed/reset")
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert auth_client.get("/api/extensions").json()["total"] == 8


def test_seed_reset_is_owner_only(admin_client):
    response = admin_client.post("/api/dev/seed/reset")
    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "FORBIDDEN"


def test_system_mode_is_public(client):
    body = client.get("/api/system/mode").json()
    assert body["stripeMode"] == "test"
    assert body["isTestMode"] is True
    assert body["webhooks"]["stripe"].endswith("/api/webhooks/stripe")


@pytest.mark.parametrize("email", ["", "   "])
def test_register_rejects_blank_email(client, email):
    response = client.post("/api/register", json={"email": email, "password": PASSWORD})
    assert response.status_code == 400
    assert "Email is required" in response.text
