import os

from gueswi import config
from gueswi.models import Tenant

FORM = {
    "referenceNumber": "REF-0001",
    "bank": "Banco Mercantil",
    "amount": "25.5",
    "transferDate": "2025-06-02",
    "transferTime": "14:30",
    "purpose": "Plan starter",
}


def submit(client, receipt=None, **overrides):
    data = {**FORM, **overrides}
    files = {"receipt": receipt} if receipt else None
    return client.post("/api/bank-transfers", data=data, files=files)


def test_submit_transfer_with_receipt(auth_client):
    response = submit(auth_client, receipt=("comprobante.png", b"\x89PNG fake", "image/png"), comments="<b>gracias</b>")
    assert response.status_code == 200, response.text
    transfer = response.json()
    assert transfer["status"] == "pending"
    assert transfer["amount"] == "25.50"
    assert transfer["transferDate"].startswith("2025-06-02T14:30")
    assert transfer["comments"] == "&lt;b&gt;gracias&lt;/b&gt;"
    assert transfer["tenantId"] == auth_client.user["tenantId"]

    url = transfer["receiptUrl"]
    assert url.startswith("/uploads/receipts/")
    assert url.endswith("_comprobante.png")
    assert os.path.exists(os.path.join(config.UPLOADS_DIR, "receipts", url.rsplit("/", 1)[1]))


def test_submit_transfer_without_receipt(auth_client):
    response = submit(auth_client)
    assert response.status_code == 200
    assert response.json()["receiptUrl"] is None


def test_receipt_type_and_size_are_checked(auth_client):
    wrong_type = submit(auth_client, receipt=("notes.txt", b"hello", "text/plain"))
    assert wrong_type.status_code == 400
    assert wrong_type.json()["detail"] == "Invalid file type. Only JPEG, PNG, and PDF files are allowed."

    too_big = submit(auth_client, receipt=("big.pdf", b"0" * (config.MAX_RECEIPT_SIZE + 1), "application/pdf"))
    assert too_big.status_code == 400
    assert too_big.json()["detail"] == "File too large. Maximum size is 5MB."


def test_amount_and_date_are_validated(auth_client):
    assert submit(auth_client, amount="abc").json()["detail"] == "Invalid amount"
    assert submit(auth_client, amount="0").json()["detail"] == "Amount must be greater than 0"
    assert submit(auth_client, transferDate="02/06/2025").json()["detail"] == "Invalid transfer date or time"
    assert submit(auth_client, bank="  ").json()["detail"] == "bank is required"


def test_list_is_scoped_to_tenant(auth_client):
    submit(auth_client)
    transfers = auth_client.get("/api/bank-transfers").json()
    assert [t["referenceNumber"] for t in transfers] == ["REF-0001"]


def test_only_admins_process_transfers(auth_client):
    transfer = submit(auth_client).json()
    response = auth_client.patch(f"/api/bank-transfers/{transfer['id']}", json={"status": "approved"})
    assert response.status_code == 403
    assert response.json()["detail"] == "Admin access required"


def test_approval_activates_tenant(auth_client, admin_client, db_session):
    onboarding = auth_client.post(
        "/api/complete-onboarding",
        json={"tenantData": {"name": "Acme"}, "selectedPlan": "starter"},
    )
    tenant_id = onboarding.json()["tenant"]["id"]
    transfer = submit(auth_client).json()
    assert transfer["tenantId"] == tenant_id

    pending = admin_client.get("/api/bank-transfers").json()
    assert [t["id"] for t in pending] == [transfer["id"]]

    response = admin_client.patch(
        f"/api/bank-transfers/{transfer['id']}", json={"status": "approved", "adminComments": "OK"}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "approved"
    assert body["processedBy"] == admin_client.user["id"]
    assert body["processedAt"] is not None

    assert db_session.get(Tenant, tenant_id).status == "active"
    assert admin_client.get("/api/bank-transfers").json() == []


def test_processed_transfer_cannot_be_processed_again(auth_client, admin_client):
    transfer = submit(auth_client).json()
    admin_client.patch(f"/api/bank-transfers/{transfer['id']}", json={"status": "rejected"})

    again = admin_client.patch(f"/api/bank-transfers/{transfer['id']}", json={"status": "approved"})
    assert again.status_code == 409
    assert again.json()["detail"] == "Transfer already rejected"


def test_decision_must_be_known(auth_client, admin_client):
    transfer = submit(auth_client).json()
    response = admin_client.patch(f"/api/bank-transfers/{transfer['id']}", json={"status": "maybe"})
    assert response.status_code == 400

    missing = admin_client.patch("/api/bank-transfers/missing", json={"status": "approved"})
    assert missing.status_code == 404
