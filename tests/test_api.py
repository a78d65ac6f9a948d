import pytest
from fastapi.testclient import TestClient

from app import app, get_db
from conftest import CONSUMER, FARM, MIDDLEMAN, REPORT

FARM_H = {"X-Org-Id": FARM}
MIDDLEMAN_H = {"X-Org-Id": MIDDLEMAN}
CONSUMER_H = {"X-Org-Id": CONSUMER}

NEW_BATCH = {
    "batchId": "batch_demo",
    "origin": "Heilongjiang",
    "variety": "Japonica",
    "harvestDate": "2024-09-15",
    "initialReport": REPORT,
    "owner": "FarmerZ",
    "initialStep": "Harvested",
}


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_seed_requires_farm(client):
    r = client.post("/api/seed")
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "PERMISSION_DENIED"

    r = client.post("/api/seed", headers=FARM_H)
    assert r.status_code == 200
    ids = {b["batchId"] for b in client.get("/api/batches").json()}
    assert ids == {"batch1", "batch2"}


def test_batch_lifecycle_over_http(client):
    r = client.post("/api/batches", json=NEW_BATCH, headers=FARM_H)
    assert r.status_code == 200
    assert r.json()["currentOwner"] == "FarmerZ"

    assert client.get("/api/batches/batch_demo/exists").json()["exists"] is True

    r = client.post("/api/batches/batch_demo/events", headers=MIDDLEMAN_H, json={
        "fromParty": "FarmerZ",
        "toParty": "ProcessorA",
        "step": "Inspected",
        "report": REPORT,
    })
    assert r.status_code == 200

    events = client.get("/api/batches/batch_demo/history", headers=CONSUMER_H).json()
    assert [(e["from"], e["to"], e["step"]) for e in events] == [
        ("", "FarmerZ", "Harvested"),
        ("FarmerZ", "ProcessorA", "Inspected"),
    ]

    status = client.get("/api/batches/batch_demo/status").json()
    assert status["currentOwner"] == "ProcessorA"
    assert status["eventCount"] == 2

    r = client.post("/api/products", headers=MIDDLEMAN_H, json={
        "productId": "prod_demo",
        "batchId": "batch_demo",
        "packageDate": "2024-10-20",
        "owner": "ProcessorA",
    })
    assert r.status_code == 200
    joined = client.get("/api/products/prod_demo").json()
    assert joined["batch"]["batchId"] == "batch_demo"
    assert [p["productId"] for p in client.get("/api/products").json()] == ["prod_demo"]


def test_error_kinds_map_to_status_codes(client):
    assert client.get("/api/batches/ghost").status_code == 404
    assert client.post("/api/batches", json=NEW_BATCH, headers=MIDDLEMAN_H).status_code == 403

    assert client.post("/api/batches", json=NEW_BATCH, headers=FARM_H).status_code == 200
    r = client.post("/api/batches", json=NEW_BATCH, headers=FARM_H)
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "ALREADY_EXISTS"

    r = client.post("/api/batches/batch_demo/events", headers=MIDDLEMAN_H, json={
        "fromParty": "FarmerZ", "toParty": "P", "step": "Inspected",
        "report": {"isVerified": "maybe"},
    })
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "MALFORMED_INPUT"


def test_product_qrcode(client):
    assert client.get("/api/products/product1/qrcode").status_code == 404
    client.post("/api/seed", headers=FARM_H)

    r = client.get("/api/products/product1/qrcode")
    assert r.status_code == 200
    assert r.headers["content-type"] == "image/png"
    assert r.content.startswith(b"\x89PNG")


def test_caller_and_permissions(client):
    assert client.get("/api/caller", headers=MIDDLEMAN_H).json()["roleName"] == "Middleman/Tester"
    assert client.get("/api/caller").json()["role"] == "viewer"
    matrix = client.get("/api/permissions").json()
    assert matrix["methods"]["CreateRiceBatch"] == ["Farm"]


def test_quality_certification_over_http(client):
    client.post("/api/batches", json=NEW_BATCH, headers=FARM_H)
    r = client.post("/api/tests", headers=FARM_H, json={
        "testId": "t1",
        "batchId": "batch_demo",
        "testType": "Moisture",
        "testDate": "2024-10-01",
        "testResult": "14.1% pass",
        "tester": "LabCo",
    })
    assert r.status_code == 200
    assert r.json()["isVerified"] is False

    assert client.post("/api/tests/t1/verify", headers=FARM_H, json={"verificationSource": "x"}).status_code == 403
    r = client.post("/api/tests/t1/verify", headers=MIDDLEMAN_H, json={
        "verificationSource": "National Lab", "verificationNotes": "ok",
    })
    assert r.json()["verificationSource"] == "National Lab"

    r = client.post("/api/certificates", headers=MIDDLEMAN_H, json={
        "certificateId": "c1",
        "batchId": "batch_demo",
        "testIds": ["t1"],
        "certificateType": "GradeA",
        "issueDate": "2024-10-05",
        "issuer": "CertBody",
        "validityPeriod": "12 months",
        "standards": "GB/T 1354",
    })
    assert r.status_code == 200
    assert client.get("/api/certificates/c1").json()["testIds"] == ["t1"]
    assert [t["testId"] for t in client.get("/api/batches/batch_demo/tests").json()] == ["t1"]
    assert [c["certificateId"] for c in client.get("/api/batches/batch_demo/certificates").json()] == ["c1"]
    assert client.get("/api/tests/ghost").status_code == 404
    assert client.get("/api/permissions").json()["methods"]["VerifyTestResult"] == ["Middleman/Tester"]
