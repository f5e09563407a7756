from fastapi.testclient import TestClient
import pytest

from pilltrack.api import create_app
from pilltrack.ledger import MonthlyRefill
from pilltrack.store import SQLiteStore


@pytest.fixture
def client(tmp_path, clock):
    app = create_app(
        store=SQLiteStore(str(tmp_path / "api.sqlite")),
        user_id="api",
        refill_policy=MonthlyRefill(19),
        horizon_days=30,
        clock=clock,
    )
    return TestClient(app)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_state_defaults(client):
    body = client.get("/state").json()
    assert body["name"] == "My Medication"
    assert body["pills_remaining"] == 30
    assert body["intake_history"] == []


def test_intake_flow(client):
    r = client.post("/intake", json={"count": 5})
    assert r.status_code == 200
    assert r.json()["pills_remaining"] == 25
    assert r.json()["intake_history"] == [{"date": "2024-03-01", "count": 5}]
    r = client.post("/intake", json={"count": 30})
    assert r.status_code == 409
    assert r.json()["deficit"] == 5
    assert client.get("/state").json()["pills_remaining"] == 25
    r = client.post("/reset")
    assert r.json()["pills_remaining"] == 30
    assert r.json()["intake_history"] == []


def test_invalid_intake_is_422(client):
    assert client.post("/intake", json={"count": 0}).status_code == 422
    assert client.post("/intake", json={}).status_code == 422


def test_settings(client):
    r = client.put("/settings", json={"name": "Zinc", "total_pills": 60, "daily_dose": 2, "start_date": "2024-02-01"})
    assert r.status_code == 200
    body = r.json()
    assert body["pills_remaining"] == 60
    assert body["start_date"] == "2024-02-01"
    bad = client.put("/settings", json={"name": "", "total_pills": 60, "daily_dose": 2, "start_date": "2024-02-01"})
    assert bad.status_code == 422
    assert client.get("/state").json()["name"] == "Zinc"


def test_forecast(client):
    body = client.get("/forecast").json()
    assert len(body["points"]) == 30
    assert body["points"][0] == {"date": "2024-03-01", "remaining": 30}
    assert body["summary"]["days_remaining"] == 30
    assert body["summary"]["next_refill_date"] == "2024-03-19"
    assert len(client.get("/forecast", params={"days": 5}).json()["points"]) == 5
    assert client.get("/forecast", params={"days": -1}).status_code == 422
