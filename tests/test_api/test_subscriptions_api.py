"""
Tests for Subscriptions API endpoints
"""
from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from subtracker.main import app
from subtracker.api.deps import get_db, get_account_id


@pytest.fixture
def client(db_session):
    """Test client: SQLite-сессия из conftest + залогиненный account_id=1"""
    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_account_id] = lambda: 1
    yield TestClient(app)
    app.dependency_overrides.clear()


def _payload(**kwargs):
    data = {
        "name": "Netflix",
        "amount": "1490",
        "currency": "JPY",
        "first_billing_date": "2025-01-10",
        "category": "Видео",
    }
    data.update(kwargs)
    return data


def _create(client, **kwargs) -> dict:
    response = client.post("/api/v1/subscriptions/", json=_payload(**kwargs))
    assert response.status_code == 200, response.text
    return response.json()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.text == "ok"


def test_requires_login(db_session):
    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    try:
        response = TestClient(app).get("/api/v1/subscriptions/")
    finally:
        app.dependency_overrides.clear()
    assert response.status_code == 401


def test_create_and_get(client):
    created = _create(client, selected_months=[], plan_name="Premium")

    assert created["name"] == "Netflix"
    assert created["plan_name"] == "Premium"
    assert Decimal(created["amount"]) == Decimal("1490")
    assert created["billing_cycle"] == "MONTHLY"
    assert created["status"] == "ACTIVE"

    response = client.get(f"/api/v1/subscriptions/{created['id']}")
    assert response.status_code == 200
    assert response.json()["id"] == created["id"]


def test_create_accepts_comma_amount(client):
    created = _create(client, amount="980,5")
    assert Decimal(created["amount"]) == Decimal("980.5")


def test_create_invalid_amount(client):
    response = client.post("/api/v1/subscriptions/", json=_payload(amount="-5"))
    assert response.status_code == 422


def test_create_invalid_year_month(client):
    response = client.post(
        "/api/v1/subscriptions/",
        json=_payload(billing_cycle="CALENDAR_MONTHS", selected_year_months=["2025-1"]),
    )
    assert response.status_code == 422


def test_create_unknown_cycle(client):
    response = client.post("/api/v1/subscriptions/", json=_payload(billing_cycle="WEEKLY"))
    assert response.status_code == 400


def test_calendar_months_roundtrip(client):
    created = _create(
        client,
        billing_cycle="CALENDAR_MONTHS",
        selected_year_months=["2026-02", "2025-03", "2025-03"],
    )
    assert created["selected_year_months"] == ["2025-03", "2026-02"]


def test_get_unknown(client):
    response = client.get("/api/v1/subscriptions/00000000-0000-0000-0000-000000000000")
    assert response.status_code == 404


def test_list(client):
    _create(client, name="Netflix")
    _create(client, name="Apple Music")

    response = client.get("/api/v1/subscriptions/")
    assert response.status_code == 200
    assert [s["name"] for s in response.json()] == ["Apple Music", "Netflix"]


def test_update(client):
    created = _create(client)

    response = client.patch(
        f"/api/v1/subscriptions/{created['id']}",
        json={"amount": "1990", "name": "Netflix 4K"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "Netflix 4K"
    assert Decimal(body["amount"]) == Decimal("1990")
    events = client.get(f"/api/v1/subscriptions/{created['id']}/events").json()
    assert events
    assert all(Decimal(e["amount"]) == Decimal("1990") for e in events)


def test_events_and_confirm(client):
    created = _create(client)
    events = client.get(f"/api/v1/subscriptions/{created['id']}/events?event_type=PROJECTED").json()
    assert events
    assert all(e["event_type"] == "PROJECTED" for e in events)

    event_id = events[0]["id"]
    response = client.post(f"/api/v1/subscriptions/events/{event_id}/confirm")
    assert response.status_code == 200

    confirmed = client.get(f"/api/v1/subscriptions/{created['id']}/events?event_type=CONFIRMED").json()
    assert [e["id"] for e in confirmed] == [event_id]

    # повторное подтверждение
    response = client.post(f"/api/v1/subscriptions/events/{event_id}/confirm")
    assert response.status_code == 400


def test_events_bad_type(client):
    created = _create(client)
    response = client.get(f"/api/v1/subscriptions/{created['id']}/events?event_type=PAID")
    assert response.status_code == 400


def test_edit_event(client):
    created = _create(client)
    event_id = client.get(f"/api/v1/subscriptions/{created['id']}/events").json()[0]["id"]

    response = client.patch(
        f"/api/v1/subscriptions/events/{event_id}",
        json={"amount": "1000", "memo": "промо"},
    )
    assert response.status_code == 200

    event = [e for e in client.get(f"/api/v1/subscriptions/{created['id']}/events").json() if e["id"] == event_id][0]
    assert Decimal(event["amount"]) == Decimal("1000")
    assert event["memo"] == "промо"
    assert event["is_amount_overridden"] is True


def test_status_pause_and_next_billing(client):
    created = _create(client)

    response = client.get(
        f"/api/v1/subscriptions/{created['id']}/next-billing-date?reference_date=2025-02-11",
    )
    assert response.json() == {"next_billing_date": "2025-03-10"}

    response = client.post(f"/api/v1/subscriptions/{created['id']}/status", json={"status": "PAUSED"})
    assert response.status_code == 200
    assert response.json()["status"] == "PAUSED"

    response = client.get(f"/api/v1/subscriptions/{created['id']}/next-billing-date")
    assert response.json() == {"next_billing_date": None}
    assert client.get(f"/api/v1/subscriptions/{created['id']}/events").json() == []


def test_cancel_requires_date(client):
    created = _create(client)
    response = client.post(f"/api/v1/subscriptions/{created['id']}/status", json={"status": "CANCELLED"})
    assert response.status_code == 400


def test_cancel(client):
    created = _create(client)
    response = client.post(
        f"/api/v1/subscriptions/{created['id']}/status",
        json={"status": "CANCELLED", "cancellation_date": "2025-03-10"},
    )
    assert response.status_code == 200
    assert response.json()["cancellation_date"] == "2025-03-10"
    for e in client.get(f"/api/v1/subscriptions/{created['id']}/events").json():
        assert date.fromisoformat(e["billed_at"]) <= date(2025, 3, 10)


def test_regenerate(client):
    created = _create(client)
    before = client.get(f"/api/v1/subscriptions/{created['id']}/events").json()

    response = client.post(f"/api/v1/subscriptions/{created['id']}/regenerate")
    assert response.status_code == 200
    assert response.json()["projected"] == len(before)

    response = client.post("/api/v1/subscriptions/regenerate")
    assert response.status_code == 200
    assert response.json()["projected"] == len(before)


def test_delete(client):
    created = _create(client)

    response = client.delete(f"/api/v1/subscriptions/{created['id']}")
    assert response.status_code == 200
    assert client.get(f"/api/v1/subscriptions/{created['id']}").status_code == 404


def test_summary(client):
    _create(client)
    response = client.get("/api/v1/subscriptions/summary")
    assert response.status_code == 200
    body = response.json()
    assert set(body) == {
        "month_projected", "month_confirmed", "year_projected",
        "month_projected_by_category", "upcoming",
    }
    assert len(body["upcoming"]) <= 5
