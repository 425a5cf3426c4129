"""
Tests for the REST API (`api/`), backed by the in-memory store.

Covers contract rules:
- Recoverable errors map to 4xx with a structured detail.
- A committed sale is visible through lookup, history and the daily report.
- Refunds go through the same API and reverse the sale's effects.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from api.dependencies import build_services
from api.main import create_app
from services.settings import PosSettings

API = "/api/v1"


@pytest.fixture
def client(store) -> TestClient:
    services = build_services(PosSettings(store="memory"), store=store)
    return TestClient(create_app(services=services))


def _sale(**overrides):
    body = {
        "items": [{"medicine_id": "MED001", "quantity": 2}],
        "staff_id": "EMP001",
        "payment_method": "cash",
        "tendered_amount": "50.00",
        "discount_rate": "10",
    }
    body.update(overrides)
    return body


def test_health(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["store"] == "memory"


def test_quote_prices_without_committing(client, store) -> None:
    response = client.post(
        f"{API}/quotes",
        json={"items": [{"medicine_id": "MED001", "quantity": 2}], "discount_rate": "10", "tendered_amount": "50"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["net_total"] == "32.40"
    assert body["balance"] == "17.60"
    assert body["prescription_required"] is False
    assert store.get_medicine("MED001").stock_quantity == 100


def test_quote_flags_prescription(client) -> None:
    response = client.post(f"{API}/quotes", json={"items": [{"medicine_id": "MED002", "quantity": 1}]})

    assert response.json()["prescription_required"] is True


def test_checkout_commits_sale(client, store) -> None:
    response = client.post(f"{API}/checkout", json=_sale(customer={"term": "0771234567"}))

    assert response.status_code == 200
    body = response.json()
    assert body["transaction"]["net_total"] == "32.40"
    assert body["transaction"]["receipt_number"].startswith("RCP-")
    assert body["transaction"]["items"][0]["medicine_name"] == "Paracetamol 500mg"
    assert body["customer"]["customer_id"] == "C001"
    assert body["customer"]["total_purchases"] == "132.40"
    assert store.get_medicine("MED001").stock_quantity == 98

    tx_id = body["transaction"]["transaction_id"]
    assert client.get(f"{API}/transactions/{tx_id}").json()["transaction_id"] == tx_id

    history = client.get(f"{API}/customers/C001/history").json()
    assert [t["transaction_id"] for t in history["transactions"]] == [tx_id]

    day = body["transaction"]["committed_at"][:10]
    report = client.get(f"{API}/reports/daily", params={"day": day}).json()
    assert report["total_sales"] == "32.40"
    assert report["transaction_count"] == 1


def test_checkout_insufficient_stock_is_409(client, store) -> None:
    response = client.post(
        f"{API}/checkout",
        json=_sale(items=[{"medicine_id": "MED001", "quantity": 101}], tendered_amount="5000"),
    )

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["code"] == "INSUFFICIENT_STOCK"
    assert detail["requested"] == 101
    assert detail["available"] == 100


def test_checkout_missing_credential_is_422(client) -> None:
    response = client.post(f"{API}/checkout", json=_sale(items=[{"medicine_id": "MED002", "quantity": 1}]))

    assert response.status_code == 422
    assert response.json()["detail"]["reason"] == "missing"


def test_checkout_unregistered_credential_is_422(client, store) -> None:
    response = client.post(
        f"{API}/checkout",
        json=_sale(items=[{"medicine_id": "MED002", "quantity": 1}], credential="999999", tendered_amount="100.00"),
    )

    assert response.status_code == 422
    assert response.json()["detail"]["reason"] == "unregistered"
    assert store.get_medicine("MED002").stock_quantity == 5


def test_checkout_with_registered_credential(client) -> None:
    response = client.post(
        f"{API}/checkout",
        json=_sale(items=[{"medicine_id": "MED002", "quantity": 1}], credential="123456", tendered_amount="100.00"),
    )

    assert response.status_code == 200
    assert response.json()["transaction"]["credential"] == "123456"


def test_checkout_insufficient_cash_is_400(client, store) -> None:
    response = client.post(f"{API}/checkout", json=_sale(tendered_amount="30.00"))

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "INSUFFICIENT_PAYMENT"
    assert store.list_recent_transactions() == []


def test_checkout_identity_conflict_is_409(client) -> None:
    response = client.post(
        f"{API}/checkout",
        json=_sale(customer={"term": "200011112222", "name": "Someone", "phone": "0771234567"}),
    )

    assert response.status_code == 409
    assert response.json()["detail"]["existing_customer_id"] == "C001"


def test_customer_search_auto_match(client) -> None:
    body = client.get(f"{API}/customers/search", params={"term": "0712345678"}).json()

    assert body["outcome"] == "auto_matched"
    assert body["auto_matched"]["customer_id"] == "C002"
    assert body["candidates"][0]["match_type"] == "exact_phone"


def test_medicine_search(client) -> None:
    body = client.get(f"{API}/medicines/search", params={"term": "vitamin"}).json()

    assert body["total_count"] == 1
    assert body["items"][0]["expired"] is True


def test_unknown_resources_are_404(client) -> None:
    assert client.get(f"{API}/transactions/missing").status_code == 404
    assert client.get(f"{API}/customers/C404/history").status_code == 404
    assert client.post(f"{API}/transactions/missing/refund", json={"staff_id": "EMP001"}).status_code == 404


def test_refund_flow(client, store) -> None:
    sale = client.post(f"{API}/checkout", json=_sale()).json()["transaction"]

    response = client.post(
        f"{API}/transactions/{sale['transaction_id']}/refund",
        json={"staff_id": "EMP001", "items": [{"medicine_id": "MED001", "quantity": 1}]},
    )

    assert response.status_code == 200
    refund = response.json()["refund"]
    assert refund["transaction_type"] == "refund"
    assert refund["net_total"] == "16.20"
    assert store.get_medicine("MED001").stock_quantity == 99

    over = client.post(
        f"{API}/transactions/{sale['transaction_id']}/refund",
        json={"staff_id": "EMP001", "items": [{"medicine_id": "MED001", "quantity": 2}]},
    )
    assert over.status_code == 400
    assert over.json()["detail"]["code"] == "REFUND_ERROR"
