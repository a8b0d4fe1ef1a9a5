from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from repairshop.database import get_db
from repairshop.domain.orders.router import get_service_order_service
from repairshop.main import app

from conftest import ACTOR

HEADERS = {"X-User-Id": ACTOR}


@pytest.fixture
def client(db, service):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_service_order_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def order_id(client, shop):
    response = client.post(
        "/service-orders",
        json={
            "client_id": shop["client"].id,
            "appliance_id": shop["fridge"].id,
            "falla": "No enfría",
            "total_amount": "100",
        },
        headers=HEADERS,
    )
    assert response.status_code == 200
    return response.json()["data"]["id"]


def test_create_returns_action_result(client, shop):
    response = client.post(
        "/service-orders",
        json={
            "client_id": shop["client"].id,
            "appliance_id": shop["fridge"].id,
            "technician_id": shop["carlos"].id,
        },
        headers=HEADERS,
    )

    body = response.json()
    assert body["success"] is True
    assert body["error"] is None
    assert body["data"]["status"] == "ASSIGNED"
    assert body["data"]["order_number"].startswith("NEV-")
    assert body["data"]["created_by"] == ACTOR


def test_create_validation_failure_is_400(client, shop):
    response = client.post(
        "/service-orders", json={"client_id": shop["client"].id}, headers=HEADERS
    )

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "data": None,
        "error": "At least one appliance is required",
    }


def test_negative_total_is_rejected(client, shop):
    response = client.post(
        "/service-orders",
        json={
            "client_id": shop["client"].id,
            "appliance_id": shop["fridge"].id,
            "total_amount": "-10",
        },
        headers=HEADERS,
    )
    assert response.status_code == 422


def test_missing_actor_header_is_rejected(client, shop):
    response = client.post(
        "/service-orders",
        json={"client_id": shop["client"].id, "appliance_id": shop["fridge"].id},
    )
    assert response.status_code == 401


def test_get_and_list(client, order_id):
    assert client.get(f"/service-orders/{order_id}").json()["id"] == order_id
    assert [o["id"] for o in client.get("/service-orders").json()] == [order_id]
    assert client.get("/service-orders/missing").status_code == 404


def test_patch_status_and_history(client, order_id):
    response = client.patch(
        f"/service-orders/{order_id}", json={"status": "IN_PROGRESS"}, headers=HEADERS
    )
    assert response.json()["data"]["status"] == "IN_PROGRESS"

    entries = client.get(f"/service-orders/{order_id}/history").json()
    assert [e["status"] for e in entries] == ["IN_PROGRESS", "PENDING"]
    assert entries[0]["previous_status"] == "PENDING"


def test_patch_unknown_status_is_400(client, order_id):
    response = client.patch(f"/service-orders/{order_id}", json={"status": "NOPE"}, headers=HEADERS)
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_patch_unknown_order_is_404(client, shop):
    response = client.patch("/service-orders/missing", json={"status": "COMPLETED"}, headers=HEADERS)
    assert response.status_code == 404


def test_payments_and_balance(client, order_id):
    response = client.post(
        f"/service-orders/{order_id}/payments",
        json={"amount": "40", "payment_method": "cash"},
        headers=HEADERS,
    )
    assert response.json()["data"]["payment_method"] == "CASH"

    bad = client.post(
        f"/service-orders/{order_id}/payments",
        json={"amount": "0", "payment_method": "CASH"},
        headers=HEADERS,
    )
    assert bad.status_code == 400

    balance = client.get(f"/service-orders/{order_id}/balance").json()
    assert Decimal(balance["paid_amount"]) == Decimal("40")
    assert Decimal(balance["outstanding"]) == Decimal("60")
    assert balance["payment_status"] == "PARTIAL"

    assert len(client.get(f"/service-orders/{order_id}/payments").json()) == 1


def test_delivery_note_endpoint(client, order_id):
    response = client.post(
        f"/service-orders/{order_id}/delivery-notes",
        json={"received_by": "Maria"},
        headers=HEADERS,
    )
    assert response.json()["data"]["note_number"].startswith("DN-")
    assert client.get(f"/service-orders/{order_id}").json()["status"] == "DELIVERED"
    assert len(client.get(f"/service-orders/{order_id}/delivery-notes").json()) == 1


def test_technician_endpoints(client, order_id, shop):
    response = client.post(
        f"/service-orders/{order_id}/technicians",
        json={"technician_id": shop["carlos"].id},
        headers=HEADERS,
    )
    assert response.json()["data"]["status"] == "ASSIGNED"

    response = client.delete(
        f"/service-orders/{order_id}/technicians/{shop['carlos'].id}",
        params={"replacement_id": shop["luis"].id},
        headers=HEADERS,
    )
    active = [a for a in response.json()["data"]["technician_assignments"] if a["is_active"]]
    assert [a["technician_id"] for a in active] == [shop["luis"].id]


def test_warranty_listing(client, order_id):
    client.patch(
        f"/service-orders/{order_id}",
        json={"garantia_ilimitada": True, "garantia_prioridad": "ALTA"},
        headers=HEADERS,
    )

    listed = client.get("/service-orders/warranty").json()

    assert [o["id"] for o in listed] == [order_id]
    assert listed[0]["under_warranty"] is True
    assert listed[0]["days_remaining"] is None
