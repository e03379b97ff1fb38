import json

import pytest

import butcher_bot.config as config_mod
from butcher_bot.models import Order
from tests.helpers import CHORIZO_ID, SOLOMILLO_LINE, llm_json


def _place(client, lines=None):
    resp = client.post("/orders", json={"lines": lines or [SOLOMILLO_LINE]})
    assert resp.status_code == 201
    return resp.json()


def _pickup_code(client, order_id):
    return client.get(f"/orders/{order_id}/pickup-code").json()["code"]


# =============================================================================
# Authentication
# =============================================================================

def test_staff_requires_auth(client):
    resp = client.get("/staff/orders")
    assert resp.status_code == 401
    assert "Basic" in resp.headers["WWW-Authenticate"]


def test_staff_rejects_wrong_password(client):
    resp = client.get("/staff/orders", auth=("teststaff", "wrong"))
    assert resp.status_code == 401


def test_staff_unconfigured_is_503(client, staff_auth, monkeypatch):
    monkeypatch.setattr(config_mod, "STAFF_PASSWORD", "")
    resp = client.get("/staff/orders", auth=staff_auth)
    assert resp.status_code == 503


# =============================================================================
# Order listing
# =============================================================================

def test_list_orders_newest_first(client, staff_auth):
    first = _place(client)
    second = _place(client)

    resp = client.get("/staff/orders", auth=staff_auth)

    assert resp.status_code == 200
    data = resp.json()
    assert data["total"] == 2
    assert [o["id"] for o in data["items"]] == [second["orderId"], first["orderId"]]
    assert data["has_next"] is False


def test_list_orders_pagination(client, staff_auth):
    for _ in range(5):
        _place(client)

    data = client.get("/staff/orders", params={"page": 2, "page_size": 2}, auth=staff_auth).json()

    assert data["page"] == 2
    assert data["page_size"] == 2
    assert len(data["items"]) == 2
    assert data["total"] == 5
    assert data["has_next"] is True


def test_list_orders_status_filter(client, staff_auth, db_session):
    kept = _place(client)
    cancelled = _place(client)
    db_session.query(Order).filter(Order.id == cancelled["orderId"]).update({"status": "cancelled"})
    db_session.commit()

    data = client.get("/staff/orders", params={"status": "pending"}, auth=staff_auth).json()

    assert [o["id"] for o in data["items"]] == [kept["orderId"]]


# =============================================================================
# Status transitions
# =============================================================================

@pytest.mark.parametrize("path", [
    ["preparing", "ready", "completed"],
    ["preparing", "cancelled"],
    ["cancelled"],
])
def test_valid_transitions(client, staff_auth, path):
    order = _place(client)
    for status in path:
        resp = client.patch(f"/staff/orders/{order['orderId']}/status", json={"status": status}, auth=staff_auth)
        assert resp.status_code == 200
        assert resp.json()["status"] == status


@pytest.mark.parametrize("path,bad", [
    ([], "ready"),
    ([], "completed"),
    (["preparing", "ready", "completed"], "cancelled"),
    (["cancelled"], "pending"),
])
def test_invalid_transitions_are_409(client, staff_auth, path, bad):
    order = _place(client)
    for status in path:
        client.patch(f"/staff/orders/{order['orderId']}/status", json={"status": status}, auth=staff_auth)

    resp = client.patch(f"/staff/orders/{order['orderId']}/status", json={"status": bad}, auth=staff_auth)
    assert resp.status_code == 409


def test_unknown_status_is_422(client, staff_auth):
    order = _place(client)
    resp = client.patch(f"/staff/orders/{order['orderId']}/status", json={"status": "shipped"}, auth=staff_auth)
    assert resp.status_code == 422


def test_status_of_unknown_order_is_404(client, staff_auth):
    resp = client.patch("/staff/orders/9999/status", json={"status": "preparing"}, auth=staff_auth)
    assert resp.status_code == 404


# =============================================================================
# Pickup
# =============================================================================

def test_pickup_with_string_code(client, staff_auth):
    order = _place(client)
    code = _pickup_code(client, order["orderId"])

    resp = client.post("/staff/pickup", json={"code": code}, auth=staff_auth)

    assert resp.status_code == 200
    assert resp.json()["status"] == "completed"


def test_pickup_with_decoded_code(client, staff_auth):
    order = _place(client)
    payload = json.loads(_pickup_code(client, order["orderId"]))

    resp = client.post("/staff/pickup", json={"code": payload}, auth=staff_auth)
    assert resp.json()["status"] == "completed"


def test_pickup_twice_is_rejected(client, staff_auth):
    order = _place(client)
    code = _pickup_code(client, order["orderId"])
    client.post("/staff/pickup", json={"code": code}, auth=staff_auth)

    resp = client.post("/staff/pickup", json={"code": code}, auth=staff_auth)
    assert resp.status_code == 400


@pytest.mark.parametrize("mutate", [
    lambda p: {**p, "action": "refund"},
    lambda p: {**p, "orderNumber": "ORD-0-0000"},
    lambda p: {**p, "orderId": 9999},
    lambda p: {k: v for k, v in p.items() if k != "orderId"},
])
def test_pickup_mismatch_is_400(client, staff_auth, mutate):
    order = _place(client)
    payload = json.loads(_pickup_code(client, order["orderId"]))

    resp = client.post("/staff/pickup", json={"code": mutate(payload)}, auth=staff_auth)
    assert resp.status_code == 400


def test_pickup_garbage_is_400(client, staff_auth):
    resp = client.post("/staff/pickup", json={"code": "not json at all"}, auth=staff_auth)
    assert resp.status_code == 400


# =============================================================================
# Stock
# =============================================================================

def test_stock_toggle_reaches_next_chat_turn(client, staff_auth, llm):
    resp = client.patch(f"/staff/products/{CHORIZO_ID}/stock", json={"inStock": False}, auth=staff_auth)
    assert resp.status_code == 200
    assert resp.json()["inStock"] is False

    session_id = client.post("/chat/start", json={"category": "charcutería"}).json()["session_id"]
    llm.queue(llm_json("Lo siento, no nos queda chorizo"))
    client.post("/chat/message", json={"session_id": session_id, "message": "¿tenéis chorizo?"})

    assert "Chorizo de León" in llm.calls[0]["messages"][0]["content"]
    assert "En stock: No" in llm.calls[0]["messages"][0]["content"]


def test_stock_of_unknown_product_is_404(client, staff_auth):
    resp = client.patch("/staff/products/9999/stock", json={"inStock": True}, auth=staff_auth)
    assert resp.status_code == 404
