from __future__ import annotations

from uuid import uuid4

from backoffice.governance import CustomerClaims, StoreOwnerClaims


def _create_store(client, admin_headers, **overrides) -> dict:
    payload = {
        "name": f"Store {uuid4().hex[:6]}",
        "email": "owner@example.com",
        "grading_price": 300,
        "mystery_pack_price": 100,
    }
    payload.update(overrides)
    response = client.post("/stores", json=payload, headers=admin_headers)
    assert response.status_code == 201, response.text
    return response.json()["store"]


def _order_payload(**overrides) -> dict:
    payload = {
        "customer_name": "Ada Lovelace",
        "items": [{"product_type": "grading", "quantity": 2, "unit_price": 300, "subtotal": 600}],
    }
    payload.update(overrides)
    return payload


def test_store_owner_order_lifecycle(client, admin_headers, headers_for):
    store = _create_store(client, admin_headers)
    owner = headers_for(StoreOwnerClaims(store_id=store["id"]))

    created = client.post("/orders", json=_order_payload(), headers=owner)
    assert created.status_code == 201, created.text
    body = created.json()
    order_id = body["order"]["id"]
    assert body["order"]["store_id"] == store["id"]
    assert body["order"]["total"] == 600
    assert body["tracking_code"] == body["order"]["tracking_code"]

    skipped = client.put(f"/orders/{order_id}/status", json={"status": "shipped"}, headers=owner)
    assert skipped.status_code == 400
    assert skipped.json()["error"] == "invalid_transition"

    received = client.put(
        f"/orders/{order_id}/status",
        json={"status": "received", "performed_by": "owner", "expected_version": 1},
        headers=owner,
    )
    assert received.status_code == 200
    assert received.json()["order"]["version"] == 2

    stale = client.put(
        f"/orders/{order_id}/status",
        json={"status": "processing", "expected_version": 1},
        headers=owner,
    )
    assert stale.status_code == 409
    assert stale.json()["error"] == "concurrent_modification"

    options = client.get(f"/orders/{order_id}/status", headers=owner).json()
    assert options["current_status"]["label"] == "Cards Received"
    assert [s["value"] for s in options["valid_next_statuses"]] == ["processing"]

    assert client.delete(f"/orders/{order_id}", headers=owner).status_code == 403

    listed = client.get("/orders", headers=owner).json()
    assert [o["id"] for o in listed["items"]] == [order_id]


def test_other_tenants_cannot_see_order(client, admin_headers, headers_for):
    store = _create_store(client, admin_headers)
    order_id = client.post("/orders", json=_order_payload(store_id=store["id"]), headers=admin_headers).json()[
        "order"
    ]["id"]

    stranger = headers_for(StoreOwnerClaims(store_id="someone-else"))
    response = client.get(f"/orders/{order_id}", headers=stranger)
    assert response.status_code == 403

    customer = headers_for(CustomerClaims(customer_id="cust-x"))
    assert client.get(f"/orders/{order_id}", headers=customer).status_code == 403
    assert client.get(f"/orders/{order_id}", headers=admin_headers).status_code == 200


def test_delete_is_refused_once_grading_completed(client, admin_headers):
    order = client.post("/orders", json=_order_payload(), headers=admin_headers).json()["order"]
    for status in ("received", "processing", "encapsulated", "completed"):
        response = client.put(f"/orders/{order['id']}/status", json={"status": status}, headers=admin_headers)
        assert response.status_code == 200

    refused = client.delete(f"/orders/{order['id']}", headers=admin_headers)
    assert refused.status_code == 409
    assert refused.json()["error"] == "irreversible_state"

    fresh = client.post("/orders", json=_order_payload(), headers=admin_headers).json()["order"]
    assert client.delete(f"/orders/{fresh['id']}", headers=admin_headers).status_code == 204
    assert client.get(f"/orders/{fresh['id']}", headers=admin_headers).status_code == 404


def test_public_tracking_page(client, admin_headers):
    order = client.post("/orders", json=_order_payload(), headers=admin_headers).json()["order"]
    response = client.get(f"/orders/by-tracking-code/{order['tracking_code']}")
    assert response.status_code == 200
    view = response.json()["order"]
    assert view["status_title"] == "Order Created"
    assert "id" not in view
    assert "customer_id" not in view


def test_mismatched_subtotal_is_rejected(client, admin_headers):
    payload = _order_payload(
        items=[{"product_type": "grading", "quantity": 2, "unit_price": 300, "subtotal": 500}]
    )
    assert client.post("/orders", json=payload, headers=admin_headers).status_code == 422


def test_inactive_store_cannot_take_orders(client, admin_headers):
    store = _create_store(client, admin_headers, status="inactive")
    response = client.post("/orders", json=_order_payload(store_id=store["id"]), headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "inactive_store"


def test_pricing_calculation(client, admin_headers, headers_for):
    items = [{"product_type": "grading", "quantity": 1}, {"product_type": "mysterypack", "quantity": 3}]

    public = client.post("/pricing/calculate", json={"items": items}, headers=admin_headers)
    assert public.status_code == 200
    assert public.json()["total"] == 350 + 450

    store = _create_store(client, admin_headers)
    owner = headers_for(StoreOwnerClaims(store_id=store["id"]))
    quoted = client.post("/pricing/calculate", json={"items": items}, headers=owner).json()
    assert quoted["total"] == 300 + 300
    assert quoted["pricing_info"]["store_name"] == store["name"]
    assert quoted["pricing_info"]["is_direct_customer"] is False

    bad = client.post(
        "/pricing/calculate",
        json={"items": [{"product_type": "slab", "quantity": 1}]},
        headers=admin_headers,
    )
    assert bad.status_code == 400
    assert bad.json()["error"] == "invalid_product_type"

    zero = client.post(
        "/pricing/calculate",
        json={"items": [{"product_type": "grading", "quantity": 0}]},
        headers=admin_headers,
    )
    assert zero.status_code == 400
    assert zero.json()["error"] == "invalid_quantity"


def test_bulk_update_is_admin_only(client, admin_headers, headers_for):
    first = client.post("/orders", json=_order_payload(), headers=admin_headers).json()["order"]
    second = client.post("/orders", json=_order_payload(), headers=admin_headers).json()["order"]

    payload = {"order_ids": [first["id"], second["id"]], "status": "received"}
    owner = headers_for(StoreOwnerClaims(store_id="s-1"))
    assert client.post("/orders/bulk-update", json=payload, headers=owner).status_code == 403

    outcome = client.post("/orders/bulk-update", json=payload, headers=admin_headers).json()
    assert outcome["updated"] == 2
    assert outcome["errors"] == []


def test_cards_and_customers(client, admin_headers, headers_for):
    card = client.post(
        "/cards",
        json={"certification_number": uuid4().hex, "name": "Pikachu"},
        headers=admin_headers,
    ).json()["card"]
    customer = client.post(
        "/customers",
        json={"name": "Grace Hopper", "phone": "555-0101"},
        headers=admin_headers,
    ).json()["customer"]

    created = client.post(
        "/orders",
        json=_order_payload(customer_id=customer["id"], card_ids=[card["id"], "ghost-card"]),
        headers=admin_headers,
    ).json()
    assert created["order"]["customer_name"] == "Grace Hopper"
    assert created["warnings"] == ["cards not found and not linked: ghost-card"]

    own = headers_for(CustomerClaims(customer_id=customer["id"]))
    assert client.get(f"/customers/{customer['id']}", headers=own).status_code == 200
    assert client.get(f"/orders/{created['order']['id']}", headers=own).status_code == 200
    other = headers_for(CustomerClaims(customer_id="not-me"))
    assert client.get(f"/customers/{customer['id']}", headers=other).status_code == 403


def test_store_owner_cannot_read_customers(client, admin_headers, headers_for):
    customer = client.post(
        "/customers",
        json={"name": "Linus Pauling", "phone": "555-0102"},
        headers=admin_headers,
    ).json()["customer"]

    owner = headers_for(StoreOwnerClaims(store_id="store-unrelated"))
    response = client.get(f"/customers/{customer['id']}", headers=owner)
    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"
    assert "Linus" not in response.text
