import uuid
from decimal import Decimal


def _receive(client, tenant, headers, quantity=100, cost="2.00", key=None):
    extra = {"Idempotency-Key": key} if key else {}
    return client.post(
        "/inventory/receive",
        json={
            "product_id": str(tenant.product_a_id),
            "batch_id": str(tenant.batch_id),
            "cost_price": cost,
            "selling_price": "5.00",
            "quantity": quantity,
        },
        headers={**headers, **extra},
    )


def _create_order(client, tenant, headers, quantity):
    response = client.post(
        "/orders",
        json={
            "customer_id": str(tenant.customer_id),
            "items": [{"product_id": str(tenant.product_a_id), "quantity": quantity, "unit_price": "5.00"}],
        },
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_requests_without_a_token_are_rejected(client):
    assert client.get("/inventory/entries").status_code == 401


def test_employee_cannot_receive_stock(client, tenant, clerk_headers):
    response = _receive(client, tenant, clerk_headers)
    assert response.status_code == 403


def test_cross_business_access_is_forbidden(client, owner_headers):
    response = client.get("/inventory/entries", params={"business_id": str(uuid.uuid4())}, headers=owner_headers)
    assert response.status_code == 403


def test_receive_replays_by_idempotency_key(client, tenant, owner_headers):
    first = _receive(client, tenant, owner_headers, quantity=10, key="dock-4-0001")
    replay = _receive(client, tenant, owner_headers, quantity=10, key="dock-4-0001")

    assert first.status_code == 201, first.text
    assert replay.status_code == 201
    assert replay.json()["id"] == first.json()["id"]
    entries = client.get("/inventory/entries", headers=owner_headers).json()
    assert len(entries) == 1


def test_sell_then_reverse_over_http(client, tenant, owner_headers):
    assert _receive(client, tenant, owner_headers).status_code == 201
    order = _create_order(client, tenant, owner_headers, 30)
    assert Decimal(order["total_amount"]) == Decimal("150.00")

    fulfilled = client.post(
        f"/orders/{order['id']}/fulfill",
        json={"payment_method_id": str(tenant.payment_method_id)},
        headers=owner_headers,
    )
    assert fulfilled.status_code == 200, fulfilled.text
    assert Decimal(fulfilled.json()["total_cogs"]) == Decimal("60.00")

    available = client.get(f"/inventory/available/{tenant.product_a_id}", headers=owner_headers).json()
    assert available["available"] == 70

    balance = client.get("/transactions/balance", headers=owner_headers).json()
    assert Decimal(balance["balance"]) == Decimal("150.00")

    reversed_ = client.post(f"/orders/{order['id']}/reverse", json={"reason": "returned"}, headers=owner_headers)
    assert reversed_.status_code == 200, reversed_.text
    assert reversed_.json()["restored"] == 30

    order_state = client.get(f"/orders/{order['id']}", headers=owner_headers).json()
    assert order_state["status"] == "cancelled"
    balance = client.get("/transactions/balance", headers=owner_headers).json()
    assert Decimal(balance["balance"]) == Decimal("0.00")


def test_insufficient_stock_is_a_conflict(client, tenant, owner_headers):
    order = _create_order(client, tenant, owner_headers, 5)

    response = client.post(f"/orders/{order['id']}/fulfill", headers=owner_headers)

    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "insufficient_stock"
    assert body["requested"] == 5
    assert body["available"] == 0
    assert body["retryable"] is False


def test_wrong_sign_is_a_validation_error(client, owner_headers):
    response = client.post(
        "/transactions",
        json={"transaction_type": "sale", "amount": "-5.00"},
        headers=owner_headers,
    )
    assert response.status_code == 422
    assert response.json()["error"] == "validation_error"


def test_void_excludes_transaction_from_balance(client, owner_headers):
    posted = client.post(
        "/transactions",
        json={"transaction_type": "opening_balance", "amount": "500.00"},
        headers={**owner_headers, "Idempotency-Key": "opening-2026"},
    )
    assert posted.status_code == 201, posted.text

    voided = client.post(
        f"/transactions/{posted.json()['id']}/void",
        json={"reason": "wrong amount"},
        headers=owner_headers,
    )
    assert voided.status_code == 200
    assert voided.json()["status"] == "cancelled"
    balance = client.get("/transactions/balance", headers=owner_headers).json()
    assert Decimal(balance["balance"]) == Decimal("0.00")


def test_unknown_order_is_not_found(client, owner_headers):
    response = client.get(f"/orders/{uuid.uuid4()}", headers=owner_headers)
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_purchase_receipt_over_http(client, tenant, owner_headers):
    created = client.post(
        "/purchases",
        json={
            "supplier_id": str(tenant.supplier_id),
            "batch_id": str(tenant.batch_id),
            "items": [{"product_id": str(tenant.product_a_id), "quantity": 10, "unit_cost": "2.00"}],
        },
        headers=owner_headers,
    )
    assert created.status_code == 201, created.text
    purchase = created.json()
    item_id = purchase["items"][0]["id"]

    payload = {"lines": [{"purchase_item_id": item_id, "quantity_received": 4}]}
    headers = {**owner_headers, "Idempotency-Key": "grn-0001"}
    first = client.post(f"/purchases/{purchase['id']}/receive", json=payload, headers=headers)
    replay = client.post(f"/purchases/{purchase['id']}/receive", json=payload, headers=headers)

    assert first.status_code == 200, first.text
    assert replay.status_code == 200
    body = replay.json()
    assert body["status"] == "partial"
    assert body["items"][0]["quantity_received"] == 4

    balance = client.get("/transactions/balance", headers=owner_headers).json()
    assert Decimal(balance["balance"]) == Decimal("-8.00")


def test_stock_adjustment_over_http(client, tenant, owner_headers):
    assert _receive(client, tenant, owner_headers, quantity=10).status_code == 201

    response = client.post(
        "/inventory/adjust",
        json={
            "product_id": str(tenant.product_a_id),
            "direction": "decrease",
            "quantity": 3,
            "reason": "breakage",
        },
        headers=owner_headers,
    )

    assert response.status_code == 201, response.text
    assert Decimal(response.json()["value"]) == Decimal("6.00")
    movements = client.get(
        "/inventory/movements",
        params={"product_id": str(tenant.product_a_id)},
        headers=owner_headers,
    ).json()
    assert [m["signed_quantity"] for m in movements] == [10, -3]


def test_order_can_be_fulfilled_on_creation(client, tenant, owner_headers):
    assert _receive(client, tenant, owner_headers, quantity=10).status_code == 201

    response = client.post(
        "/orders",
        json={
            "customer_id": str(tenant.customer_id),
            "fulfill_now": True,
            "payment_method_id": str(tenant.payment_method_id),
            "items": [{"product_id": str(tenant.product_a_id), "quantity": 4, "unit_price": "5.00"}],
        },
        headers=owner_headers,
    )

    assert response.status_code == 201, response.text
    assert response.json()["status"] == "paid"
    available = client.get(f"/inventory/available/{tenant.product_a_id}", headers=owner_headers).json()
    assert available["available"] == 6


def test_failed_immediate_fulfillment_creates_no_order(client, tenant, owner_headers):
    response = client.post(
        "/orders",
        json={
            "customer_id": str(tenant.customer_id),
            "fulfill_now": True,
            "items": [{"product_id": str(tenant.product_a_id), "quantity": 4, "unit_price": "5.00"}],
        },
        headers=owner_headers,
    )

    assert response.status_code == 409
    assert client.get("/orders", headers=owner_headers).json() == []


def test_receipt_overage_can_be_allowed_per_request(client, tenant, owner_headers):
    created = client.post(
        "/purchases",
        json={
            "supplier_id": str(tenant.supplier_id),
            "batch_id": str(tenant.batch_id),
            "items": [{"product_id": str(tenant.product_a_id), "quantity": 10, "unit_cost": "2.00"}],
        },
        headers=owner_headers,
    )
    assert created.status_code == 201, created.text
    purchase = created.json()
    lines = [{"purchase_item_id": purchase["items"][0]["id"], "quantity_received": 11}]

    rejected = client.post(f"/purchases/{purchase['id']}/receive", json={"lines": lines}, headers=owner_headers)
    assert rejected.status_code == 422
    assert rejected.json()["outstanding"] == 10

    accepted = client.post(
        f"/purchases/{purchase['id']}/receive",
        json={"lines": lines, "overage_tolerance": 1},
        headers=owner_headers,
    )
    assert accepted.status_code == 200, accepted.text
    assert accepted.json()["status"] == "received"
    assert accepted.json()["items"][0]["quantity_received"] == 11


def test_stock_summary_over_http(client, tenant, owner_headers):
    assert _receive(client, tenant, owner_headers, quantity=10).status_code == 201

    rows = client.get("/inventory/summary", headers=owner_headers).json()
    by_code = {row["product_code"]: row for row in rows}
    assert by_code["RICE-5KG"]["on_hand"] == 10
    assert by_code["RICE-5KG"]["status"] == "good"
    assert by_code["OIL-1L"]["status"] == "low"

    detail = client.get(f"/inventory/summary/{tenant.product_a_id}", headers=owner_headers)
    assert detail.status_code == 200
    assert detail.json()["batch_numbers"] == ["B-0001"]
