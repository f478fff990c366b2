"""The three services wired together in-process, on SQLite."""

from contextlib import asynccontextmanager

import pytest

from fulfillment.common.errors import StoreError


def order_body(quantity: int = 3, line_items=None) -> dict:
    return {
        "userId": "u1",
        "amount": 50.0,
        "lineItems": line_items
        if line_items is not None
        else [{"productId": "p1", "quantity": quantity, "price": 10}],
    }


async def place_order(cluster, body: dict) -> dict:
    resp = await cluster.order_http.post("/api/orders", json=body)
    assert resp.status_code == 201
    order = resp.json()
    assert order["status"] == "pending"
    await cluster.runner.wait(order["id"])
    return order


async def fetch(cluster, order_id: str) -> dict:
    resp = await cluster.order_http.get(f"/api/orders/{order_id}")
    assert resp.status_code == 200
    return resp.json()


async def test_order_completes_and_stock_is_taken(cluster):
    await cluster.inventory_store.seed("p1", 5)

    order = await place_order(cluster, order_body())

    final = await fetch(cluster, order["id"])
    assert final["status"] == "completed"
    assert final["userId"] == "u1"
    assert final["amount"] == 50.0
    assert final["lineItems"] == [{"productId": "p1", "quantity": 3, "price": 10.0}]
    assert await cluster.inventory_store.get("p1") == 2

    payments = (await cluster.payment_http.get(f"/api/payments/{order['id']}")).json()
    assert [p["status"] for p in payments] == ["completed"]


async def test_payment_failure_restores_stock(cluster, monkeypatch):
    await cluster.inventory_store.seed("p1", 5)

    @asynccontextmanager
    async def broken_transaction():
        raise StoreError("Payment transaction failed: database is down")
        yield

    monkeypatch.setattr(cluster.payment_store, "transaction", broken_transaction)

    order = await place_order(cluster, order_body())

    assert (await fetch(cluster, order["id"]))["status"] == "failed"
    assert await cluster.inventory_store.get("p1") == 5


async def test_insufficient_stock_fails_without_side_effects(cluster):
    await cluster.inventory_store.seed("p1", 2)

    order = await place_order(cluster, order_body(quantity=3))

    assert (await fetch(cluster, order["id"]))["status"] == "failed"
    assert await cluster.inventory_store.get("p1") == 2
    assert await cluster.payment_store.list_for_order(order["id"]) == []


async def test_unknown_product_fails_order(cluster):
    order = await place_order(
        cluster, order_body(line_items=[{"productId": "ghost", "quantity": 1, "price": 1}])
    )

    assert (await fetch(cluster, order["id"]))["status"] == "failed"


async def test_empty_line_items_rejected(cluster):
    resp = await cluster.order_http.post("/api/orders", json=order_body(line_items=[]))

    assert resp.status_code == 400
    assert "error" in resp.json()
    assert (await cluster.order_http.get("/api/orders")).json() == []


async def test_unknown_order_is_404(cluster):
    resp = await cluster.order_http.get("/api/orders/does-not-exist")

    assert resp.status_code == 404
    assert resp.json() == {"error": "Order does-not-exist not found"}


async def test_health_reports_in_flight_sagas(cluster):
    resp = await cluster.order_http.get("/health")

    assert resp.json() == {"status": "ok", "service": "order-service", "sagas_in_flight": 0}


async def test_created_order_matches_stored_order(cluster):
    await cluster.inventory_store.seed("p1", 5)
    body = order_body(line_items=[{"productId": "p1", "quantity": 1, "price": 10.01}])
    body["amount"] = 10.01

    order = await place_order(cluster, body)

    final = await fetch(cluster, order["id"])
    assert final["amount"] == order["amount"] == 10.01
    assert final["lineItems"] == order["lineItems"]
    payments = (await cluster.payment_http.get(f"/api/payments/{order['id']}")).json()
    assert [p["amount"] for p in payments] == [10.01]


@pytest.mark.parametrize(
    "field,value",
    [
        ("amount", 10.005),
        ("amount", 10_000_000_000),
        ("userId", "u" * 65),
        ("price", 1.239),
        ("productId", "p" * 65),
    ],
)
async def test_values_that_do_not_fit_the_store_are_rejected(cluster, field, value):
    body = order_body()
    if field in ("price", "productId"):
        body["lineItems"][0][field] = value
    else:
        body[field] = value

    resp = await cluster.order_http.post("/api/orders", json=body)

    assert resp.status_code == 400
    assert "error" in resp.json()
    assert (await cluster.order_http.get("/api/orders")).json() == []
