"""Integration tests for the marketplace HTTP API."""

import pytest
from marketplace.api.auth import Actor, InMemorySessionStore
from marketplace.cart.cart import Cart
from marketplace.order.order import Order
from protean import current_domain


def auth(token="buyer-token"):
    return {"Authorization": f"Bearer {token}"}


def _checkout(client, seed, lines=((10.0, 2, 5),), shipping_method="standard"):
    sku_ids = [seed.sku(price=price, stock=stock) for price, _, stock in lines]
    cart_id = None
    for sku_id, (_, quantity, _) in zip(sku_ids, lines, strict=True):
        response = client.post(
            "/cart/items",
            json={"sku_id": sku_id, "quantity": quantity, "cart_id": cart_id},
            headers=auth(),
        )
        assert response.status_code == 201
        cart_id = response.json()["data"]["cartId"]

    address_id = seed.address(owner_id="buyer-1")
    response = client.post(
        "/checkout",
        json={
            "cart_id": cart_id,
            "shipping_address_id": address_id,
            "billing_address_id": address_id,
            "payment_method": "card",
            "shipping_method": shipping_method,
        },
        headers=auth(),
    )
    return response, sku_ids, cart_id


class TestEnvelope:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_success_envelope_uses_camel_case(self, client, seed):
        response, _, _ = _checkout(client, seed)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["total"] == 27.99
        assert body["data"]["status"] == "PENDING"
        assert {"orderId", "orderNumber", "paymentId", "estimatedDelivery"} <= body["data"].keys()

    def test_error_envelope(self, client):
        response = client.get("/orders/missing", headers=auth())

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "NOT_FOUND"
        assert body["error"]["message"] == "Resource not found"

    @pytest.mark.parametrize(
        "method, path",
        [
            ("get", "/orders/missing"),
            ("get", "/orders/missing/history"),
            ("get", "/cart/missing"),
            ("post", "/payments/missing/authorize"),
        ],
    )
    def test_unknown_ids_are_404(self, client, method, path):
        response = getattr(client, method)(path, headers=auth("admin-token"))

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_request_validation_is_400(self, client):
        response = client.post("/cart/items", json={"quantity": 0}, headers=auth())

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestAuthentication:
    def test_missing_token(self, client):
        response = client.get("/orders/any")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    def test_unknown_token(self, client):
        response = client.get("/orders/any", headers=auth("forged"))
        assert response.status_code == 401

    def test_expired_session(self):
        now = [0.0]
        store = InMemorySessionStore(ttl_seconds=10, clock=lambda: now[0])
        store.set("token", Actor("buyer-1"))

        assert store.get("token") == Actor("buyer-1")
        now[0] = 10.0
        assert store.get("token") is None


class TestCartEndpoints:
    def test_add_then_view(self, client, seed):
        sku_id = seed.sku(price=4.25, stock=5)

        added = client.post("/cart/items", json={"sku_id": sku_id, "quantity": 2}, headers=auth()).json()["data"]
        response = client.get(f"/cart/{added['cartId']}", headers=auth())

        assert response.status_code == 200
        cart = response.json()["data"]
        assert cart["subtotal"] == 8.5
        assert cart["itemCount"] == 2
        assert cart["items"][0]["priceAt"] == 4.25

    def test_add_beyond_stock_is_409(self, client, seed):
        sku_id = seed.sku(stock=1)

        response = client.post("/cart/items", json={"sku_id": sku_id, "quantity": 2}, headers=auth())

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "INSUFFICIENT_STOCK"
        assert error["details"]["available"] == 1

    def test_other_buyers_cart_is_forbidden(self, client, seed):
        sku_id = seed.sku(stock=5)
        cart_id = client.post("/cart/items", json={"sku_id": sku_id}, headers=auth()).json()["data"]["cartId"]

        response = client.get(f"/cart/{cart_id}", headers=auth("other-buyer-token"))
        assert response.status_code == 403

    def test_update_and_remove(self, client, seed):
        sku_id = seed.sku(stock=5)
        added = client.post("/cart/items", json={"sku_id": sku_id}, headers=auth()).json()["data"]
        path = f"/cart/{added['cartId']}/items/{added['itemId']}"

        updated = client.put(path, json={"quantity": 3}, headers=auth())
        assert updated.json()["data"]["itemCount"] == 3

        removed = client.delete(path, headers=auth())
        assert removed.json()["data"]["items"] == []


class TestCheckoutEndpoint:
    def test_short_stock_is_409_and_nothing_changes(self, client, seed):
        sku_a = seed.sku(price=10.0, stock=5)
        sku_b = seed.sku(price=5.0, stock=0)
        cart_id = seed.cart([(sku_a, 2), (sku_b, 1)])
        address_id = seed.address()

        response = client.post(
            "/checkout",
            json={
                "cart_id": cart_id,
                "shipping_address_id": address_id,
                "billing_address_id": address_id,
                "payment_method": "card",
            },
            headers=auth(),
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INSUFFICIENT_STOCK"
        assert seed.stock(sku_a) == 5
        assert current_domain.repository_for(Order)._dao.query.all().items == []
        assert len(current_domain.repository_for(Cart).get(cart_id).items) == 2

    def test_unknown_shipping_method_is_400(self, client, seed):
        response, sku_ids, _ = _checkout(client, seed, shipping_method="drone")

        assert response.status_code == 400
        assert seed.stock(sku_ids[0]) == 5


class TestOrderEndpoints:
    @pytest.fixture
    def order(self, client, seed):
        response, sku_ids, _ = _checkout(client, seed)
        return {**response.json()["data"], "sku_ids": sku_ids}

    def test_buyer_sees_order(self, client, order):
        response = client.get(f"/orders/{order['orderId']}", headers=auth())

        data = response.json()["data"]
        assert data["orderNumber"] == order["orderNumber"]
        assert data["subtotal"] + data["shippingCost"] + data["taxAmount"] == pytest.approx(data["total"])

    def test_other_buyer_is_forbidden(self, client, order):
        response = client.get(f"/orders/{order['orderId']}", headers=auth("other-buyer-token"))
        assert response.status_code == 403

    def test_staff_of_other_store_is_forbidden(self, client, order):
        response = client.get(f"/orders/{order['orderId']}", headers=auth("other-staff-token"))
        assert response.status_code == 403

    def test_invalid_transition_is_409(self, client, order):
        response = client.post(
            f"/orders/{order['orderId']}/status",
            json={"status": "DELIVERED"},
            headers=auth("staff-token"),
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_TRANSITION"

    def test_cancel_restocks_and_records_history(self, client, seed, order):
        response = client.post(
            f"/orders/{order['orderId']}/status",
            json={"status": "CANCELLED", "notes": "Out of business"},
            headers=auth("staff-token"),
        )

        assert response.status_code == 200
        assert response.json()["data"]["previousStatus"] == "PENDING"
        assert seed.stock(order["sku_ids"][0]) == 5

        history = client.get(f"/orders/{order['orderId']}/history", headers=auth()).json()["data"]
        assert [entry["toStatus"] for entry in history] == ["PENDING", "CANCELLED"]
        assert history[-1]["actor"] == "staff-1"
        assert [entry["restockType"] for entry in history] == [None, "CANCELLATION"]

    def test_payment_lifecycle(self, client, order):
        payment_id = order["paymentId"]

        authorized = client.post(f"/payments/{payment_id}/authorize", headers=auth())
        assert authorized.json()["data"]["status"] == "AUTHORIZED"

        buyer_capture = client.post(f"/payments/{payment_id}/capture", headers=auth())
        assert buyer_capture.status_code == 403

        captured = client.post(f"/payments/{payment_id}/capture", headers=auth("staff-token"))
        assert captured.json()["data"]["capturedAmount"] == 27.99

        too_much = client.post(f"/payments/{payment_id}/refund", json={"amount": 30.0}, headers=auth("staff-token"))
        assert too_much.status_code == 400
        assert too_much.json()["error"]["code"] == "INVALID_AMOUNT"

        refund = client.post(
            f"/payments/{payment_id}/refund",
            json={"amount": 5.0},
            headers={**auth("staff-token"), "Idempotency-Key": "refund-1"},
        )
        replay = client.post(
            f"/payments/{payment_id}/refund",
            json={"amount": 5.0},
            headers={**auth("staff-token"), "Idempotency-Key": "refund-1"},
        )
        assert refund.json()["data"]["refundId"] == replay.json()["data"]["refundId"]

        payments = client.get(f"/orders/{order['orderId']}/payments", headers=auth()).json()["data"]
        assert payments[0]["status"] == "PARTIALLY_REFUNDED"
        assert payments[0]["totalRefunded"] == 5.0

    def test_shipping_flow(self, client, order):
        created = client.post(
            "/shipments",
            json={"order_id": order["orderId"], "carrier": "UPS"},
            headers=auth("staff-token"),
        )
        assert created.status_code == 201
        shipment_id = created.json()["data"]["shipmentId"]

        client.post(f"/shipments/{shipment_id}/dispatch", json={"tracking_code": "1Z1"}, headers=auth("staff-token"))
        delivered = client.post(f"/shipments/{shipment_id}/deliver", headers=auth("staff-token"))
        assert delivered.json()["data"]["status"] == "DELIVERED"

        data = client.get(f"/orders/{order['orderId']}", headers=auth()).json()["data"]
        assert data["status"] == "DELIVERED"
        assert data["trackingNumber"] == "1Z1"

        item_id = data["items"][0]["id"]
        requested = client.post(
            "/returns",
            json={"order_id": order["orderId"], "order_item_id": item_id, "quantity": 1},
            headers=auth(),
        )
        return_id = requested.json()["data"]["returnId"]
        approved = client.post(f"/returns/{return_id}/approve", headers=auth("staff-token"))
        assert approved.json()["data"]["status"] == "APPROVED"


class TestInventoryEndpoints:
    def test_low_stock_report(self, client, seed):
        low = seed.sku(stock=2)
        seed.sku(stock=50)

        response = client.get("/inventory/low-stock", params={"threshold": 5}, headers=auth("staff-token"))

        assert response.status_code == 200
        assert response.json()["data"] == [{"skuId": low, "currentStock": 2, "threshold": 5}]

    def test_negative_threshold_is_400(self, client):
        response = client.get("/inventory/low-stock", params={"threshold": -1}, headers=auth("admin-token"))
        assert response.status_code == 400

    def test_buyers_cannot_see_stock(self, client):
        response = client.get("/inventory/low-stock", headers=auth())
        assert response.status_code == 403

    def test_open_and_adjust(self, client, seed):
        sku_id = seed.sku()

        opened = client.post(
            "/inventory",
            json={"sku_id": sku_id, "location": "warehouse", "initial_stock": 4},
            headers=auth("staff-token"),
        )
        inventory_id = opened.json()["data"]["inventoryId"]
        adjusted = client.post(
            f"/inventory/{inventory_id}/adjust",
            json={"quantity_change": -1, "note": "Damaged in transit"},
            headers=auth("staff-token"),
        )

        assert adjusted.json()["data"]["stock"] == 3
        stock = client.get(f"/inventory/skus/{sku_id}", headers=auth("staff-token")).json()["data"]
        assert stock["totalStock"] == 3

    def test_staff_of_other_store_cannot_adjust(self, client, seed):
        sku_id = seed.sku(stock=4)
        response = client.post(
            "/inventory",
            json={"sku_id": sku_id, "location": "overflow"},
            headers=auth("other-staff-token"),
        )
        assert response.status_code == 403
