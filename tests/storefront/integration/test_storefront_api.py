"""Integration tests for the storefront FastAPI routers."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from protean import current_domain
from protean.integrations.fastapi import register_exception_handlers
from storefront.api import admin_router, cart_router, checkout_router
from storefront.cart.cart import Cart
from storefront.order.order import Order
from storefront.payment.payment import Payment
from storefront.sync import get_channel


@pytest.fixture()
def client():
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(cart_router)
    app.include_router(checkout_router)
    app.include_router(admin_router)
    return TestClient(app)


def _cart_with_lines(client, owner_id="user-001"):
    cart_id = client.post("/carts", json={"owner_id": owner_id}).json()["cart_id"]
    client.post(f"/carts/{cart_id}/lines", json={"product_id": "prod-whisky", "unit_price": 12.99, "quantity": 2})
    client.post(f"/carts/{cart_id}/lines", json={"product_id": "prod-gin", "unit_price": 10.99})
    return cart_id


def _order_count():
    return current_domain.repository_for(Order)._dao.query.all().total


def _checkout(client, address, cart_id=None):
    cart_id = cart_id or _cart_with_lines(client)
    response = client.post(
        "/checkout",
        json={"cart_id": cart_id, "user_id": "user-001", "shipping_address": address},
    )
    assert response.status_code == 201
    return cart_id, response.json()


class TestCartEndpoints:
    def test_create_cart(self, client):
        response = client.post("/carts", json={"owner_id": "user-001"})
        assert response.status_code == 201
        cart = current_domain.repository_for(Cart).get(response.json()["cart_id"])
        assert cart.owner_id == "user-001"

    def test_get_cart_with_totals(self, client):
        cart_id = _cart_with_lines(client)

        response = client.get(f"/carts/{cart_id}")
        assert response.status_code == 200
        data = response.json()
        assert len(data["lines"]) == 2
        assert data["totals"]["subtotal"] == pytest.approx(36.97)
        assert data["totals"]["shipping"] == pytest.approx(5.99)
        assert data["totals"]["total"] == pytest.approx(36.97 * 1.08 + 5.99)
        assert data["totals"]["item_count"] == 3
        assert data["remaining_for_free_shipping"] == pytest.approx(50 - 36.97)

    def test_add_line_returns_line_id(self, client):
        cart_id = client.post("/carts", json={}).json()["cart_id"]
        response = client.post(f"/carts/{cart_id}/lines", json={"product_id": "prod-gin", "unit_price": 10.99})
        assert response.status_code == 201
        assert response.json()["line_id"]

    def test_add_line_with_zero_quantity_is_rejected(self, client):
        cart_id = client.post("/carts", json={}).json()["cart_id"]
        response = client.post(
            f"/carts/{cart_id}/lines", json={"product_id": "prod-gin", "unit_price": 10.99, "quantity": 0}
        )
        assert response.status_code == 400

    def test_set_quantity_to_zero_removes_line(self, client):
        cart_id = client.post("/carts", json={}).json()["cart_id"]
        line_id = client.post(
            f"/carts/{cart_id}/lines", json={"product_id": "prod-gin", "unit_price": 10.99}
        ).json()["line_id"]

        response = client.put(f"/carts/{cart_id}/lines/{line_id}", json={"quantity": 0})
        assert response.status_code == 200
        assert client.get(f"/carts/{cart_id}").json()["lines"] == []

    def test_remove_line(self, client):
        cart_id = client.post("/carts", json={}).json()["cart_id"]
        line_id = client.post(
            f"/carts/{cart_id}/lines", json={"product_id": "prod-gin", "unit_price": 10.99}
        ).json()["line_id"]

        response = client.delete(f"/carts/{cart_id}/lines/{line_id}")
        assert response.status_code == 200
        assert client.get(f"/carts/{cart_id}").json()["lines"] == []

    def test_clear_cart(self, client):
        cart_id = _cart_with_lines(client)
        response = client.delete(f"/carts/{cart_id}/lines")
        assert response.status_code == 200
        assert client.get(f"/carts/{cart_id}").json()["totals"]["item_count"] == 0

    def test_missing_cart(self, client):
        response = client.get("/carts/does-not-exist")
        assert response.status_code == 404


class TestCheckoutEndpoints:
    def test_checkout_creates_order_and_payment(self, client, address):
        cart_id, data = _checkout(client, address)

        assert data["payment_id"].startswith("PAY_")
        assert data["currency"] == "INR"
        assert data["amount"] == pytest.approx(36.97 * 1.08 + 5.99)
        assert data["expires_at"] is not None

        order = current_domain.repository_for(Order).get(data["order_id"])
        assert order.payment_id == data["payment_id"]
        payment = current_domain.repository_for(Payment).get(data["payment_id"])
        assert payment.order_id == data["order_id"]
        assert get_channel().latest(data["payment_id"]).status == "pending"

    def test_checkout_keeps_cart_until_payment_settles(self, client, address):
        cart_id, _ = _checkout(client, address)
        assert len(client.get(f"/carts/{cart_id}").json()["lines"]) == 2

    def test_checkout_of_empty_cart_is_rejected(self, client, address):
        cart_id = client.post("/carts", json={}).json()["cart_id"]
        response = client.post(
            "/checkout",
            json={"cart_id": cart_id, "user_id": "user-001", "shipping_address": address},
        )
        assert response.status_code == 400

    def test_checkout_with_taken_payment_reference_saves_nothing(self, client, address):
        _, first = _checkout(client, address)
        cart_id = _cart_with_lines(client)
        orders_before = _order_count()

        response = client.post(
            "/checkout",
            json={
                "cart_id": cart_id,
                "user_id": "user-001",
                "shipping_address": address,
                "payment_id": first["payment_id"],
            },
        )

        assert response.status_code == 400
        assert _order_count() == orders_before
        payment = current_domain.repository_for(Payment).get(first["payment_id"])
        assert payment.order_id == first["order_id"]

    def test_checkout_with_fresh_payment_reference(self, client, address):
        cart_id = _cart_with_lines(client)
        response = client.post(
            "/checkout",
            json={
                "cart_id": cart_id,
                "user_id": "user-001",
                "shipping_address": address,
                "payment_id": "PAY_1718000000000_fresh0000",
            },
        )

        assert response.status_code == 201
        assert response.json()["payment_id"] == "PAY_1718000000000_fresh0000"

    def test_get_order(self, client, address):
        _, data = _checkout(client, address)

        response = client.get(f"/orders/{data['order_id']}")
        assert response.status_code == 200
        order = response.json()
        assert order["status"] == "pending"
        assert order["payment_status"] == "pending"
        assert order["shipping_address"]["city"] == "Bengaluru"
        assert len(order["lines"]) == 2

    def test_cancel_pending_order(self, client, address):
        _, data = _checkout(client, address)

        response = client.post(f"/orders/{data['order_id']}/cancel", json={"reason": "Changed my mind"})
        assert response.status_code == 200
        order = client.get(f"/orders/{data['order_id']}").json()
        assert order["status"] == "cancelled"
        assert order["cancellation_reason"] == "Changed my mind"

    def test_retry_failed_payment(self, client, address):
        _, data = _checkout(client, address)
        client.put(f"/admin/payments/{data['payment_id']}/status", json={"status": "failed"})

        response = client.post(f"/orders/{data['order_id']}/payments", json={})
        assert response.status_code == 201
        new_payment_id = response.json()["payment_id"]
        assert new_payment_id != data["payment_id"]

        order = client.get(f"/orders/{data['order_id']}").json()
        assert order["payment_id"] == new_payment_id
        assert order["payment_status"] == "pending"

    def test_payment_before_order_then_link(self, client):
        response = client.post("/payments", json={"amount": 45.92, "user_id": "user-001"})
        assert response.status_code == 201
        payment = response.json()
        assert payment["order_id"] == "temp"

        response = client.put(f"/payments/{payment['payment_id']}/order", json={"order_id": "ord-123"})
        assert response.status_code == 200
        assert response.json()["order_id"] == "ord-123"

    def test_get_payment(self, client, address):
        _, data = _checkout(client, address)
        response = client.get(f"/payments/{data['payment_id']}")
        assert response.status_code == 200
        assert response.json()["status"] == "pending"

    def test_missing_payment(self, client):
        assert client.get("/payments/PAY_missing").status_code == 404


class TestAdminEndpoints:
    def test_confirm_payment(self, client, address):
        _, data = _checkout(client, address)

        response = client.put(f"/admin/payments/{data['payment_id']}/status", json={"status": "completed"})
        assert response.status_code == 200
        assert response.json()["status"] == "completed"

        order = client.get(f"/orders/{data['order_id']}").json()
        assert order["payment_status"] == "completed"
        assert order["status"] == "paid"
        assert get_channel().latest(data["payment_id"]).status == "completed"

    def test_write_to_terminal_payment_is_ignored(self, client, address):
        _, data = _checkout(client, address)
        client.put(f"/admin/payments/{data['payment_id']}/status", json={"status": "completed"})

        response = client.put(f"/admin/payments/{data['payment_id']}/status", json={"status": "failed"})
        assert response.status_code == 200
        assert response.json()["status"] == "completed"

    def test_unknown_payment_status_is_rejected(self, client, address):
        _, data = _checkout(client, address)
        response = client.put(f"/admin/payments/{data['payment_id']}/status", json={"status": "refunded"})
        assert response.status_code == 400

    def test_order_status_moves_forward(self, client, address):
        _, data = _checkout(client, address)
        client.put(f"/admin/payments/{data['payment_id']}/status", json={"status": "completed"})

        response = client.put(f"/admin/orders/{data['order_id']}/status", json={"status": "preparing"})
        assert response.status_code == 200
        assert response.json()["status"] == "preparing"

    def test_skipping_order_steps_is_rejected(self, client, address):
        _, data = _checkout(client, address)
        response = client.put(f"/admin/orders/{data['order_id']}/status", json={"status": "delivered"})
        assert response.status_code == 400

    def test_order_payment_mirror(self, client, address):
        _, data = _checkout(client, address)
        response = client.put(
            f"/admin/orders/{data['order_id']}/payment-status", json={"payment_status": "processing"}
        )
        assert response.status_code == 200
        assert response.json()["status"] == "processing"

        payment = client.get(f"/payments/{data['payment_id']}").json()
        assert payment["status"] == "pending"

    def test_missing_order(self, client):
        response = client.put("/admin/orders/missing/status", json={"status": "paid"})
        assert response.status_code == 404
