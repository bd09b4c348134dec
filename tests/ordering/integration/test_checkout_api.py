"""Integration tests for the checkout endpoints via TestClient."""

from ordering.cart.cart import cart_for_user
from ordering.checkout.payment import get_gateway
from ordering.order.queries import list_orders
from protean import current_domain


def _fill_cart(client, headers, product, quantity=1):
    response = client.post(
        "/cart/items",
        json={"product_id": product.id, "quantity": quantity, "colour": product.colour, "size": product.size},
        headers=headers,
    )
    assert response.status_code == 201


class TestCheckoutSummary:
    def test_summary(self, client, auth, make_product):
        _fill_cart(client, auth("user-1"), make_product(price=30.0), 2)

        response = client.post("/checkout", json={"delivery_option": "standard"}, headers=auth("user-1"))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["subtotal"] == 60.0
        assert data["tax"] == 6.0
        assert data["shipping_cost"] == 10.0
        assert data["total"] == 76.0
        assert data["free_shipping_note"] == "Add $40.00 more to get free shipping!"
        assert data["payment"]["client_secret"].startswith(data["payment"]["payment_id"])

    def test_summary_without_body_uses_standard_delivery(self, client, auth, make_product):
        _fill_cart(client, auth("user-1"), make_product(price=60.0), 2)

        data = client.post("/checkout", headers=auth("user-1")).json()["data"]

        assert data["delivery_option"] == "standard"
        assert data["shipping_cost"] == 0.0
        assert data["free_shipping_note"] is None

    def test_empty_cart(self, client, auth):
        response = client.post("/checkout", json={}, headers=auth("user-1"))

        assert response.status_code == 400
        assert response.json()["error"] == "Empty Cart"


class TestCompleteCheckout:
    def test_complete_checkout(self, client, auth, make_product, address, reload):
        product = make_product(total_stock=5)
        _fill_cart(client, auth("user-1"), product, 2)

        response = client.post("/checkout/complete", json={"shipping_address": address}, headers=auth("user-1"))

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Order placed successfully"
        assert body["data"]["status"] == "pending"
        assert body["data"]["inventory_status"] == "reserved"
        assert body["data"]["order_number"].startswith("ORD")
        assert body["data"]["shipping_address"]["city"] == "Springfield"
        assert reload(product).sold_count == 2
        assert len(cart_for_user("user-1").items) == 0

    def test_complete_with_verified_payment(self, client, auth, make_product, address):
        _fill_cart(client, auth("user-1"), make_product(), 1)
        payment_id = client.post("/checkout", headers=auth("user-1")).json()["data"]["payment"]["payment_id"]

        response = client.post(
            "/checkout/complete",
            json={"shipping_address": address, "payment_method": "stripe", "payment_id": payment_id},
            headers=auth("user-1"),
        )

        assert response.status_code == 201
        payment = response.json()["data"]["payment"]
        assert payment["status"] == "completed"
        assert payment["transaction_id"] == payment_id

    def test_declined_payment(self, client, auth, make_product, address):
        _fill_cart(client, auth("user-1"), make_product(), 1)
        payment_id = client.post("/checkout", headers=auth("user-1")).json()["data"]["payment"]["payment_id"]
        get_gateway().configure(should_succeed=False)

        response = client.post(
            "/checkout/complete",
            json={"shipping_address": address, "payment_id": payment_id},
            headers=auth("user-1"),
        )

        assert response.status_code == 400
        assert response.json()["details"]["payment"]
        assert list_orders(user_id="user-1").total == 0

    def test_stock_conflict(self, client, auth, make_product, address, reload):
        product = make_product(total_stock=3)
        _fill_cart(client, auth("user-1"), product, 3)
        product = reload(product)
        product.adjust_stock(1)
        current_domain.repository_for(type(product)).add(product)

        response = client.post("/checkout/complete", json={"shipping_address": address}, headers=auth("user-1"))

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "Stock Issues"
        assert body["details"][0]["product_id"] == str(product.id)
        assert body["details"][0]["available"] == 1
        assert len(cart_for_user("user-1").items) == 1

    def test_missing_address(self, client, auth, make_product):
        _fill_cart(client, auth("user-1"), make_product(), 1)

        response = client.post("/checkout/complete", json={}, headers=auth("user-1"))

        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "shipping_address"

    def test_checkout_is_throttled(self, client, auth, make_product, address, tight_limiter):
        product = make_product(total_stock=20)
        statuses = []
        for _ in range(3):
            _fill_cart(client, auth("user-1"), product, 1)
            response = client.post(
                "/checkout/complete", json={"shipping_address": address}, headers=auth("user-1")
            )
            statuses.append(response.status_code)

        assert statuses == [201, 201, 429]
        assert int(response.headers["Retry-After"]) > 0
        assert response.json()["error"] == "Too Many Requests"

    def test_throttle_is_per_user(self, client, auth, make_product, address, tight_limiter):
        product = make_product(total_stock=20)
        for user in ("user-1", "user-1", "user-2"):
            _fill_cart(client, auth(user), product, 1)
            response = client.post("/checkout/complete", json={"shipping_address": address}, headers=auth(user))
            assert response.status_code == 201
