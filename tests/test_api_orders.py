"""Order endpoint tests: checkout flow, ownership and status updates."""

from conftest import auth_headers


def order_body(*lines, payment_method="COD", **extra):
    items = [
        {"productId": product.id, "quantity": quantity, "price": product.price, "name": product.name}
        for product, quantity in lines
    ]
    body = {
        "items": items,
        "total": sum(product.price * quantity for product, quantity in lines),
        "paymentMethod": payment_method,
        "shippingAddress": "12 Mango St, Cebu City",
        "contactNumber": "09171234567"
    }
    body.update(extra)
    return body


class TestCheckout:
    def test_stock_runs_out(self, client, customer_headers, make_product):
        product = make_product(name="Mango Banana Boost", stock=5)

        first = client.post("/api/orders", json=order_body((product, 5)), headers=customer_headers)

        assert first.status_code == 201
        order = first.json()
        assert order["status"] == "PENDING"
        assert order["paymentMethod"] == "COD"
        assert order["items"][0]["quantity"] == 5
        stored = client.get(f"/api/products/{product.id}").json()
        assert (stored["stock"], stored["totalSold"]) == (0, 5)

        second = client.post("/api/orders", json=order_body((product, 1)), headers=customer_headers)

        assert second.status_code == 400
        assert second.json() == {
            "error": "Insufficient stock for product: Mango Banana Boost",
            "productId": product.id
        }

    def test_requires_authentication(self, client, make_product):
        product = make_product()

        assert client.post("/api/orders", json=order_body((product, 1))).status_code == 401

    def test_empty_items_rejected(self, client, customer_headers):
        response = client.post(
            "/api/orders",
            json={"items": [], "total": 0, "paymentMethod": "COD"},
            headers=customer_headers
        )

        assert response.status_code == 400

    def test_line_id_alias(self, client, customer_headers, make_product):
        product = make_product(stock=2)

        response = client.post("/api/orders", json={
            "items": [{"id": product.id, "quantity": 1, "price": 149}],
            "total": 149,
            "paymentMethod": "GCASH",
            "paymentProof": "/uploads/paymentProof-1-1.png"
        }, headers=customer_headers)

        assert response.status_code == 201
        assert response.json()["paymentProof"] == "/uploads/paymentProof-1-1.png"

    def test_customer_cannot_order_for_someone_else(self, client, customer, customer_headers, make_user, make_product):
        other = make_user(email="other@jusas.ph")
        product = make_product(stock=5)

        response = client.post(
            "/api/orders", json=order_body((product, 1), userId=other.id), headers=customer_headers
        )

        assert response.status_code == 201
        assert response.json()["userId"] == customer.id

    def test_admin_can_order_for_user(self, client, admin_headers, customer, make_product):
        product = make_product(stock=5)

        response = client.post(
            "/api/orders", json=order_body((product, 1), userId=customer.id), headers=admin_headers
        )

        assert response.json()["userId"] == customer.id


class TestOrderReads:
    def test_list_own_orders(self, client, make_user, make_product):
        product = make_product(stock=10)
        alice = auth_headers(make_user(email="alice@jusas.ph"))
        bob = auth_headers(make_user(email="bob@jusas.ph"))
        client.post("/api/orders", json=order_body((product, 1)), headers=alice)
        client.post("/api/orders", json=order_body((product, 2)), headers=bob)

        orders = client.get("/api/orders", headers=alice).json()

        assert len(orders) == 1
        assert orders[0]["items"][0]["quantity"] == 1

    def test_admin_lists_all_and_filters(self, client, admin_headers, make_user, make_product):
        product = make_product(stock=10)
        alice_user = make_user(email="alice@jusas.ph")
        client.post("/api/orders", json=order_body((product, 1)), headers=auth_headers(alice_user))
        client.post("/api/orders", json=order_body((product, 1)), headers=auth_headers(make_user(email="bob@jusas.ph")))

        assert len(client.get("/api/orders", headers=admin_headers).json()) == 2
        filtered = client.get("/api/orders", params={"userId": alice_user.id}, headers=admin_headers).json()
        assert [o["userId"] for o in filtered] == [alice_user.id]
        assert filtered[0]["user"]["email"] == "alice@jusas.ph"

    def test_foreign_order_forbidden(self, client, make_user, make_product):
        product = make_product(stock=10)
        alice = auth_headers(make_user(email="alice@jusas.ph"))
        bob = auth_headers(make_user(email="bob@jusas.ph"))
        order_id = client.post("/api/orders", json=order_body((product, 1)), headers=alice).json()["id"]

        assert client.get(f"/api/orders/{order_id}", headers=alice).status_code == 200
        response = client.get(f"/api/orders/{order_id}", headers=bob)
        assert response.status_code == 403
        assert response.json() == {"error": "Access denied: You can only view your own orders"}

    def test_missing_order(self, client, customer_headers):
        assert client.get("/api/orders/4040", headers=customer_headers).status_code == 404


class TestStatusEndpoint:
    def test_admin_moves_order_through_lifecycle(self, client, customer_headers, admin_headers, make_product):
        product = make_product(stock=5)
        order_id = client.post("/api/orders", json=order_body((product, 1)), headers=customer_headers).json()["id"]

        approved = client.put(f"/api/orders/{order_id}/status", json={"status": "APPROVED"}, headers=admin_headers)
        delivered = client.put(f"/api/orders/{order_id}/status", json={"status": "DELIVERED"}, headers=admin_headers)

        assert approved.json()["status"] == "APPROVED"
        assert delivered.json()["status"] == "DELIVERED"

    def test_cancel_needs_reason(self, client, customer_headers, admin_headers, make_product):
        product = make_product(stock=5)
        order_id = client.post("/api/orders", json=order_body((product, 1)), headers=customer_headers).json()["id"]

        missing = client.put(f"/api/orders/{order_id}/status", json={"status": "CANCELLED"}, headers=admin_headers)
        cancelled = client.put(
            f"/api/orders/{order_id}/status",
            json={"status": "CANCELLED", "declineReason": "Out of delivery area"},
            headers=admin_headers
        )

        assert missing.status_code == 400
        assert cancelled.status_code == 200
        assert cancelled.json()["declineReason"] == "Out of delivery area"
        # Cancelling does not return stock
        assert client.get(f"/api/products/{product.id}").json()["stock"] == 4

    def test_customer_cannot_update_status(self, client, customer_headers, make_product):
        product = make_product(stock=5)
        order_id = client.post("/api/orders", json=order_body((product, 1)), headers=customer_headers).json()["id"]

        response = client.put(f"/api/orders/{order_id}/status", json={"status": "APPROVED"}, headers=customer_headers)

        assert response.status_code == 403

    def test_unknown_status_value(self, client, customer_headers, admin_headers, make_product):
        product = make_product(stock=5)
        order_id = client.post("/api/orders", json=order_body((product, 1)), headers=customer_headers).json()["id"]

        response = client.put(f"/api/orders/{order_id}/status", json={"status": "SHIPPED"}, headers=admin_headers)

        assert response.status_code == 400
