"""Cart endpoint tests."""

from conftest import auth_headers


def cart_quantities(client, headers):
    cart = client.get("/api/cart", headers=headers).json()
    return {item["productId"]: item["quantity"] for item in cart["items"]}


class TestCartEndpoints:
    def test_requires_authentication(self, client):
        assert client.get("/api/cart").status_code == 401

    def test_empty_cart(self, client, customer, customer_headers):
        response = client.get("/api/cart", headers=customer_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["userId"] == customer.id
        assert data["items"] == []
        assert data["total"] == 0

    def test_add_and_read(self, client, customer_headers, make_product):
        product = make_product(name="Berry Blast", price=159)

        client.post("/api/cart/items", json={"productId": product.id, "quantity": 2}, headers=customer_headers)
        client.post("/api/cart/items", json={"productId": product.id, "quantity": 1}, headers=customer_headers)

        cart = client.get("/api/cart", headers=customer_headers).json()
        assert len(cart["items"]) == 1
        item = cart["items"][0]
        assert item["quantity"] == 3
        assert item["subtotal"] == 477
        assert item["product"]["name"] == "Berry Blast"
        assert cart["total"] == 477

    def test_add_rejects_zero_quantity(self, client, customer_headers, make_product):
        product = make_product()

        response = client.post(
            "/api/cart/items", json={"productId": product.id, "quantity": 0}, headers=customer_headers
        )

        assert response.status_code == 400

    def test_add_unknown_product(self, client, customer_headers):
        response = client.post("/api/cart/items", json={"productId": 555, "quantity": 1}, headers=customer_headers)

        assert response.status_code == 404

    def test_update_and_remove_by_cart_item_id(self, client, customer_headers, make_product):
        product = make_product()
        client.post("/api/cart/items", json={"productId": product.id, "quantity": 1}, headers=customer_headers)
        cart_item_id = client.get("/api/cart", headers=customer_headers).json()["items"][0]["cartItemId"]

        client.put(f"/api/cart/items/{cart_item_id}", json={"quantity": 4}, headers=customer_headers)
        assert cart_quantities(client, customer_headers) == {product.id: 4}

        client.put(f"/api/cart/items/{cart_item_id}", json={"quantity": 0}, headers=customer_headers)
        assert cart_quantities(client, customer_headers) == {}

    def test_delete_line(self, client, customer_headers, make_product):
        product = make_product()
        client.post("/api/cart/items", json={"productId": product.id, "quantity": 1}, headers=customer_headers)
        cart_item_id = client.get("/api/cart", headers=customer_headers).json()["items"][0]["cartItemId"]

        assert client.delete(f"/api/cart/items/{cart_item_id}", headers=customer_headers).status_code == 200
        assert cart_quantities(client, customer_headers) == {}

    def test_foreign_line_is_forbidden(self, client, make_user, make_product):
        owner = auth_headers(make_user(email="owner@jusas.ph"))
        intruder = auth_headers(make_user(email="intruder@jusas.ph"))
        product = make_product()
        client.post("/api/cart/items", json={"productId": product.id, "quantity": 1}, headers=owner)
        cart_item_id = client.get("/api/cart", headers=owner).json()["items"][0]["cartItemId"]

        update = client.put(f"/api/cart/items/{cart_item_id}", json={"quantity": 9}, headers=intruder)
        delete = client.delete(f"/api/cart/items/{cart_item_id}", headers=intruder)

        assert update.status_code == 403
        assert update.json() == {"error": "Unauthorized access to cart item"}
        assert delete.status_code == 403
        assert cart_quantities(client, owner) == {product.id: 1}

    def test_missing_line(self, client, customer_headers):
        response = client.put("/api/cart/items/31337", json={"quantity": 1}, headers=customer_headers)

        assert response.status_code == 404

    def test_merge(self, client, customer_headers, make_product):
        a = make_product(name="A")
        b = make_product(name="B")
        client.post("/api/cart/items", json={"productId": a.id, "quantity": 2}, headers=customer_headers)

        response = client.post("/api/cart/merge", json={
            "guestCart": [{"productId": a.id, "quantity": 3}, {"productId": b.id, "quantity": 1}]
        }, headers=customer_headers)

        assert response.status_code == 200
        assert response.json()["mergedItems"] == 2
        assert cart_quantities(client, customer_headers) == {a.id: 5, b.id: 1}

    def test_clear(self, client, customer_headers, make_product):
        client.post("/api/cart/items", json={"productId": make_product().id, "quantity": 1}, headers=customer_headers)

        assert client.delete("/api/cart", headers=customer_headers).status_code == 200
        assert cart_quantities(client, customer_headers) == {}
