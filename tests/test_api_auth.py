"""Identity endpoint tests: register, login, session gate, logout."""

from conftest import PASSWORD, identity_of
from storefront.auth import create_access_token


class TestRegister:
    def test_register_creates_customer(self, client):
        response = client.post("/api/auth/register", json={
            "email": "New.Customer@Jusas.ph",
            "password": "mango123",
            "name": "Maria"
        })

        assert response.status_code == 201
        data = response.json()
        assert data["user"]["email"] == "new.customer@jusas.ph"
        assert data["user"]["role"] == "customer"
        assert "password" not in data["user"]
        assert "token" not in data

    def test_duplicate_email(self, client, customer):
        response = client.post("/api/auth/register", json={
            "email": customer.email,
            "password": "mango123",
            "name": "Again"
        })

        assert response.status_code == 400
        assert response.json() == {"error": "Email already exists"}

    def test_missing_fields(self, client):
        response = client.post("/api/auth/register", json={"email": "x@jusas.ph"})

        assert response.status_code == 400
        assert "error" in response.json()


class TestLogin:
    def test_invalid_credentials(self, client, customer):
        response = client.post("/api/auth/login", json={"email": customer.email, "password": "nope"})

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid credentials"}

    def test_unknown_email(self, client):
        response = client.post("/api/auth/login", json={"email": "ghost@jusas.ph", "password": PASSWORD})

        assert response.status_code == 401

    def test_login_sets_cookie_and_returns_token(self, client, customer):
        response = client.post("/api/auth/login", json={"email": customer.email, "password": PASSWORD})

        assert response.status_code == 200
        data = response.json()
        assert data["user"]["id"] == customer.id
        assert data["token"]
        assert data["mergedItems"] == 0
        set_cookie = response.headers["set-cookie"]
        assert set_cookie.startswith("token=")
        assert "HttpOnly" in set_cookie
        assert "samesite=lax" in set_cookie.lower()

        # Cookie alone authenticates follow-up requests
        me = client.get("/api/auth/me")
        assert me.status_code == 200
        assert me.json()["user"]["email"] == customer.email

    def test_bearer_token_from_body(self, client, customer):
        token = client.post(
            "/api/auth/login", json={"email": customer.email, "password": PASSWORD}
        ).json()["token"]
        client.cookies.clear()

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200

    def test_login_merges_guest_cart_once(self, client, customer, make_product):
        mango = make_product(name="Mango")
        berry = make_product(name="Berry")

        response = client.post("/api/auth/login", json={
            "email": customer.email,
            "password": PASSWORD,
            "guestCart": [
                {"productId": mango.id, "quantity": 2},
                {"productId": berry.id, "quantity": 1}
            ]
        })

        assert response.json()["mergedItems"] == 2
        cart = client.get("/api/cart").json()
        assert {i["productId"]: i["quantity"] for i in cart["items"]} == {mango.id: 2, berry.id: 1}

    def test_logout_clears_session(self, client, customer):
        client.post("/api/auth/login", json={"email": customer.email, "password": PASSWORD})

        assert client.post("/api/auth/logout").status_code == 200
        assert client.get("/api/auth/me").status_code == 401


class TestSessionGate:
    def test_missing_token(self, client):
        response = client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json() == {"error": "Access denied"}

    def test_forged_token(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer not.a.jwt"})

        assert response.status_code == 403
        assert response.json() == {"error": "Invalid token"}

    def test_expired_token(self, client, customer):
        token = create_access_token(identity_of(customer), expires_minutes=-5)

        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 403
