"""
Storefront API client.

Presents one cart to callers whether or not they are logged in. Before
login the cart lives in a local JSON file; after login every change goes
to the server and every read comes back from it.
"""
import json
import logging
import mimetypes
import os
from typing import Any, Dict, List, Optional

import httpx
from pydantic import TypeAdapter

from storefront.schemas import CamelModel

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = float(os.getenv("STOREFRONT_CLIENT_TIMEOUT", "30.0"))


class StorefrontAPIError(Exception):
    """A storefront call failed; carries the HTTP status and server message."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


class CartLine(CamelModel):
    product_id: int
    quantity: int
    name: Optional[str] = None
    price: Optional[float] = None
    cart_item_id: Optional[int] = None

    @property
    def subtotal(self) -> float:
        return (self.price or 0) * self.quantity


class CartView(CamelModel):
    items: List[CartLine] = []
    total: float = 0

    def quantity_of(self, product_id: int) -> int:
        return sum(line.quantity for line in self.items if line.product_id == product_id)


_lines_adapter = TypeAdapter(List[CartLine])


class GuestCart:
    """Anonymous cart persisted to a JSON file (in memory when no path is given)."""

    def __init__(self, path: Optional[str] = None):
        self.path = path
        self.lines: List[CartLine] = []
        if path and os.path.exists(path):
            with open(path, "rb") as f:
                self.lines = _lines_adapter.validate_json(f.read())

    def _save(self) -> None:
        if not self.path:
            return
        with open(self.path, "w") as f:
            json.dump([line.model_dump(by_alias=True) for line in self.lines], f)

    def find(self, product_id: int) -> Optional[CartLine]:
        return next((line for line in self.lines if line.product_id == product_id), None)

    def add(self, product_id: int, quantity: int, name: Optional[str] = None, price: Optional[float] = None) -> None:
        line = self.find(product_id)
        if line is None:
            self.lines.append(CartLine(product_id=product_id, quantity=quantity, name=name, price=price))
        else:
            line.quantity += quantity
        self._save()

    def set_quantity(self, product_id: int, quantity: int) -> None:
        """Set a line's quantity; zero or less removes it."""
        if quantity <= 0:
            self.remove(product_id)
            return
        line = self.find(product_id)
        if line is None:
            self.lines.append(CartLine(product_id=product_id, quantity=quantity))
        else:
            line.quantity = quantity
        self._save()

    def remove(self, product_id: int) -> None:
        self.lines = [line for line in self.lines if line.product_id != product_id]
        self._save()

    def clear(self) -> None:
        self.lines = []
        self._save()

    def view(self) -> CartView:
        return CartView(
            items=[line.model_copy() for line in self.lines],
            total=round(sum(line.subtotal for line in self.lines), 2)
        )


class StorefrontClient:
    """
    Cart and checkout client over the storefront REST API.

    ``add_item``, ``update_quantity``, ``remove_item`` and ``get_cart`` take
    the same arguments in both modes and are keyed by product id.
    """

    def __init__(self, http_client: httpx.Client, guest_cart: Optional[GuestCart] = None):
        self.http = http_client
        self.guest_cart = guest_cart if guest_cart is not None else GuestCart()
        self.user: Optional[Dict[str, Any]] = None

    @classmethod
    def connect(cls, base_url: str, guest_cart_path: Optional[str] = None) -> "StorefrontClient":
        return cls(httpx.Client(base_url=base_url, timeout=DEFAULT_TIMEOUT), GuestCart(guest_cart_path))

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def close(self) -> None:
        self.http.close()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = self.http.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.error("Storefront request failed", extra={"path": path, "error": str(e)})
            raise StorefrontAPIError(503, f"Storefront unreachable: {e}") from e

        if response.is_error:
            try:
                message = response.json().get("error", response.text)
            except ValueError:
                message = response.text
            logger.warning("Storefront call rejected", extra={
                "path": path,
                "status_code": response.status_code,
                "error": message
            })
            raise StorefrontAPIError(response.status_code, message)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # Session

    def register(self, email: str, password: str, name: str) -> Dict[str, Any]:
        return self._request("POST", "/api/auth/register", json={
            "email": email,
            "password": password,
            "name": name
        })

    def login(self, email: str, password: str) -> Dict[str, Any]:
        """
        Log in, handing the guest cart to the server for a one-time merge.

        The local guest cart is discarded once the server accepts the login.
        """
        guest_lines = [
            {"productId": line.product_id, "quantity": line.quantity}
            for line in self.guest_cart.lines
        ]
        body = self._request("POST", "/api/auth/login", json={
            "email": email,
            "password": password,
            "guestCart": guest_lines
        })

        self.http.headers["Authorization"] = f"Bearer {body['token']}"
        self.user = body["user"]
        self.guest_cart.clear()

        logger.info("Logged in", extra={
            "user_id": self.user.get("id"),
            "merged_items": body.get("mergedItems", 0)
        })
        return body

    def logout(self) -> None:
        try:
            self._request("POST", "/api/auth/logout")
        finally:
            self.http.headers.pop("Authorization", None)
            self.http.cookies.clear()
            self.user = None

    # Cart

    def get_cart(self) -> CartView:
        if not self.is_authenticated:
            return self.guest_cart.view()

        body = self._request("GET", "/api/cart")
        return CartView(
            items=[
                CartLine(
                    product_id=item["productId"],
                    quantity=item["quantity"],
                    name=item["product"]["name"],
                    price=item["product"]["price"],
                    cart_item_id=item["cartItemId"]
                )
                for item in body["items"]
            ],
            total=body["total"]
        )

    def add_item(self, product_id: int, quantity: int = 1) -> CartView:
        if quantity <= 0:
            raise StorefrontAPIError(400, "Quantity must be greater than 0")

        if self.is_authenticated:
            self._request("POST", "/api/cart/items", json={"productId": product_id, "quantity": quantity})
        else:
            product = self._request("GET", f"/api/products/{product_id}")
            self.guest_cart.add(product_id, quantity, name=product["name"], price=product["price"])
        return self.get_cart()

    def update_quantity(self, product_id: int, quantity: int) -> CartView:
        """Set the quantity held for a product; zero or less removes it."""
        if not self.is_authenticated:
            if quantity > 0 and self.guest_cart.find(product_id) is None:
                return self.add_item(product_id, quantity)
            self.guest_cart.set_quantity(product_id, quantity)
            return self.get_cart()

        line = self._server_line(product_id)
        if line is None:
            if quantity > 0:
                return self.add_item(product_id, quantity)
            return self.get_cart()

        self._request("PUT", f"/api/cart/items/{line.cart_item_id}", json={"quantity": quantity})
        return self.get_cart()

    def remove_item(self, product_id: int) -> CartView:
        if not self.is_authenticated:
            self.guest_cart.remove(product_id)
            return self.get_cart()

        line = self._server_line(product_id)
        if line is not None:
            self._request("DELETE", f"/api/cart/items/{line.cart_item_id}")
        return self.get_cart()

    def _server_line(self, product_id: int) -> Optional[CartLine]:
        return next((line for line in self.get_cart().items if line.product_id == product_id), None)

    # Checkout

    def upload_payment_proof(self, path: str) -> str:
        content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        with open(path, "rb") as f:
            body = self._request(
                "POST",
                "/api/upload",
                files={"paymentProof": (os.path.basename(path), f, content_type)}
            )
        return body["fileUrl"]

    def checkout(
        self,
        payment_method: str,
        shipping_address: Optional[str] = None,
        contact_number: Optional[str] = None,
        delivery_time: Optional[str] = None,
        payment_proof_path: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Place an order for the server cart and clear it.

        GCASH orders upload the payment proof before the order is placed.
        Nothing is undone if a later step fails.
        """
        if not self.is_authenticated:
            raise StorefrontAPIError(401, "Login required to checkout")

        if payment_method == "GCASH" and not payment_proof_path:
            raise StorefrontAPIError(400, "Payment proof is required for GCash orders")

        cart = self.get_cart()
        if not cart.items:
            raise StorefrontAPIError(400, "Cart is empty")

        payment_proof = None
        if payment_method == "GCASH":
            payment_proof = self.upload_payment_proof(payment_proof_path)

        order = self._request("POST", "/api/orders", json={
            "items": [
                {
                    "productId": line.product_id,
                    "quantity": line.quantity,
                    "price": line.price,
                    "name": line.name
                }
                for line in cart.items
            ],
            "total": round(sum(line.subtotal for line in cart.items), 2),
            "paymentMethod": payment_method,
            "shippingAddress": shipping_address,
            "contactNumber": contact_number,
            "deliveryTime": delivery_time,
            "paymentProof": payment_proof
        })

        self._request("DELETE", "/api/cart")
        logger.info("Order placed", extra={"order_id": order["id"], "total": order["total"]})
        return order
