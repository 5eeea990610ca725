#!/usr/bin/env python3
"""
Traffic generator for the Jusas storefront
Simulates shoppers browsing smoothies, filling carts and placing orders
"""

import random
import threading
import time
from datetime import datetime

import requests

API_URL = "http://localhost:5000"
PASSWORD = "smoothie123"

# Weight for actions
ACTION_WEIGHTS = {
    "browse": 0.4,
    "add_to_cart": 0.35,
    "checkout": 0.15,
    "view_cart": 0.05,
    "view_orders": 0.05,
}


def get_headers(token):
    return {"Authorization": f"Bearer {token}"}


def log(message):
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    print(f"[{timestamp}] {message}")


class Shopper:
    def __init__(self, shopper_id):
        self.shopper_id = shopper_id
        self.email = f"{shopper_id}@shoppers.jusas.ph"
        self.token = None
        self.products = []
        # Lines collected before login, sent once as the guest cart
        self.guest_cart = {}

    def authenticate(self):
        """Register the shopper if needed and log in, merging the guest cart."""
        requests.post(
            f"{API_URL}/api/auth/register",
            json={"email": self.email, "password": PASSWORD, "name": self.shopper_id},
            timeout=5
        )

        password = PASSWORD
        # Simulate authentication failures (~1%)
        if random.random() < 0.01:
            password = "wrong_password"

        try:
            response = requests.post(
                f"{API_URL}/api/auth/login",
                json={
                    "email": self.email,
                    "password": password,
                    "guestCart": [
                        {"productId": product_id, "quantity": quantity}
                        for product_id, quantity in self.guest_cart.items()
                    ]
                },
                timeout=5
            )
            if response.status_code == 200:
                data = response.json()
                self.token = data["token"]
                self.guest_cart = {}
                log(f"{self.shopper_id}: Logged in, merged {data.get('mergedItems', 0)} guest line(s)")
                return True
            log(f"{self.shopper_id}: Login failed - {response.status_code}")
        except requests.RequestException as e:
            log(f"{self.shopper_id}: Login error - {e}")
        return False

    def fetch_products(self):
        try:
            params = random.choice([{}, {"featured": "true"}, {"bestseller": "true"}])
            response = requests.get(f"{API_URL}/api/products", params=params, timeout=5)
            if response.status_code == 200:
                self.products = response.json()
                log(f"{self.shopper_id}: Fetched {len(self.products)} products")
                return True
        except requests.RequestException as e:
            log(f"{self.shopper_id}: Failed to fetch products - {e}")
        return False

    def browse_products(self):
        if not self.products:
            self.fetch_products()

        if self.products:
            product = random.choice(self.products)
            try:
                response = requests.get(f"{API_URL}/api/products/{product['id']}", timeout=5)
                if response.status_code == 200:
                    log(f"{self.shopper_id}: Browsing {product['name']}")
                    return True
            except requests.RequestException as e:
                log(f"{self.shopper_id}: Failed to browse product - {e}")
        return False

    def add_to_cart(self):
        if not self.products:
            self.fetch_products()
        if not self.products:
            return False

        product = random.choice(self.products)
        quantity = random.randint(1, 3)

        if not self.token:
            self.guest_cart[product["id"]] = self.guest_cart.get(product["id"], 0) + quantity
            log(f"{self.shopper_id}: Added {product['name']} to guest cart")
            return True

        try:
            response = requests.post(
                f"{API_URL}/api/cart/items",
                json={"productId": product["id"], "quantity": quantity},
                headers=get_headers(self.token),
                timeout=5
            )
            if response.status_code == 200:
                log(f"{self.shopper_id}: Added {product['name']} to cart")
                return True
            log(f"{self.shopper_id}: Failed to add to cart - {response.status_code}")
        except requests.RequestException as e:
            log(f"{self.shopper_id}: Failed to add to cart - {e}")
        return False

    def view_cart(self):
        try:
            response = requests.get(
                f"{API_URL}/api/cart",
                headers=get_headers(self.token),
                timeout=5
            )
            if response.status_code == 200:
                cart_data = response.json()
                log(f"{self.shopper_id}: Viewing cart with {len(cart_data.get('items', []))} items")
                return cart_data
        except requests.RequestException as e:
            log(f"{self.shopper_id}: Failed to view cart - {e}")
        return None

    def checkout(self):
        cart = self.view_cart()
        if not cart or not cart["items"]:
            return False

        items = [
            {
                "productId": item["productId"],
                "quantity": item["quantity"],
                "price": item["product"]["price"],
                "name": item["product"]["name"]
            }
            for item in cart["items"]
        ]
        try:
            response = requests.post(
                f"{API_URL}/api/orders",
                json={
                    "items": items,
                    "total": cart["total"],
                    "paymentMethod": "COD",
                    "shippingAddress": f"{random.randint(1, 999)} Mango St, Cebu City",
                    "contactNumber": f"09{random.randint(100000000, 999999999)}"
                },
                headers=get_headers(self.token),
                timeout=10
            )
            if response.status_code == 201:
                order_data = response.json()
                requests.delete(f"{API_URL}/api/cart", headers=get_headers(self.token), timeout=5)
                log(f"{self.shopper_id}: Checkout successful - Order {order_data.get('id')}")
                return True
            log(f"{self.shopper_id}: Checkout failed - {response.status_code} {response.text}")
        except requests.RequestException as e:
            log(f"{self.shopper_id}: Checkout failed - {e}")
        return False

    def view_orders(self):
        try:
            response = requests.get(
                f"{API_URL}/api/orders",
                headers=get_headers(self.token),
                timeout=5
            )
            if response.status_code == 200:
                log(f"{self.shopper_id}: Viewing {len(response.json())} orders")
                return True
        except requests.RequestException as e:
            log(f"{self.shopper_id}: Failed to view orders - {e}")
        return False

    def random_action(self):
        action = random.choices(
            list(ACTION_WEIGHTS.keys()),
            weights=list(ACTION_WEIGHTS.values())
        )[0]

        if action == "browse":
            return self.browse_products()
        elif action == "add_to_cart":
            return self.add_to_cart()
        elif action == "checkout":
            return self.checkout()
        elif action == "view_cart":
            return self.view_cart() is not None
        elif action == "view_orders":
            return self.view_orders()


def shopper_session(shopper_id, duration_seconds, shopper_type="browser"):
    """
    Simulate a shopper session

    shopper_type:
    - "browser": Just browses products (50%)
    - "cart_abandoner": Fills a guest cart, logs in, never checks out (30%)
    - "buyer": Fills a guest cart, logs in and completes purchases (20%)
    """
    shopper = Shopper(shopper_id)
    end_time = time.time() + duration_seconds

    shopper.fetch_products()
    for _ in range(random.randint(2, 5)):
        shopper.browse_products()
        time.sleep(random.uniform(0.5, 1.5))

    if shopper_type == "browser":
        log(f"{shopper_id}: Browser - viewing products only")
        while time.time() < end_time:
            shopper.browse_products()
            time.sleep(random.uniform(0.3, 0.8))
        return

    for _ in range(random.randint(1, 3)):
        shopper.add_to_cart()
        time.sleep(random.uniform(0.2, 0.5))

    if not shopper.authenticate():
        return

    if shopper_type == "cart_abandoner":
        log(f"{shopper_id}: Cart abandoner - adding to cart but not checking out")
        while time.time() < end_time:
            if random.random() < 0.5:
                shopper.browse_products()
            else:
                shopper.view_cart()
            time.sleep(random.uniform(0.3, 0.8))

    elif shopper_type == "buyer":
        log(f"{shopper_id}: Buyer - will complete checkout")
        while time.time() < end_time:
            shopper.random_action()
            time.sleep(random.uniform(0.5, 1.5))


def generate_traffic(num_concurrent_users=5, session_duration=60):
    """Generate traffic with multiple concurrent shoppers"""
    log(f"Starting traffic generation with {num_concurrent_users} concurrent shoppers")
    log(f"Session duration: {session_duration} seconds")
    log("Shopper mix: 50% browsers, 30% cart abandoners, 20% buyers")

    threads = []

    try:
        while True:
            while len([t for t in threads if t.is_alive()]) < num_concurrent_users:
                shopper_id = f"shopper_{random.randint(1000, 9999)}"

                rand = random.random()
                if rand < 0.50:
                    shopper_type = "browser"
                elif rand < 0.80:
                    shopper_type = "cart_abandoner"
                else:
                    shopper_type = "buyer"

                thread = threading.Thread(
                    target=shopper_session,
                    args=(shopper_id, session_duration, shopper_type)
                )
                thread.start()
                threads.append(thread)

                time.sleep(random.uniform(1, 3))

            threads = [t for t in threads if t.is_alive()]
            time.sleep(5)

    except KeyboardInterrupt:
        log("\nStopping traffic generation...")
        log("Waiting for active sessions to complete...")
        for thread in threads:
            thread.join(timeout=10)
        log("Traffic generation stopped")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Generate traffic for the Jusas storefront")
    parser.add_argument(
        "--users",
        type=int,
        default=5,
        help="Number of concurrent shoppers (default: 5)"
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=60,
        help="Session duration in seconds (default: 60)"
    )
    parser.add_argument(
        "--url",
        type=str,
        default="http://localhost:5000",
        help="API URL (default: http://localhost:5000)"
    )

    args = parser.parse_args()
    API_URL = args.url

    log("=" * 60)
    log("Jusas Storefront Traffic Generator")
    log("=" * 60)
    log(f"API URL: {API_URL}")
    log(f"Concurrent Shoppers: {args.users}")
    log(f"Session Duration: {args.duration}s")
    log("=" * 60)

    generate_traffic(args.users, args.duration)
