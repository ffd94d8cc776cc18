"""
Client-side storefront session.

Keeps the shopper's cart and favorites locally and reconciles them with the
API at well-defined points: login/registration and explicit sync for
favorites, each favorite toggle while signed in, and checkout for the cart.
Works with any httpx.Client pointed at the API, including FastAPI's
TestClient.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


class ClientError(Exception):
    """Raised when the API answers with an error status."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")


class CheckoutError(ClientError):
    """Raised when an order can't be placed. The cart is left as it was."""


@dataclass
class CartLine:
    product_id: str
    name: str
    price: float
    quantity: int = 1

    @property
    def subtotal(self) -> float:
        return self.price * self.quantity


class StorefrontSession:
    def __init__(self, http: httpx.Client, token: Optional[str] = None, api_prefix: str = "/api"):
        self.http = http
        self.token = token
        self.api_prefix = api_prefix
        self.user: Optional[dict] = None
        self.favorites: List[str] = []
        self._cart: Dict[str, CartLine] = {}

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def _request(self, method: str, path: str, **kwargs):
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        response = self.http.request(method, self.api_prefix + path, headers=headers, **kwargs)
        if response.is_error:
            try:
                message = response.json().get("message", response.text)
            except ValueError:
                message = response.text
            raise ClientError(response.status_code, message)
        return response.json()

    # Account
    def _signed_in(self, data: dict) -> dict:
        self.token = data["token"]
        self.user = data["user"]
        self.sync_favorites()
        return self.user

    def register(self, name: str, email: str, password: str) -> dict:
        data = self._request("POST", "/auth/register", json={"name": name, "email": email, "password": password})
        return self._signed_in(data)

    def login(self, email: str, password: str) -> dict:
        data = self._request("POST", "/auth/login", json={"email": email, "password": password})
        return self._signed_in(data)

    def logout(self) -> None:
        self.token = None
        self.user = None

    # Catalog
    def browse(self, **params) -> dict:
        return self._request("GET", "/products", params=params)

    # Cart
    @property
    def cart(self) -> List[CartLine]:
        return list(self._cart.values())

    @property
    def cart_total(self) -> float:
        return round(sum(line.subtotal for line in self._cart.values()), 2)

    @property
    def cart_count(self) -> int:
        return sum(line.quantity for line in self._cart.values())

    def add_to_cart(self, product: dict, quantity: int = 1) -> CartLine:
        """Add a product (as returned by the API) to the cart, merging with an existing line."""
        if quantity < 1:
            raise ValueError("quantity must be at least 1")
        line = self._cart.get(product["id"])
        if line is None:
            line = CartLine(product_id=product["id"], name=product["name"], price=product["price"], quantity=quantity)
            self._cart[line.product_id] = line
        else:
            line.quantity += quantity
        return line

    def set_quantity(self, product_id: str, quantity: int) -> None:
        if product_id not in self._cart:
            raise KeyError(product_id)
        if quantity <= 0:
            del self._cart[product_id]
        else:
            self._cart[product_id].quantity = quantity

    def remove_from_cart(self, product_id: str) -> None:
        self._cart.pop(product_id, None)

    def clear_cart(self) -> None:
        self._cart.clear()

    def checkout(self, shipping_address: Optional[dict] = None) -> dict:
        """Place an order for the cart contents and empty the cart on success."""
        if not self.is_authenticated:
            raise CheckoutError(401, "Sign in to place an order")
        if not self._cart:
            raise CheckoutError(400, "Cart is empty")
        payload = {
            "items": [
                {"product": line.product_id, "quantity": line.quantity, "price": line.price}
                for line in self._cart.values()
            ],
            "total": self.cart_total,
            "shippingAddress": shipping_address,
        }
        try:
            order = self._request("POST", "/orders", json=payload)
        except ClientError as e:
            raise CheckoutError(e.status_code, e.message) from e
        self.clear_cart()
        return order

    # Favorites
    def is_favorite(self, product_id: str) -> bool:
        return product_id in self.favorites

    def toggle_favorite(self, product_id: str) -> bool:
        """Flip a product's favorite state. Returns True if it is now a favorite."""
        if product_id in self.favorites:
            if self.is_authenticated:
                self._request("DELETE", f"/favorites/{product_id}")
            self.favorites.remove(product_id)
            return False
        if self.is_authenticated:
            self._request("POST", f"/favorites/{product_id}")
        self.favorites.append(product_id)
        return True

    def sync_favorites(self) -> List[str]:
        """
        Push favorites chosen while signed out, then adopt the server's list.

        Local favorites the server rejects as unknown products are dropped.
        """
        if not self.is_authenticated:
            return self.favorites
        server_ids = [p["id"] for p in self._request("GET", "/favorites")]
        for product_id in self.favorites:
            if product_id in server_ids:
                continue
            try:
                self._request("POST", f"/favorites/{product_id}")
            except ClientError as e:
                if e.status_code not in (400, 404):
                    raise
                logger.debug("Dropping local favorite %s: %s", product_id, e.message)
        self.favorites = [p["id"] for p in self._request("GET", "/favorites")]
        return self.favorites
