"""
Typed HTTP client for the Pet Palace API.

The bearer token lives on the client instance and is sent with each request;
nothing is read from process-wide state. ``checkout`` is the storefront's
cart-to-order flow: the cart is cleared only after the server has returned an
order id. Signed-out visitors keep a guest cart on the instance that is
merged into the server cart on login.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from pricing import from_cents, line_total, to_cents

logger = logging.getLogger(__name__)


class APIError(Exception):
    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.status_code == 0 or self.status_code >= 500


class StorefrontClient:
    def __init__(self, http: httpx.Client, token: Optional[str] = None, prefix: str = "/api"):
        self.http = http
        self.token = token
        self.prefix = prefix
        self.user: Optional[Dict[str, Any]] = None
        self.guest_cart: Dict[int, int] = {}

    # ------------------------------------------------------------------
    # plumbing
    # ------------------------------------------------------------------

    def _headers(self) -> Dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def request(self, method: str, endpoint: str, **kwargs) -> Any:
        try:
            resp = self.http.request(method, f"{self.prefix}{endpoint}", headers=self._headers(), **kwargs)
        except httpx.TransportError as exc:
            raise APIError("Server unavailable", 0) from exc
        if resp.is_error:
            try:
                message = resp.json().get("detail") or "Server error"
            except ValueError:
                message = "Server error"
            if not isinstance(message, str):
                message = str(message)
            raise APIError(message, resp.status_code)
        return resp.json()

    # ------------------------------------------------------------------
    # auth
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> Dict[str, Any]:
        data = self.request("POST", "/users/login", json={"email": email, "password": password})
        self.token = data["token"]
        self.user = data["user"]
        self._merge_guest_cart()
        return data

    def register(self, full_name: str, username: str, email: str, password: str, phone: Optional[str] = None):
        body = {"full_name": full_name, "username": username, "email": email, "password": password}
        if phone:
            body["phone"] = phone
        return self.request("POST", "/users/register", json=body)

    def logout(self) -> None:
        self.token = None
        self.user = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    # ------------------------------------------------------------------
    # catalog
    # ------------------------------------------------------------------

    def products(self, **filters) -> List[Dict[str, Any]]:
        params = {k: v for k, v in filters.items() if v is not None}
        return self.request("GET", "/products", params=params)

    def product(self, product_id: int) -> Dict[str, Any]:
        return self.request("GET", f"/products/{product_id}")

    # ------------------------------------------------------------------
    # cart
    #
    # Signed-out visitors get a guest cart kept on this instance, keyed by
    # product id (which doubles as the line id). ``login`` moves it into
    # the server cart.
    # ------------------------------------------------------------------

    def cart(self) -> List[Dict[str, Any]]:
        if not self.is_authenticated:
            return [self._guest_line(pid, qty) for pid, qty in self.guest_cart.items()]
        return self.request("GET", "/cart")

    def add_to_cart(self, product_id: int, quantity: int = 1):
        if not self.is_authenticated:
            if quantity < 1:
                raise APIError("Quantity must be at least 1", 400)
            self.product(product_id)
            self.guest_cart[product_id] = self.guest_cart.get(product_id, 0) + quantity
            return {"message": "Product added to cart", "cart_item": self._guest_item(product_id)}
        return self.request("POST", "/cart", json={"product_id": product_id, "quantity": quantity})

    def update_cart_item(self, line_id: int, quantity: int):
        if not self.is_authenticated:
            if quantity < 0:
                raise APIError("Quantity cannot be negative", 400)
            self._guest_owned(line_id)
            if quantity == 0:
                del self.guest_cart[line_id]
                return {"message": "Cart item removed", "cart_item": None}
            self.guest_cart[line_id] = quantity
            return {"message": "Cart quantity updated", "cart_item": self._guest_item(line_id)}
        return self.request("PUT", f"/cart/{line_id}", json={"quantity": quantity})

    def remove_from_cart(self, line_id: int):
        if not self.is_authenticated:
            self._guest_owned(line_id)
            del self.guest_cart[line_id]
            return {"message": "Cart item removed"}
        return self.request("DELETE", f"/cart/{line_id}")

    def clear_cart(self):
        if not self.is_authenticated:
            removed = len(self.guest_cart)
            self.guest_cart.clear()
            return {"message": "Cart cleared", "removed": removed}
        return self.request("DELETE", "/cart/clear")

    def _guest_owned(self, line_id: int) -> None:
        if line_id not in self.guest_cart:
            raise APIError("Cart item not found", 404)

    def _guest_item(self, product_id: int) -> Dict[str, Any]:
        return {"id": product_id, "product_id": product_id, "quantity": self.guest_cart[product_id]}

    def _guest_line(self, product_id: int, quantity: int) -> Dict[str, Any]:
        p = self.product(product_id)
        return {
            "cart_item_id": product_id,
            "product_id": product_id,
            "quantity": quantity,
            "product_name": p["name"],
            "product_price": p["price"],
            "product_final_price": p["final_price"],
            "product_image_url": p.get("image_url"),
        }

    def _merge_guest_cart(self) -> None:
        for product_id in list(self.guest_cart):
            quantity = self.guest_cart[product_id]
            try:
                self.request("POST", "/cart", json={"product_id": product_id, "quantity": quantity})
            except APIError as exc:
                if exc.status_code != 404:
                    raise
                logger.warning("dropping guest cart line for missing product %s", product_id)
            del self.guest_cart[product_id]

    # ------------------------------------------------------------------
    # orders
    # ------------------------------------------------------------------

    def place_order(self, items: List[Dict[str, Any]], street: str, city: str, postal_code: str) -> int:
        total = from_cents(sum(line_total(i["quantity"], to_cents(i["price"])) for i in items))
        body = {
            "total": str(total),
            "shipping_street": street,
            "shipping_city": city,
            "shipping_postal_code": postal_code,
            "items": [
                {"product_id": i["product_id"], "quantity": i["quantity"], "price": str(Decimal(str(i["price"])))}
                for i in items
            ],
        }
        return self.request("POST", "/orders", json=body)["order_id"]

    def my_orders(self) -> List[Dict[str, Any]]:
        return self.request("GET", "/orders/my")

    def order(self, order_id: int) -> Dict[str, Any]:
        return self.request("GET", f"/orders/{order_id}")

    def checkout(self, street: str, city: str, postal_code: str) -> int:
        """Turn the server cart into an order, then empty the cart.

        If placement fails the error propagates and the cart is untouched.
        """
        lines = self.cart()
        if not lines:
            raise APIError("Cart is empty", 400)
        items = [
            {"product_id": l["product_id"], "quantity": l["quantity"], "price": l["product_final_price"]}
            for l in lines
        ]
        order_id = self.place_order(items, street, city, postal_code)
        self.clear_cart()
        logger.info("checkout complete, order %s", order_id)
        return order_id
