# sdk/pystore.py
import logging
import requests
import httpx
from typing import Any, Dict, List, Optional

from .cache import MemoryStorage

logger = logging.getLogger(__name__)

AUTH_TOKEN_KEY = "auth_token"
# Keys written by the auth layer; all of them are dropped on logout.
AUTH_KEY_PREFIXES = ("auth_", "sb-")


class StoreAPIError(Exception):
    def __init__(self, status_code: int, detail: Any = None):
        super().__init__(f"HTTP {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class StoreClient:
    def __init__(self, base_url: str = "http://localhost:8085", token: Optional[str] = None, timeout: int = 10, session=None, storage=None, async_transport=None):
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self.storage = storage if storage is not None else MemoryStorage()
        self.async_transport = async_transport
        token = token or self.storage.get_item(AUTH_TOKEN_KEY)
        if token:
            self.set_token(token)

    def set_token(self, token: str):
        self.storage.set_item(AUTH_TOKEN_KEY, token)
        self.session.headers.update({"Authorization": f"Bearer {token}"})

    def _request(self, method: str, path: str, **kwargs) -> Any:
        r = self.session.request(method, f"{self.base_url}{path}", timeout=self.timeout, **kwargs)
        if r.status_code >= 400:
            try:
                detail = r.json().get("detail")
            except (ValueError, AttributeError):
                detail = r.text
            raise StoreAPIError(r.status_code, detail)
        return r.json()

    # Auth
    def signup(self, email: str, password: str, full_name: Optional[str] = None) -> Dict[str, Any]:
        data = self._request("POST", "/auth/signup", json={"email": email, "password": password, "full_name": full_name})
        self.set_token(data["token"])
        return data

    def login(self, email: str, password: str) -> Dict[str, Any]:
        data = self._request("POST", "/auth/login", json={"email": email, "password": password})
        self.set_token(data["token"])
        return data

    def logout(self):
        for key in self.storage.keys():
            if key.startswith(AUTH_KEY_PREFIXES):
                self.storage.remove_item(key)
        self.session.headers.pop("Authorization", None)

    def me(self):
        return self._request("GET", "/auth/me")

    # Products
    def list_products(self, category: Optional[str] = None, gender: Optional[str] = None, new_arrivals: bool = False) -> List[Dict[str, Any]]:
        params = {}
        if category:
            params["category"] = category
        if gender:
            params["gender"] = gender
        if new_arrivals:
            params["new_arrivals"] = "true"
        return self._request("GET", "/products", params=params)

    def get_product(self, product_id: str):
        return self._request("GET", f"/products/{product_id}")

    def create_product(self, product: Dict[str, Any]):
        return self._request("POST", "/admin/products", json=product)

    def update_product(self, product_id: str, changes: Dict[str, Any]):
        return self._request("PUT", f"/admin/products/{product_id}", json=changes)

    def delete_product(self, product_id: str):
        return self._request("DELETE", f"/admin/products/{product_id}")

    def upload_product_image(self, filename: str, content: bytes, content_type: str = "application/octet-stream"):
        return self._request("POST", "/admin/storage/product-images", files={"file": (filename, content, content_type)})

    # Cart
    def view_cart(self):
        return self._request("GET", "/cart")

    def add_to_cart(self, product_id: str, quantity: int = 1):
        return self._request("POST", "/cart/add", json={"product_id": product_id, "quantity": quantity})

    def update_cart_item(self, item_id: str, quantity: int):
        return self._request("PUT", f"/cart/items/{item_id}", json={"quantity": int(quantity)})

    def remove_from_cart(self, item_id: str):
        return self._request("DELETE", f"/cart/items/{item_id}")

    def clear_cart(self):
        return self._request("DELETE", "/cart")

    def move_to_saved(self, item_id: str, product_id: str):
        return self._request("POST", "/cart/move-to-saved", json={"item_id": item_id, "product_id": product_id})

    # Saved items
    def list_saved(self):
        return self._request("GET", "/saved")

    def save_item(self, product_id: str):
        return self._request("POST", "/saved", json={"product_id": product_id})

    def check_saved(self, product_id: str):
        return self._request("GET", f"/saved/check/{product_id}")

    def unsave_item(self, item_id: str):
        return self._request("DELETE", f"/saved/{item_id}")

    def move_to_cart(self, saved_item_id: str, product_id: str):
        return self._request("POST", "/saved/move-to-cart", json={"item_id": saved_item_id, "product_id": product_id})

    # Orders
    def create_payment(self, amount: int, currency: str, shipping_address: Dict[str, Any], items: List[Dict[str, Any]], billing_address: Optional[Dict[str, Any]] = None, receipt_id: Optional[str] = None):
        payload = {
            "amount": amount,
            "currency": currency,
            "shipping_address": shipping_address,
            "items": items,
        }
        if billing_address is not None:
            payload["billing_address"] = billing_address
        if receipt_id:
            payload["receipt_id"] = receipt_id
        return self._request("POST", "/create-payment", json=payload)

    def verify_payment(self, order_id: str, razorpay_order_id: str, razorpay_payment_id: str, razorpay_signature: str):
        return self._request("POST", "/verify-payment", json={
            "order_id": order_id,
            "razorpay_order_id": razorpay_order_id,
            "razorpay_payment_id": razorpay_payment_id,
            "razorpay_signature": razorpay_signature,
        })

    # Async verify (the checkout page awaits this while the widget closes)
    async def verify_payment_async(self, order_id: str, razorpay_order_id: str, razorpay_payment_id: str, razorpay_signature: str):
        headers = {}
        if "Authorization" in self.session.headers:
            headers["Authorization"] = self.session.headers["Authorization"]
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.async_transport) as client:
            r = await client.post(f"{self.base_url}/verify-payment", json={
                "order_id": order_id,
                "razorpay_order_id": razorpay_order_id,
                "razorpay_payment_id": razorpay_payment_id,
                "razorpay_signature": razorpay_signature,
            }, headers=headers)
        if r.status_code >= 400:
            raise StoreAPIError(r.status_code, r.json().get("detail"))
        return r.json()

    def payment_failed(self, order_id: str, reason: Optional[str] = None):
        return self._request("POST", "/payment-failed", json={"order_id": order_id, "reason": reason})

    def list_orders(self):
        return self._request("GET", "/orders")

    # Profile
    def get_profile(self):
        return self._request("GET", "/profile")

    def update_profile(self, full_name: Optional[str] = None, avatar_url: Optional[str] = None):
        payload = {}
        if full_name is not None:
            payload["full_name"] = full_name
        if avatar_url is not None:
            payload["avatar_url"] = avatar_url
        return self._request("PUT", "/profile", json=payload)
