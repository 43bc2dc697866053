# sdk/repositories.py
"""
Repositories consumed by the presentation layer.

Every remote call is attempted once. Failures are logged and turned into an
empty result ([] / None / False) so the caller only has to decide what to
show.
"""
import logging
import os
import threading
from typing import Any, Dict, List, Optional

import requests

from .cache import CacheService
from .pystore import StoreAPIError, StoreClient

logger = logging.getLogger(__name__)

PRODUCTS_CACHE_KEY = "products"
REMOTE_ERRORS = (StoreAPIError, requests.RequestException)


class ProductRepository:
    def __init__(self, client: StoreClient, cache: CacheService, cache_key: str = PRODUCTS_CACHE_KEY):
        self.client = client
        self.cache = cache
        self.cache_key = cache_key
        self._refresh_timer: Optional[threading.Timer] = None
        self._refresh_lock = threading.Lock()

    def _fetch_products(self) -> List[Dict[str, Any]]:
        return self.client.list_products()

    def get_products(self, force_refresh: bool = False) -> List[Dict[str, Any]]:
        try:
            if force_refresh:
                logger.info("Fetching products from API (forced)")
                return self.cache.refresh_cached_data(self.cache_key, self._fetch_products)
            return self.cache.get_cached_data(self.cache_key, self._fetch_products)
        except REMOTE_ERRORS as e:
            logger.error("Error fetching products: %s", e)
            return []

    def get_product_by_id(self, product_id: str) -> Optional[Dict[str, Any]]:
        try:
            return self.client.get_product(product_id)
        except REMOTE_ERRORS as e:
            logger.error("Error fetching product %s: %s", product_id, e)
            return None

    def create_product(self, product: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            created = self.client.create_product(product)
        except REMOTE_ERRORS as e:
            logger.error("Error creating product: %s", e)
            return None
        self.get_products(force_refresh=True)
        return created

    def update_product(self, product_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            updated = self.client.update_product(product_id, changes)
        except REMOTE_ERRORS as e:
            logger.error("Error updating product %s: %s", product_id, e)
            return None
        self.get_products(force_refresh=True)
        return updated

    def delete_product(self, product_id: str) -> bool:
        try:
            self.client.delete_product(product_id)
        except REMOTE_ERRORS as e:
            logger.error("Error deleting product %s: %s", product_id, e)
            return False
        self.get_products(force_refresh=True)
        return True

    def upload_product_image(self, path: str, content_type: str = "application/octet-stream") -> Optional[str]:
        try:
            with open(path, "rb") as f:
                content = f.read()
            data = self.client.upload_product_image(os.path.basename(path), content, content_type)
        except (OSError,) + REMOTE_ERRORS as e:
            logger.error("Error uploading image %s: %s", path, e)
            return None
        return data.get("public_url")

    def invalidate(self):
        self.cache.clear_cache_item(self.cache_key)

    # Periodic refresh. Runs beside foreground refreshes; whichever
    # writes the cache last wins.
    def start_products_refresh(self, minutes: float = 30):
        logger.info("Setting up products refresh every %s minutes", minutes)
        self.stop_products_refresh()
        interval = minutes * 60

        def _tick():
            logger.info("Auto-refreshing products...")
            self.get_products(force_refresh=True)
            with self._refresh_lock:
                if self._refresh_timer is not None:
                    self._schedule(interval, _tick)

        with self._refresh_lock:
            self._schedule(interval, _tick)

    def _schedule(self, interval: float, fn):
        timer = threading.Timer(interval, fn)
        timer.daemon = True
        self._refresh_timer = timer
        timer.start()

    def stop_products_refresh(self):
        with self._refresh_lock:
            if self._refresh_timer is not None:
                self._refresh_timer.cancel()
                self._refresh_timer = None
                logger.info("Products refresh timer stopped")

    @property
    def refresh_running(self) -> bool:
        return self._refresh_timer is not None


class CartRepository:
    def __init__(self, client: StoreClient):
        self.client = client

    def get_cart_items(self) -> List[Dict[str, Any]]:
        try:
            return self.client.view_cart()
        except REMOTE_ERRORS as e:
            logger.error("Error fetching cart items: %s", e)
            return []

    def add_to_cart(self, product_id: str, quantity: int = 1) -> bool:
        try:
            self.client.add_to_cart(product_id, quantity)
        except REMOTE_ERRORS as e:
            logger.error("Error adding %s to cart: %s", product_id, e)
            return False
        return True

    def update_cart_item_quantity(self, item_id: str, quantity: int) -> bool:
        try:
            self.client.update_cart_item(item_id, quantity)
        except REMOTE_ERRORS as e:
            logger.error("Error updating cart item %s: %s", item_id, e)
            return False
        return True

    def remove_from_cart(self, item_id: str) -> bool:
        try:
            self.client.remove_from_cart(item_id)
        except REMOTE_ERRORS as e:
            logger.error("Error removing cart item %s: %s", item_id, e)
            return False
        return True

    def clear_cart(self) -> bool:
        try:
            self.client.clear_cart()
        except REMOTE_ERRORS as e:
            logger.error("Error clearing cart: %s", e)
            return False
        return True

    def move_to_saved_items(self, item_id: str, product_id: str) -> bool:
        try:
            self.client.move_to_saved(item_id, product_id)
        except REMOTE_ERRORS as e:
            logger.error("Error moving item to saved items: %s", e)
            return False
        return True


class SavedItemsRepository:
    def __init__(self, client: StoreClient):
        self.client = client

    def get_saved_items(self) -> List[Dict[str, Any]]:
        try:
            return self.client.list_saved()
        except REMOTE_ERRORS as e:
            logger.error("Error fetching saved items: %s", e)
            return []

    def save_item(self, product_id: str) -> bool:
        try:
            data = self.client.save_item(product_id)
        except REMOTE_ERRORS as e:
            logger.error("Error saving item %s: %s", product_id, e)
            return False
        if data.get("status") == "already_saved":
            logger.info("Item already saved: %s", product_id)
        return True

    def check_if_item_is_saved(self, product_id: str) -> bool:
        try:
            return bool(self.client.check_saved(product_id).get("saved"))
        except REMOTE_ERRORS as e:
            logger.error("Error checking saved status: %s", e)
            return False

    def unsave_item(self, item_id: str) -> bool:
        try:
            self.client.unsave_item(item_id)
        except REMOTE_ERRORS as e:
            logger.error("Error removing saved item %s: %s", item_id, e)
            return False
        return True

    def move_to_cart(self, saved_item_id: str, product_id: str) -> bool:
        try:
            self.client.move_to_cart(saved_item_id, product_id)
        except REMOTE_ERRORS as e:
            logger.error("Error moving item to cart: %s", e)
            return False
        return True


class OrderRepository:
    """
    Two-phase checkout: create_order() before opening the payment widget,
    verify_payment() with what the widget returns. Unlike the other
    repositories these raise StoreAPIError, since a checkout failure has to be
    told apart from an empty result.
    """

    def __init__(self, client: StoreClient):
        self.client = client

    def create_order(self, amount: int, shipping_address: Dict[str, Any], items: List[Dict[str, Any]], currency: str = "INR", billing_address: Optional[Dict[str, Any]] = None, receipt_id: Optional[str] = None) -> Dict[str, Any]:
        return self.client.create_payment(amount, currency, shipping_address, items, billing_address, receipt_id)

    def verify_payment(self, order_id: str, razorpay_order_id: str, razorpay_payment_id: str, razorpay_signature: str) -> Dict[str, Any]:
        return self.client.verify_payment(order_id, razorpay_order_id, razorpay_payment_id, razorpay_signature)

    def report_payment_failure(self, order_id: str, reason: Optional[str] = None) -> bool:
        try:
            self.client.payment_failed(order_id, reason)
        except REMOTE_ERRORS as e:
            logger.error("Error reporting payment failure for %s: %s", order_id, e)
            return False
        return True

    def list_orders(self) -> List[Dict[str, Any]]:
        try:
            return self.client.list_orders()
        except REMOTE_ERRORS as e:
            logger.error("Error fetching orders: %s", e)
            return []
