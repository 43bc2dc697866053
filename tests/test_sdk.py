# tests/test_sdk.py
import asyncio
import threading

import httpx
import pytest
import requests
from fastapi.testclient import TestClient

from app import database
from app.gateway import compute_signature
from app.main import app
from conftest import TEST_SECRET, make_admin
from sdk.cache import CacheService, MemoryStorage
from sdk.pystore import StoreAPIError, StoreClient
from sdk.repositories import CartRepository, OrderRepository, ProductRepository, SavedItemsRepository


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


class DownSession:
    """Session whose every request fails at the transport level."""

    def __init__(self):
        self.headers = {}

    def request(self, method, url, **kwargs):
        raise requests.ConnectionError("connection refused")


def _seed_product(pid, name="Ring", created="2024-01-01T00:00:00+00:00"):
    database.insert("products", {
        "id": pid, "name": name, "price": 1000, "category": "rings",
        "created_at": created, "updated_at": created,
    })


@pytest.fixture
def store():
    storage = MemoryStorage()
    api = StoreClient(base_url="http://testserver", session=TestClient(app), storage=storage)
    clock = FakeClock()
    cache = CacheService(storage=storage, clock=clock, ttl_seconds=600)
    return {"api": api, "cache": cache, "clock": clock, "storage": storage,
            "products": ProductRepository(api, cache)}


@pytest.fixture
def admin_store(store, client):
    make_admin(client, "admin@example.com")
    store["api"].login("admin@example.com", "secret123")
    return store


def test_products_served_from_cache_until_forced(store):
    _seed_product("p1")
    repo = store["products"]
    assert [p["id"] for p in repo.get_products()] == ["p1"]

    _seed_product("p2", created="2024-02-01T00:00:00+00:00")
    assert [p["id"] for p in repo.get_products()] == ["p1"]

    store["clock"].now += 30
    assert [p["id"] for p in repo.get_products(force_refresh=True)] == ["p2", "p1"]
    assert store["cache"].get_entry("products")["timestamp"] == store["clock"].now


def test_cache_expiry_refetches(store):
    _seed_product("p1")
    repo = store["products"]
    repo.get_products()
    _seed_product("p2", created="2024-02-01T00:00:00+00:00")
    store["clock"].now += 600
    assert len(repo.get_products()) == 2


def test_product_by_id_bypasses_cache(store):
    repo = store["products"]
    assert repo.get_product_by_id("missing") is None
    _seed_product("p1")
    repo.get_products()
    database.update("products", "p1", {"name": "Renamed"})
    assert repo.get_product_by_id("p1")["name"] == "Renamed"
    assert repo.get_products()[0]["name"] == "Ring"


def test_outage_renders_as_empty_or_stale(store):
    _seed_product("p1")
    cache = store["cache"]
    down = ProductRepository(StoreClient(base_url="http://down", session=DownSession()), cache)
    # nothing cached yet under a fresh key
    assert ProductRepository(down.client, cache, cache_key="other").get_products() == []

    store["products"].get_products()
    store["clock"].now += 3600
    assert [p["id"] for p in down.get_products()] == ["p1"]
    assert down.get_products(force_refresh=True) == []
    assert down.get_product_by_id("p1") is None


def test_admin_mutations_refresh_cache(admin_store):
    repo = admin_store["products"]
    assert repo.get_products() == []

    created = repo.create_product({"name": "Pendant", "price": 5000, "category": "pendants"})
    assert created["name"] == "Pendant"
    assert [p["id"] for p in repo.get_products()] == [created["id"]]

    repo.update_product(created["id"], {"is_sold_out": True})
    assert repo.get_products()[0]["is_sold_out"] is True

    assert repo.delete_product(created["id"]) is True
    assert repo.get_products() == []
    assert repo.delete_product(created["id"]) is False


def test_failed_mutation_returns_none(admin_store):
    repo = admin_store["products"]
    assert repo.create_product({"name": "Watch", "price": 5, "category": "watches"}) is None
    assert repo.update_product("missing", {"price": 5}) is None


def test_upload_product_image(admin_store, tmp_path):
    img = tmp_path / "hoops.jpg"
    img.write_bytes(b"jpeg-bytes")
    url = admin_store["products"].upload_product_image(str(img), "image/jpeg")
    assert url.endswith(".jpg")
    assert admin_store["products"].upload_product_image(str(tmp_path / "missing.jpg")) is None


def test_periodic_refresh_runs_and_stops(store):
    repo = store["products"]
    fired = threading.Event()
    repo.get_products = lambda force_refresh=False: fired.set()
    repo.start_products_refresh(minutes=0.0005)
    assert repo.refresh_running
    assert fired.wait(5)
    repo.stop_products_refresh()
    assert not repo.refresh_running


def test_logout_drops_auth_keys_only(store, client):
    api, storage = store["api"], store["storage"]
    api.signup("alice@example.com", "secret123")
    storage.set_item("sb-project-auth-token", "legacy")
    store["cache"].set_entry("products", [])

    assert api.me()["email"] == "alice@example.com"
    api.logout()
    assert storage.get_item("auth_token") is None
    assert storage.get_item("sb-project-auth-token") is None
    assert store["cache"].get_entry("products") == {"data": [], "timestamp": store["clock"].now}
    with pytest.raises(StoreAPIError) as exc:
        api.me()
    assert exc.value.status_code == 401


def test_token_restored_from_storage(store):
    store["api"].signup("alice@example.com", "secret123")
    again = StoreClient(base_url="http://testserver", session=TestClient(app), storage=store["storage"])
    assert again.me()["email"] == "alice@example.com"


def test_cart_and_saved_repositories(store):
    _seed_product("p1")
    store["api"].signup("alice@example.com", "secret123")
    cart = CartRepository(store["api"])
    saved = SavedItemsRepository(store["api"])

    assert cart.add_to_cart("p1") is True
    assert cart.add_to_cart("p1") is True
    items = cart.get_cart_items()
    assert len(items) == 1 and items[0]["quantity"] == 2
    assert cart.add_to_cart("missing") is False

    assert cart.move_to_saved_items(items[0]["id"], "p1") is True
    assert cart.get_cart_items() == []
    assert saved.check_if_item_is_saved("p1") is True
    assert saved.save_item("p1") is True

    saved_items = saved.get_saved_items()
    assert saved.move_to_cart(saved_items[0]["id"], "p1") is True
    assert saved.get_saved_items() == []
    assert cart.update_cart_item_quantity(cart.get_cart_items()[0]["id"], 11) is False
    assert cart.clear_cart() is True
    assert cart.get_cart_items() == []


def test_repositories_return_empty_when_logged_out(store):
    assert CartRepository(store["api"]).get_cart_items() == []
    assert SavedItemsRepository(store["api"]).get_saved_items() == []
    assert OrderRepository(store["api"]).list_orders() == []


def test_order_repository_checkout(store, gateway):
    store["api"].signup("alice@example.com", "secret123")
    orders = OrderRepository(store["api"])
    gateway.order_ids = ["order_abc"]

    created = orders.create_order(50000, {"city": "Pune"}, [])
    assert created["razorpay_order_id"] == "order_abc"

    with pytest.raises(StoreAPIError) as exc:
        orders.verify_payment(created["id"], "order_abc", "pay_xyz", "bad")
    assert exc.value.status_code == 400

    sig = compute_signature(TEST_SECRET, "order_abc", "pay_xyz")
    assert orders.verify_payment(created["id"], "order_abc", "pay_xyz", sig)["success"] is True
    assert orders.list_orders()[0]["status"] == "paid"
    assert orders.report_payment_failure(created["id"]) is False


def test_verify_payment_async(store, gateway):
    api = store["api"]
    api.signup("alice@example.com", "secret123")
    api.async_transport = httpx.ASGITransport(app=app)
    gateway.order_ids = ["order_async"]
    created = api.create_payment(50000, "INR", {"city": "Pune"}, [])
    sig = compute_signature(TEST_SECRET, "order_async", "pay_1")

    body = asyncio.run(api.verify_payment_async(created["id"], "order_async", "pay_1", sig))
    assert body["success"] is True
    with pytest.raises(StoreAPIError) as exc:
        asyncio.run(api.verify_payment_async(created["id"], "order_async", "pay_1", "bad"))
    assert exc.value.status_code == 400


def test_invalidate_drops_only_the_product_entry(store):
    _seed_product("p1")
    store["products"].get_products()
    store["cache"].set_entry("banners", ["spring"])

    store["products"].invalidate()
    assert store["cache"].get_entry("products") is None
    assert store["cache"].get_entry("banners")["data"] == ["spring"]
