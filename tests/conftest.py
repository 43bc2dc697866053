# tests/conftest.py
import uuid

import pytest
from fastapi.testclient import TestClient

from app import database
from app.gateway import GatewayError, RazorpayGateway, get_gateway
from app.main import app

TEST_SECRET = "test_secret"


class FakeGateway(RazorpayGateway):
    def __init__(self, order_ids=None, fail=False):
        super().__init__("rzp_test_key", TEST_SECRET, base_url="http://gateway.invalid")
        self.order_ids = list(order_ids or [])
        self.fail = fail
        self.calls = []

    def create_order(self, amount, currency, receipt):
        self.calls.append({"amount": amount, "currency": currency, "receipt": receipt})
        if self.fail:
            raise GatewayError("failed to create gateway order", 500)
        oid = self.order_ids.pop(0) if self.order_ids else f"order_{uuid.uuid4().hex[:10]}"
        return {"id": oid, "amount": amount, "currency": currency, "receipt": receipt, "status": "created"}


@pytest.fixture(autouse=True)
def reset_store():
    database.reset()
    yield
    app.dependency_overrides.clear()
    database.reset()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def gateway():
    gw = FakeGateway()
    app.dependency_overrides[get_gateway] = lambda: gw
    return gw


def signup(client, email, password="secret123"):
    r = client.post("/auth/signup", json={"email": email, "password": password})
    assert r.status_code == 201, r.text
    body = r.json()
    return {"Authorization": f"Bearer {body['token']}"}, body["user_id"]


def make_admin(client, email="admin@example.com"):
    headers, _ = signup(client, email)
    database.insert("admins", {"email": email})
    return headers


def create_product(client, admin_headers, **overrides):
    payload = {"name": "Gold Hoops", "price": 25000, "category": "earrings", "gender": "women"}
    payload.update(overrides)
    r = client.post("/admin/products", json=payload, headers=admin_headers)
    assert r.status_code == 201, r.text
    return r.json()
