# app/gateway.py
"""
Razorpay REST client and payment signature helpers.

The checkout widget hands back (order id, payment id, signature); the
signature is HMAC-SHA256 over "order_id|payment_id" keyed with the account
secret, hex encoded.
"""
import hashlib
import hmac
from typing import Any, Dict, Optional

import requests
from fastapi import HTTPException

from . import config
from .logger import get_logger

logger = get_logger(__name__)


class GatewayError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


def compute_signature(secret: str, gateway_order_id: str, gateway_payment_id: str) -> str:
    message = f"{gateway_order_id}|{gateway_payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_signature(secret: str, gateway_order_id: str, gateway_payment_id: str, signature: str) -> bool:
    expected = compute_signature(secret, gateway_order_id, gateway_payment_id)
    return hmac.compare_digest(expected.encode("utf-8"), (signature or "").encode("utf-8"))


class RazorpayGateway:
    def __init__(self, key_id: str, key_secret: str, base_url: str = config.RAZORPAY_API_URL, timeout: int = config.GATEWAY_TIMEOUT):
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.auth = (key_id, key_secret)

    def create_order(self, amount: int, currency: str, receipt: str) -> Dict[str, Any]:
        try:
            r = self.session.post(f"{self.base_url}/orders", json={
                "amount": amount, "currency": currency, "receipt": receipt
            }, timeout=self.timeout)
        except requests.RequestException as e:
            raise GatewayError(f"gateway unreachable: {e}") from e

        if not r.ok:
            try:
                payload = r.json()
            except ValueError:
                payload = r.text
            logger.error("Razorpay error (%s): %s", r.status_code, payload)
            raise GatewayError("failed to create gateway order", r.status_code, payload)
        return r.json()

    def verify_payment_signature(self, gateway_order_id: str, gateway_payment_id: str, signature: str) -> bool:
        return verify_signature(self.key_secret, gateway_order_id, gateway_payment_id, signature)


def get_gateway() -> RazorpayGateway:
    if not (config.RAZORPAY_KEY_ID and config.RAZORPAY_KEY_SECRET):
        raise HTTPException(status_code=500, detail="Razorpay keys not configured")
    return RazorpayGateway(config.RAZORPAY_KEY_ID, config.RAZORPAY_KEY_SECRET)
