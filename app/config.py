# app/config.py
import os

# Values are read at import time; tests patch the module attributes directly.

RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID", "").strip()
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET", "").strip()
RAZORPAY_API_URL = os.getenv("RAZORPAY_API_URL", "https://api.razorpay.com/v1").rstrip("/")
GATEWAY_TIMEOUT = int(os.getenv("GATEWAY_TIMEOUT", "10"))

JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
JWT_ALGO = "HS256"
TOKEN_TTL_DAYS = int(os.getenv("TOKEN_TTL_DAYS", "7"))

# 0 disables the upper bound
CART_MAX_QUANTITY = int(os.getenv("CART_MAX_QUANTITY", "10"))
CART_MIN_QUANTITY = 1
SAVED_ITEM_TTL_DAYS = int(os.getenv("SAVED_ITEM_TTL_DAYS", "90"))

PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8085").rstrip("/")
PRODUCT_IMAGE_BUCKET = "product-images"

DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "INR")

PORT = int(os.getenv("PORT", "8085"))


def get_admin_emails() -> list[str]:
    raw = os.getenv("ADMIN_EMAILS", "").strip()
    if not raw:
        return []
    parts = [p.strip().lower() for p in raw.replace(";", ",").split(",")]
    return [p for p in parts if p]
