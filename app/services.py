import os
import time
import uuid
from typing import Optional, Dict, Any, List

from fastapi import HTTPException
from pydantic import ValidationError

from . import config, database
from .auth import create_token, hash_password, check_password, is_admin
from .core import (
    ProductIn, ProductUpdate, SignupIn, LoginIn, AddToCartIn, SaveItemIn,
    MoveItemIn, CreateOrderRequest, VerifyPaymentRequest, PaymentFailedIn,
    ProfileUpdateIn, QuantityPolicy, _make_product_dict, now_iso, iso_in_days,
)
from .database import _get_lock
from .gateway import GatewayError, RazorpayGateway
from .logger import get_logger
from .models import Product, PRODUCT_CATEGORIES, PRODUCT_GENDERS, ORDER_TRANSITIONS

logger = get_logger(__name__)

# This file contains the core logic for all API endpoints.

# Helpers
def get_quantity_policy() -> QuantityPolicy:
    return QuantityPolicy(
        min_quantity=config.CART_MIN_QUANTITY,
        max_quantity=config.CART_MAX_QUANTITY or None,
    )

def assert_is_product(row: Dict[str, Any]) -> None:
    # Advisory only: rows with unexpected enum values are still served.
    if row.get("category") not in PRODUCT_CATEGORIES:
        logger.warning("Unexpected category value: %s (product %s)", row.get("category"), row.get("id"))
    if row.get("gender") and row.get("gender") not in PRODUCT_GENDERS:
        logger.warning("Unexpected gender value: %s (product %s)", row.get("gender"), row.get("id"))

def _product_out(row: Dict[str, Any]) -> Dict[str, Any]:
    assert_is_product(row)
    row = dict(row)
    row["gender"] = row.get("gender") or "unisex"
    row["additional_images"] = row.get("additional_images") or []
    return Product(**row).model_dump()

def _with_product(row: Dict[str, Any]) -> Dict[str, Any]:
    prod = database.get("products", row["product_id"])
    row["product"] = _product_out(prod) if prod else None
    return row

def _owned(table: str, row_id: str, user: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    row = database.get(table, row_id)
    if not row or row.get("user_id") != user["id"]:
        return None
    return row

def _is_expired(row: Dict[str, Any]) -> bool:
    expires_at = row.get("expires_at")
    return bool(expires_at) and expires_at <= now_iso()

def _live_saved(user: Dict[str, Any], product_id: str) -> List[Dict[str, Any]]:
    """Saved rows for (user, product) that are still visible. Expired ones are purged."""
    live = []
    for row in database.select("saved_items", user_id=user["id"], product_id=product_id):
        if _is_expired(row):
            database.delete("saved_items", id=row["id"])
        else:
            live.append(row)
    return live

def _transition(order: Dict[str, Any], new_status: str) -> None:
    if new_status not in ORDER_TRANSITIONS.get(order["status"], ()):
        raise HTTPException(
            status_code=409,
            detail=f"invalid order transition {order['status']} -> {new_status}",
        )

def generate_receipt_id() -> str:
    return f"rcpt_{int(time.time())}_{uuid.uuid4().hex[:8]}"

# Auth endpoints
def _token_response(user: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "token": create_token(user),
        "user_id": user["id"],
        "email": user["email"],
        "is_admin": is_admin(user["email"]),
    }

async def signup_logic(payload: SignupIn):
    email = payload.email.strip().lower()
    if database.select("users", email=email):
        raise HTTPException(status_code=400, detail="Email already registered")
    ts = now_iso()
    user = database.insert("users", {
        "email": email,
        "password_hash": hash_password(payload.password),
        "created_at": ts,
    })
    database.insert("profiles", {
        "id": user["id"],
        "email": email,
        "full_name": payload.full_name,
        "avatar_url": None,
        "created_at": ts,
        "updated_at": ts,
    })
    logger.info("User signed up: %s", email)
    return _token_response(user)

async def login_logic(payload: LoginIn):
    found = database.select("users", email=payload.email.strip().lower())
    if not found or not check_password(payload.password, found[0]["password_hash"]):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return _token_response(found[0])

async def me_logic(user: Dict[str, Any]):
    return {"user_id": user["id"], "email": user["email"], "is_admin": is_admin(user["email"])}

# Product endpoints
async def list_products_logic(category: Optional[str] = None, gender: Optional[str] = None, new_arrivals: bool = False):
    out = []
    for p in database.select("products", order_by="created_at", descending=True):
        if category and p.get("category") != category:
            continue
        if gender and (p.get("gender") or "unisex") != gender:
            continue
        if new_arrivals and not p.get("is_new_arrival"):
            continue
        out.append(_product_out(p))
    return out

async def get_product_logic(product_id: str):
    p = database.get("products", product_id)
    if not p:
        raise HTTPException(status_code=404, detail="product not found")
    return _product_out(p)

async def create_product_logic(payload: ProductIn):
    row = database.insert("products", _make_product_dict(database.new_id(), payload))
    logger.info("Product created: %s (%s)", row["id"], row["name"])
    return _product_out(row)

async def update_product_logic(product_id: str, payload: ProductUpdate):
    existing = database.get("products", product_id)
    if not existing:
        raise HTTPException(status_code=404, detail="product not found")
    changes = payload.model_dump(exclude_unset=True)
    changes["updated_at"] = now_iso()
    # Validate the merged row first so a bad write never reaches the table.
    try:
        out = _product_out({**existing, **changes})
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
    database.update("products", product_id, changes)
    logger.info("Product updated: %s", product_id)
    return out

async def delete_product_logic(product_id: str):
    if not database.delete("products", id=product_id):
        raise HTTPException(status_code=404, detail="product not found")
    logger.info("Product deleted: %s", product_id)
    return {"status": "deleted", "id": product_id}

async def upload_product_image_logic(filename: str, content: bytes, content_type: Optional[str]):
    if not content:
        raise HTTPException(status_code=400, detail="empty upload")
    ext = os.path.splitext(filename or "")[1].lstrip(".").lower() or "bin"
    path = f"{uuid.uuid4().hex[:13]}.{ext}"
    bucket = config.PRODUCT_IMAGE_BUCKET
    database.put_object(bucket, path, content, content_type or "application/octet-stream")
    return {"path": path, "public_url": f"{config.PUBLIC_BASE_URL}/storage/{bucket}/{path}"}

async def get_storage_object_logic(bucket: str, path: str):
    obj = database.get_object(bucket, path)
    if obj is None:
        raise HTTPException(status_code=404, detail="object not found")
    return obj

# Cart endpoints
async def get_cart_items_logic(user: Dict[str, Any]):
    rows = database.select("cart_items", order_by="created_at", user_id=user["id"])
    return [_with_product(r) for r in rows]

async def cart_add_logic(user: Dict[str, Any], payload: AddToCartIn):
    if payload.quantity <= 0:
        raise HTTPException(status_code=400, detail="quantity must be > 0")
    if not database.get("products", payload.product_id):
        raise HTTPException(status_code=404, detail="product not found")

    policy = get_quantity_policy()
    async with _get_lock(f"user:{user['id']}"):
        existing = database.select("cart_items", user_id=user["id"], product_id=payload.product_id)
        if existing:
            row = existing[0]
            quantity = row["quantity"] + payload.quantity
            if not policy.allows(quantity):
                raise HTTPException(status_code=400, detail=policy.describe())
            row = database.update("cart_items", row["id"], {"quantity": quantity, "updated_at": now_iso()})
        else:
            if not policy.allows(payload.quantity):
                raise HTTPException(status_code=400, detail=policy.describe())
            ts = now_iso()
            row = database.insert("cart_items", {
                "user_id": user["id"],
                "product_id": payload.product_id,
                "quantity": payload.quantity,
                "created_at": ts,
                "updated_at": ts,
            })
    return _with_product(row)

async def remove_cart_item_logic(user: Dict[str, Any], item_id: str):
    # Removing something already gone is not an error.
    removed = database.delete("cart_items", id=item_id, user_id=user["id"])
    return {"status": "removed", "removed": removed}

async def update_cart_quantity_logic(user: Dict[str, Any], item_id: str, quantity: int):
    if quantity < 1:
        return await remove_cart_item_logic(user, item_id)
    policy = get_quantity_policy()
    if not policy.allows(quantity):
        raise HTTPException(status_code=400, detail=policy.describe())
    if not _owned("cart_items", item_id, user):
        raise HTTPException(status_code=404, detail="cart item not found")
    row = database.update("cart_items", item_id, {"quantity": quantity, "updated_at": now_iso()})
    return _with_product(row)

async def clear_cart_logic(user: Dict[str, Any]):
    removed = database.delete("cart_items", user_id=user["id"])
    return {"status": "cleared", "removed": removed}

async def move_to_saved_logic(user: Dict[str, Any], payload: MoveItemIn):
    async with _get_lock(f"user:{user['id']}"):
        cart_row = _owned("cart_items", payload.item_id, user)
        saved = _live_saved(user, payload.product_id)

        if cart_row is None:
            if saved:
                return _with_product(saved[0])
            raise HTTPException(status_code=404, detail="cart item not found")
        if cart_row["product_id"] != payload.product_id:
            raise HTTPException(status_code=400, detail="product does not match cart item")

        inserted = None
        if saved:
            target = saved[0]
        else:
            inserted = target = database.insert("saved_items", {
                "user_id": user["id"],
                "product_id": payload.product_id,
                "created_at": now_iso(),
                "expires_at": iso_in_days(config.SAVED_ITEM_TTL_DAYS),
            })
        try:
            database.delete("cart_items", id=cart_row["id"])
        except Exception:
            logger.exception("Failed to remove cart item %s; rolling back save", cart_row["id"])
            if inserted is not None:
                database.delete("saved_items", id=inserted["id"])
            raise HTTPException(status_code=500, detail="failed to move item to saved items")
    return _with_product(target)

# Saved items endpoints
async def get_saved_items_logic(user: Dict[str, Any]):
    rows = database.select("saved_items", order_by="created_at", descending=True, user_id=user["id"])
    return [_with_product(r) for r in rows if not _is_expired(r)]

async def save_item_logic(user: Dict[str, Any], payload: SaveItemIn):
    if not database.get("products", payload.product_id):
        raise HTTPException(status_code=404, detail="product not found")
    async with _get_lock(f"user:{user['id']}"):
        existing = _live_saved(user, payload.product_id)
        if existing:
            return {"status": "already_saved", "item": _with_product(existing[0])}
        row = database.insert("saved_items", {
            "user_id": user["id"],
            "product_id": payload.product_id,
            "created_at": now_iso(),
            "expires_at": iso_in_days(config.SAVED_ITEM_TTL_DAYS),
        })
    return {"status": "saved", "item": _with_product(row)}

async def check_saved_logic(user: Dict[str, Any], product_id: str):
    rows = database.select("saved_items", user_id=user["id"], product_id=product_id)
    return {"product_id": product_id, "saved": any(not _is_expired(r) for r in rows)}

async def unsave_item_logic(user: Dict[str, Any], item_id: str):
    removed = database.delete("saved_items", id=item_id, user_id=user["id"])
    return {"status": "removed", "removed": removed}

async def move_to_cart_logic(user: Dict[str, Any], payload: MoveItemIn):
    policy = get_quantity_policy()
    async with _get_lock(f"user:{user['id']}"):
        saved_row = _owned("saved_items", payload.item_id, user)
        existing = database.select("cart_items", user_id=user["id"], product_id=payload.product_id)

        if saved_row is None:
            if existing:
                return _with_product(existing[0])
            raise HTTPException(status_code=404, detail="saved item not found")
        if saved_row["product_id"] != payload.product_id:
            raise HTTPException(status_code=400, detail="product does not match saved item")

        ts = now_iso()
        previous_quantity = None
        if existing:
            previous_quantity = existing[0]["quantity"]
            if not policy.allows(previous_quantity + 1):
                raise HTTPException(status_code=400, detail=policy.describe())
            target = database.update("cart_items", existing[0]["id"], {"quantity": previous_quantity + 1, "updated_at": ts})
        else:
            target = database.insert("cart_items", {
                "user_id": user["id"],
                "product_id": payload.product_id,
                "quantity": 1,
                "created_at": ts,
                "updated_at": ts,
            })
        try:
            database.delete("saved_items", id=saved_row["id"])
        except Exception:
            logger.exception("Failed to remove saved item %s; rolling back cart change", saved_row["id"])
            if previous_quantity is None:
                database.delete("cart_items", id=target["id"])
            else:
                database.update("cart_items", target["id"], {"quantity": previous_quantity})
            raise HTTPException(status_code=500, detail="failed to move item to cart")
    return _with_product(target)

# Order / payment endpoints
async def create_payment_logic(user: Dict[str, Any], req: CreateOrderRequest, gateway: RazorpayGateway):
    receipt_id = req.receipt_id or generate_receipt_id()

    try:
        gw_order = gateway.create_order(req.amount, req.currency, receipt_id)
    except GatewayError as e:
        logger.error("Gateway order creation failed for %s: %s", receipt_id, e)
        raise HTTPException(status_code=502, detail="Failed to create Razorpay order")

    ts = now_iso()
    order = database.insert("orders", {
        "user_id": user["id"],
        "amount": req.amount,
        "currency": req.currency,
        "receipt_id": receipt_id,
        "order_id": gw_order["id"],
        "payment_id": None,
        "shipping_address": req.shipping_address,
        "billing_address": req.billing_address or req.shipping_address,
        "status": "created",
        "created_at": ts,
        "updated_at": ts,
    })

    rows = [{
        "order_id": order["id"],
        "product_id": it.product_id,
        "quantity": it.quantity,
        "price": it.price,
    } for it in req.items]
    try:
        database.insert_many("order_items", rows)
    except Exception:
        # The order stays; items can be reconciled from the gateway receipt.
        logger.exception("Order items insert failed for order %s", order["id"])

    logger.info("Order %s created (gateway %s, receipt %s)", order["id"], gw_order["id"], receipt_id)
    return {
        "id": order["id"],
        "razorpay_order_id": gw_order["id"],
        "key": gateway.key_id,
        "amount": req.amount,
        "currency": req.currency,
        "receipt": receipt_id,
    }

async def verify_payment_logic(user: Dict[str, Any], req: VerifyPaymentRequest, gateway: RazorpayGateway):
    if not gateway.verify_payment_signature(req.razorpay_order_id, req.razorpay_payment_id, req.razorpay_signature):
        logger.warning("Invalid payment signature for order %s", req.order_id)
        raise HTTPException(status_code=400, detail="Invalid signature")

    async with _get_lock(f"order:{req.order_id}"):
        order = database.get("orders", req.order_id)
        if not order:
            raise HTTPException(status_code=404, detail="Order not found")
        if order["user_id"] != user["id"]:
            logger.warning("User %s tried to verify order %s owned by %s", user["id"], order["id"], order["user_id"])
            raise HTTPException(status_code=403, detail="Unauthorized access to this order")
        if order["order_id"] != req.razorpay_order_id:
            raise HTTPException(status_code=400, detail="Gateway order does not match")

        if order["status"] == "paid" and order.get("payment_id") == req.razorpay_payment_id:
            return {"success": True, "order_id": order["id"], "payment_id": req.razorpay_payment_id}

        _transition(order, "paid")
        database.update("orders", order["id"], {
            "status": "paid",
            "payment_id": req.razorpay_payment_id,
            "updated_at": now_iso(),
        })

    try:
        database.delete("cart_items", user_id=user["id"])
    except Exception:
        # Payment already succeeded; a stale cart is the lesser problem.
        logger.exception("Cart deletion failed for user %s after order %s", user["id"], order["id"])

    logger.info("Order %s paid (payment %s)", order["id"], req.razorpay_payment_id)
    return {"success": True, "order_id": order["id"], "payment_id": req.razorpay_payment_id}

async def payment_failed_logic(user: Dict[str, Any], req: PaymentFailedIn):
    async with _get_lock(f"order:{req.order_id}"):
        order = database.get("orders", req.order_id)
        if not order:
            raise HTTPException(status_code=404, detail="Order not found")
        if order["user_id"] != user["id"]:
            raise HTTPException(status_code=403, detail="Unauthorized access to this order")
        _transition(order, "failed")
        order = database.update("orders", order["id"], {
            "status": "failed",
            "failure_reason": req.reason,
            "updated_at": now_iso(),
        })
    logger.info("Order %s marked failed: %s", order["id"], req.reason)
    return {"order_id": order["id"], "status": order["status"]}

async def refund_order_logic(order_id: str):
    async with _get_lock(f"order:{order_id}"):
        order = database.get("orders", order_id)
        if not order:
            raise HTTPException(status_code=404, detail="Order not found")
        _transition(order, "refunded")
        order = database.update("orders", order_id, {"status": "refunded", "updated_at": now_iso()})
    logger.info("Order %s refunded", order_id)
    return {"order_id": order_id, "status": order["status"]}

async def list_orders_logic(user: Dict[str, Any]):
    out: List[Dict[str, Any]] = []
    for o in database.select("orders", order_by="created_at", descending=True, user_id=user["id"]):
        o["items"] = database.select("order_items", order_id=o["id"])
        out.append(o)
    return out

# Profile endpoints
async def get_profile_logic(user: Dict[str, Any]):
    profile = database.get("profiles", user["id"])
    if not profile:
        raise HTTPException(status_code=404, detail="profile not found")
    return profile

async def update_profile_logic(user: Dict[str, Any], payload: ProfileUpdateIn):
    changes = payload.model_dump(exclude_unset=True)
    changes["updated_at"] = now_iso()
    profile = database.update("profiles", user["id"], changes)
    if not profile:
        raise HTTPException(status_code=404, detail="profile not found")
    return profile
