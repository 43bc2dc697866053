# app/main.py
from fastapi import FastAPI, Depends, File, UploadFile, Response
from fastapi.middleware.cors import CORSMiddleware
from typing import Optional, Dict, Any, List

from . import config
from .auth import get_current_user, require_admin, ensure_admins
from .core import (
    ProductIn, ProductUpdate, SignupIn, LoginIn, AddToCartIn, UpdateQuantityIn,
    SaveItemIn, MoveItemIn, CreateOrderRequest, VerifyPaymentRequest,
    PaymentFailedIn, ProfileUpdateIn,
)
from .gateway import RazorpayGateway, get_gateway
from .models import CartItem, Order, Product, Profile, SavedItem
from .logger import get_logger
from . import services

logger = get_logger(__name__)

app = FastAPI(title="jewelry-store")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ensure_admins()

User = Dict[str, Any]

# ---------------------------
# Health
# ---------------------------
@app.get("/")
async def root():
    return {"status": "ok", "service": "jewelry-store"}

# ---------------------------
# Auth
# ---------------------------
@app.post("/auth/signup", status_code=201)
async def signup(payload: SignupIn):
    return await services.signup_logic(payload)

@app.post("/auth/login")
async def login(payload: LoginIn):
    return await services.login_logic(payload)

@app.get("/auth/me")
async def me(user: User = Depends(get_current_user)):
    return await services.me_logic(user)

# ---------------------------
# Products
# ---------------------------
@app.get("/products", response_model=List[Product])
async def list_products(category: Optional[str] = None, gender: Optional[str] = None, new_arrivals: bool = False):
    return await services.list_products_logic(category, gender, new_arrivals)

@app.get("/products/{product_id}", response_model=Product)
async def get_product(product_id: str):
    return await services.get_product_logic(product_id)

# ---------------------------
# Admin: products and storage
# ---------------------------
@app.post("/admin/products", status_code=201, response_model=Product)
async def admin_create_product(payload: ProductIn, admin: User = Depends(require_admin)):
    return await services.create_product_logic(payload)

@app.put("/admin/products/{product_id}", response_model=Product)
async def admin_update_product(product_id: str, payload: ProductUpdate, admin: User = Depends(require_admin)):
    return await services.update_product_logic(product_id, payload)

@app.delete("/admin/products/{product_id}")
async def admin_delete_product(product_id: str, admin: User = Depends(require_admin)):
    return await services.delete_product_logic(product_id)

@app.post("/admin/storage/product-images", status_code=201)
async def admin_upload_product_image(file: UploadFile = File(...), admin: User = Depends(require_admin)):
    content = await file.read()
    return await services.upload_product_image_logic(file.filename, content, file.content_type)

@app.post("/admin/orders/{order_id}/refund")
async def admin_refund_order(order_id: str, admin: User = Depends(require_admin)):
    return await services.refund_order_logic(order_id)

@app.get("/storage/{bucket}/{path}")
async def get_storage_object(bucket: str, path: str):
    content_type, content = await services.get_storage_object_logic(bucket, path)
    return Response(content=content, media_type=content_type)

# ---------------------------
# Cart
# ---------------------------
@app.get("/cart", response_model=List[CartItem])
async def view_cart(user: User = Depends(get_current_user)):
    return await services.get_cart_items_logic(user)

@app.post("/cart/add", response_model=CartItem)
async def cart_add(payload: AddToCartIn, user: User = Depends(get_current_user)):
    return await services.cart_add_logic(user, payload)

@app.put("/cart/items/{item_id}")
async def cart_update_quantity(item_id: str, payload: UpdateQuantityIn, user: User = Depends(get_current_user)):
    return await services.update_cart_quantity_logic(user, item_id, payload.quantity)

@app.delete("/cart/items/{item_id}")
async def cart_remove(item_id: str, user: User = Depends(get_current_user)):
    return await services.remove_cart_item_logic(user, item_id)

@app.delete("/cart")
async def cart_clear(user: User = Depends(get_current_user)):
    return await services.clear_cart_logic(user)

@app.post("/cart/move-to-saved", response_model=SavedItem)
async def cart_move_to_saved(payload: MoveItemIn, user: User = Depends(get_current_user)):
    return await services.move_to_saved_logic(user, payload)

# ---------------------------
# Saved items
# ---------------------------
@app.get("/saved", response_model=List[SavedItem])
async def list_saved(user: User = Depends(get_current_user)):
    return await services.get_saved_items_logic(user)

@app.post("/saved")
async def save_item(payload: SaveItemIn, user: User = Depends(get_current_user)):
    return await services.save_item_logic(user, payload)

@app.get("/saved/check/{product_id}")
async def check_saved(product_id: str, user: User = Depends(get_current_user)):
    return await services.check_saved_logic(user, product_id)

@app.delete("/saved/{item_id}")
async def unsave_item(item_id: str, user: User = Depends(get_current_user)):
    return await services.unsave_item_logic(user, item_id)

@app.post("/saved/move-to-cart", response_model=CartItem)
async def saved_move_to_cart(payload: MoveItemIn, user: User = Depends(get_current_user)):
    return await services.move_to_cart_logic(user, payload)

# ---------------------------
# Orders and payments
# ---------------------------
@app.post("/create-payment")
async def create_payment(req: CreateOrderRequest, user: User = Depends(get_current_user), gateway: RazorpayGateway = Depends(get_gateway)):
    return await services.create_payment_logic(user, req, gateway)

@app.post("/verify-payment")
async def verify_payment(req: VerifyPaymentRequest, user: User = Depends(get_current_user), gateway: RazorpayGateway = Depends(get_gateway)):
    return await services.verify_payment_logic(user, req, gateway)

@app.post("/payment-failed")
async def payment_failed(req: PaymentFailedIn, user: User = Depends(get_current_user)):
    return await services.payment_failed_logic(user, req)

@app.get("/orders", response_model=List[Order])
async def list_orders(user: User = Depends(get_current_user)):
    return await services.list_orders_logic(user)

# ---------------------------
# Profile
# ---------------------------
@app.get("/profile", response_model=Profile)
async def get_profile(user: User = Depends(get_current_user)):
    return await services.get_profile_logic(user)

@app.put("/profile", response_model=Profile)
async def update_profile(payload: ProfileUpdateIn, user: User = Depends(get_current_user)):
    return await services.update_profile_logic(user, payload)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
