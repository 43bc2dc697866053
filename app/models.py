# app/models.py
from pydantic import BaseModel, computed_field
from typing import Optional, Dict, Any, List, Literal, get_args

ProductCategory = Literal["earrings", "chains", "bracelets", "rings", "necklaces", "pendants"]
ProductGender = Literal["women", "men", "unisex"]
OrderStatus = Literal["created", "paid", "failed", "refunded"]

PRODUCT_CATEGORIES = get_args(ProductCategory)
PRODUCT_GENDERS = get_args(ProductGender)

# Allowed order status changes; anything else is rejected.
ORDER_TRANSITIONS: Dict[str, tuple] = {
    "created": ("paid", "failed"),
    "paid": ("refunded",),
    "failed": (),
    "refunded": (),
}


class Product(BaseModel):
    """
    Product row as stored in the products table.
    Prices are integer minor currency units (paise for INR).
    Category and gender are plain strings here because rows written before
    the enums were fixed must still be readable.
    """
    id: str
    name: str
    price: int
    category: str
    gender: str = "unisex"
    description: Optional[str] = None
    image_url: Optional[str] = None
    additional_images: List[str] = []
    video_url: Optional[str] = None
    is_new_arrival: bool = False
    is_sold_out: bool = False
    created_at: str
    updated_at: str

    @computed_field
    @property
    def in_stock(self) -> bool:
        return not self.is_sold_out


class CartItem(BaseModel):
    id: str
    user_id: str
    product_id: str
    quantity: int
    created_at: str
    updated_at: str
    product: Optional[Product] = None


class SavedItem(BaseModel):
    id: str
    user_id: str
    product_id: str
    created_at: str
    expires_at: Optional[str] = None
    product: Optional[Product] = None


class OrderItem(BaseModel):
    id: str
    order_id: str
    product_id: str
    quantity: int
    price: int


class Order(BaseModel):
    id: str
    user_id: str
    amount: int
    currency: str
    order_id: str
    receipt_id: str
    payment_id: Optional[str] = None
    shipping_address: Dict[str, Any]
    billing_address: Dict[str, Any]
    status: OrderStatus
    failure_reason: Optional[str] = None
    created_at: str
    updated_at: str
    items: List[OrderItem] = []


class Profile(BaseModel):
    id: str
    email: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: str
    updated_at: str
