from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pydantic import BaseModel, Field, field_validator
from typing import Optional, Dict, Any, List

from .models import ProductCategory, ProductGender

# Request schemas and small helpers shared by the endpoint logic.

class ProductIn(BaseModel):
    name: str = Field(..., min_length=1)
    price: int = Field(..., ge=0)
    category: ProductCategory
    gender: ProductGender = "unisex"
    description: Optional[str] = None
    image_url: Optional[str] = None
    additional_images: List[str] = []
    video_url: Optional[str] = None
    is_new_arrival: bool = False
    is_sold_out: bool = False

class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    price: Optional[int] = Field(None, ge=0)
    category: Optional[ProductCategory] = None
    gender: Optional[ProductGender] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    additional_images: Optional[List[str]] = None
    video_url: Optional[str] = None
    is_new_arrival: Optional[bool] = None
    is_sold_out: Optional[bool] = None

    # Optional means "leave unchanged"; an explicit null for a required column is rejected.
    @field_validator("name", "price", "category", "gender", "additional_images", "is_new_arrival", "is_sold_out")
    @classmethod
    def _not_null(cls, v):
        if v is None:
            raise ValueError("may not be null")
        return v

class SignupIn(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    full_name: Optional[str] = None

class LoginIn(BaseModel):
    email: str
    password: str

class AddToCartIn(BaseModel):
    product_id: str
    quantity: int = 1

class UpdateQuantityIn(BaseModel):
    quantity: int

class SaveItemIn(BaseModel):
    product_id: str

class MoveItemIn(BaseModel):
    item_id: str
    product_id: str

class OrderLineIn(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    price: int = Field(..., ge=0)

class CreateOrderRequest(BaseModel):
    amount: int = Field(..., gt=0)
    currency: str = "INR"
    shipping_address: Dict[str, Any]
    billing_address: Optional[Dict[str, Any]] = None
    items: List[OrderLineIn]
    receipt_id: Optional[str] = None

class VerifyPaymentRequest(BaseModel):
    order_id: str
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str

class PaymentFailedIn(BaseModel):
    order_id: str
    reason: Optional[str] = None

class ProfileUpdateIn(BaseModel):
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


@dataclass(frozen=True)
class QuantityPolicy:
    """Bounds for a cart line quantity. max_quantity=None means unbounded."""
    min_quantity: int = 1
    max_quantity: Optional[int] = 10

    def allows(self, quantity: int) -> bool:
        if quantity < self.min_quantity:
            return False
        if self.max_quantity is not None and quantity > self.max_quantity:
            return False
        return True

    def describe(self) -> str:
        if self.max_quantity is None:
            return f"quantity must be >= {self.min_quantity}"
        return f"quantity must be between {self.min_quantity} and {self.max_quantity}"


def now_utc() -> datetime:
    return datetime.now(timezone.utc)

def now_iso() -> str:
    return now_utc().isoformat()

def iso_in_days(days: int) -> str:
    return (now_utc() + timedelta(days=days)).isoformat()

def _make_product_dict(product_id: str, p: ProductIn) -> Dict[str, Any]:
    ts = now_iso()
    row = p.model_dump()
    row.update({"id": product_id, "created_at": ts, "updated_at": ts})
    return row
