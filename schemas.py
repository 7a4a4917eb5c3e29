"""
Database Schemas for the Fashion E‑commerce app

Each Pydantic model corresponds to a MongoDB collection (lowercased class name).
Request payloads and the request-scoped identity live at the bottom.
"""
from __future__ import annotations
from pydantic import BaseModel, Field, EmailStr, field_validator
from typing import List, Optional, Literal

# -----------------------------
# Auth / Users
# -----------------------------
class User(BaseModel):
    name: str = Field(..., min_length=2, max_length=80)
    email: EmailStr
    password_hash: str
    role: Literal["client", "admin"] = "client"
    is_active: bool = True

# -----------------------------
# Catalog
# -----------------------------
class StockEntry(BaseModel):
    size: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=0)

class Product(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    category: str = Field(..., min_length=1)
    stock: List[StockEntry] = []
    image_url: Optional[str] = None
    image_id: Optional[str] = None  # asset id on the image host, used for deletion

    @field_validator("stock")
    @classmethod
    def sizes_unique(cls, v: List[StockEntry]):
        sizes = [s.size for s in v]
        if len(sizes) != len(set(sizes)):
            raise ValueError("Stock sizes must be unique")
        return v

# -----------------------------
# Orders / Checkout
# -----------------------------
class OrderItem(BaseModel):
    product_id: str
    name: str
    size: str
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)  # unit price at purchase time

class ShippingAddress(BaseModel):
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=1)

class PaymentDetails(BaseModel):
    method: str
    transaction_id: Optional[str] = None
    status: Literal["Pending", "Completed", "Failed"] = "Pending"

class Order(BaseModel):
    user_id: str
    items: List[OrderItem] = Field(..., min_length=1)
    total_amount: float = Field(..., ge=0)
    status: Literal["Pending", "Processing", "Shipped", "Delivered", "Cancelled"] = "Pending"
    shipping_address: ShippingAddress
    payment: PaymentDetails

# -----------------------------
# Request payloads
# -----------------------------
class RegisterPayload(BaseModel):
    name: str = Field(..., min_length=2, max_length=80)
    email: EmailStr
    password: str = Field(..., min_length=6)

class LoginPayload(BaseModel):
    email: EmailStr
    password: str

class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = Field(None, min_length=1)
    stock: Optional[List[StockEntry]] = None
    image_url: Optional[str] = None
    image_id: Optional[str] = None

    @field_validator("stock")
    @classmethod
    def sizes_unique(cls, v: Optional[List[StockEntry]]):
        if v is not None and len({s.size for s in v}) != len(v):
            raise ValueError("Stock sizes must be unique")
        return v

class CartLine(BaseModel):
    product_id: str
    size: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)

class OrderPayload(BaseModel):
    items: List[CartLine] = Field(..., min_length=1)
    shipping_address: ShippingAddress

# -----------------------------
# Request-scoped identity
# -----------------------------
class CurrentUser(BaseModel):
    """Verified caller resolved by the access gate. Never carries the password hash."""
    id: str
    name: str
    email: str
    role: Literal["client", "admin"]
    is_active: bool
