"""
Database Schemas for the Sumansi storefront

Each Pydantic model corresponds to one MongoDB collection.
Collection name is the lowercase of the class name:
- User -> "user", Product -> "product", Order -> "order",
  Banner -> "banner", Announcement -> "announcement"

Field names are camelCase, matching what the storefront sends and reads.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator


class CartLine(BaseModel):
    productId: str
    quantity: int = Field(1, ge=1)
    size: str = ""
    color: str = ""

    @property
    def key(self):
        return (self.productId, self.size, self.color)


class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: EmailStr
    phone: str
    password: str = Field(..., description="bcrypt hash")
    userId: str = Field(..., description="External-facing user id")
    avatar: Optional[str] = None
    resetPasswordToken: Optional[str] = None
    resetPasswordExpires: Optional[datetime] = None
    wishlist: List[str] = []
    cart: List[CartLine] = []
    cartVersion: int = 0


class Review(BaseModel):
    rating: float = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1)
    userId: str
    userName: str
    userAvatar: Optional[str] = None
    date: datetime


def split_sizes(value):
    if value is None:
        return []
    if isinstance(value, str):
        return [s.strip() for s in value.split(",") if s.strip()]
    return value


def check_colors(value):
    if not value or any(not isinstance(c, str) or not c.strip() for c in value):
        raise ValueError("At least one valid color is required")
    return value


class ProductFields(BaseModel):
    """Everything a client may send when creating a product."""

    id: str = Field(..., min_length=1, description="Human-assigned product id")
    name: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    marketPrice: float = Field(..., ge=0, description="Strike-through list price")
    category: str = Field(..., min_length=1)
    image: str = Field(..., min_length=1, description="Primary image URL")
    images: List[str] = []
    sizes: List[str] = []
    colors: List[str]
    inStock: bool = True
    description: Optional[str] = None
    isNewArrival: bool = False

    @field_validator("sizes", mode="before")
    @classmethod
    def sizes_from_csv(cls, value):
        return split_sizes(value)

    @field_validator("colors")
    @classmethod
    def colors_not_blank(cls, value):
        return check_colors(value)

    @model_validator(mode="after")
    def market_price_not_below_price(self):
        if self.marketPrice < self.price:
            raise ValueError("marketPrice must be greater than or equal to price")
        return self


class Product(ProductFields):
    reviews: List[Review] = []


class OrderItem(BaseModel):
    productId: str
    name: str = "Unknown Product"
    price: float = 0
    qty: int = Field(1, ge=1)
    size: str = "N/A"
    color: Optional[str] = None


class ShippingAddress(BaseModel):
    fullName: str
    email: EmailStr
    phone: str
    address: str
    city: str
    state: str
    pincode: str
    landmark: str = ""


class Order(BaseModel):
    razorpayOrderId: str
    paymentId: Optional[str] = None
    status: Literal["pending", "completed", "failed"] = "pending"
    items: List[OrderItem]
    shippingAddress: ShippingAddress
    totalAmount: float = Field(..., ge=0)
    paymentMethod: Literal["online", "COD"] = "online"


class Banner(BaseModel):
    image: str
    isActive: bool = True
    order: int = 0


class Announcement(BaseModel):
    text: str = Field(..., min_length=1)
