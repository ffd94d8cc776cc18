"""
Database Schemas for the Storefront

Each stored Pydantic model correlates to a MongoDB collection. The collection name is the lowercase of the class name.
- User -> "user"
- Product -> "product"
- Order -> "order"
- Review -> "review"

Documents are stored with snake_case keys. Request and response bodies use camelCase on the wire
(originalPrice, shippingAddress, createdAt, ...) and accept either spelling on input.
"""

from datetime import datetime
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

OrderStatus = Literal["pending", "processing", "shipped", "delivered"]


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Stored collections
class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address, unique")
    password_hash: str = Field(..., description="BCrypt password hash")
    favorites: List[str] = Field(default_factory=list, description="Favorited product ids")


class ProductCreate(WireModel):
    name: str = Field(..., min_length=1, description="Product name")
    category: str = Field(..., min_length=1, description="Product category")
    price: float = Field(..., ge=0, description="Current price")
    original_price: float = Field(..., ge=0, description="Price before discount")
    rating: float = Field(0, ge=0, le=5, description="Average rating")
    reviews: int = Field(0, ge=0, description="Number of reviews")
    image: str = Field(..., description="Image URL")
    description: str = Field(..., description="Product description")
    tag: str = Field(..., description="Promotional tag")
    stock: int = Field(100, ge=0, description="Units in stock")


class Product(ProductCreate):
    rating_sum: float = Field(0, ge=0, description="Sum of ratings over the stored review set")
    rating_count: int = Field(0, ge=0, description="Size of the stored review set")


class OrderItem(WireModel):
    product: str = Field(..., description="Product id")
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0, description="Unit price at time of order")


class ShippingAddress(WireModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None


class Order(WireModel):
    user: str = Field(..., description="Id of the user placing the order")
    items: List[OrderItem] = Field(..., min_length=1)
    total: float = Field(..., ge=0)
    status: OrderStatus = "pending"
    shipping_address: Optional[ShippingAddress] = None


class Review(WireModel):
    user: str
    product: str
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1)


# Lightweight request models
class RegisterRequest(WireModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginRequest(WireModel):
    email: EmailStr
    password: str


class OrderCreate(WireModel):
    items: List[OrderItem] = Field(..., min_length=1)
    total: float = Field(..., ge=0)
    shipping_address: Optional[ShippingAddress] = None


class ReviewCreate(WireModel):
    product_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1)


class ProfileUpdate(WireModel):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None


# Response models
class MessageResponse(WireModel):
    message: str


class UserSummary(WireModel):
    id: str
    name: str
    email: str


class AuthResponse(WireModel):
    message: str
    token: str
    user: UserSummary


class ProfileOut(WireModel):
    id: str
    name: str
    email: str
    favorites: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class ProductOut(WireModel):
    id: str
    name: str
    category: str
    price: float
    original_price: float
    rating: float
    reviews: int
    image: str
    description: str
    tag: str
    stock: int
    created_at: Optional[datetime] = None


class ProductPage(WireModel):
    products: List[ProductOut]
    total_pages: int
    current_page: int
    total: int


class OrderItemOut(WireModel):
    product: Optional[Union[ProductOut, str]] = None
    quantity: int
    price: float


class OrderOut(WireModel):
    id: str
    user: str
    items: List[OrderItemOut]
    total: float
    status: OrderStatus
    shipping_address: Optional[ShippingAddress] = None
    created_at: Optional[datetime] = None


class ReviewerOut(WireModel):
    id: str
    name: str


class ReviewOut(WireModel):
    id: str
    user: Optional[Union[ReviewerOut, str]] = None
    product: str
    rating: int
    comment: str
    created_at: Optional[datetime] = None
