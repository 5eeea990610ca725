"""Pydantic schemas for request/response validation.

Field names are snake_case in Python and camelCase on the wire.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from storefront.models import OrderStatus, PaymentMethod


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True
    )


class MessageResponse(CamelModel):
    success: bool = True
    message: str


# Authentication

class UserResponse(CamelModel):
    id: int
    email: str
    name: Optional[str] = None
    role: str


class RegisterRequest(CamelModel):
    """Schema for account registration."""
    email: EmailStr
    password: str = Field(min_length=1)
    name: str = Field(min_length=1)


class RegisterResponse(CamelModel):
    message: str
    user: UserResponse


class GuestCartLine(CamelModel):
    """A line of the anonymous cart kept on the client."""
    product_id: int
    quantity: int


class LoginRequest(CamelModel):
    """Schema for login; guest cart lines are merged once credentials check out."""
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)
    guest_cart: List[GuestCartLine] = Field(default_factory=list)


class LoginResponse(CamelModel):
    message: str
    user: UserResponse
    token: str
    token_type: str = "bearer"
    merged_items: int = 0


class IdentityResponse(CamelModel):
    user: UserResponse


# Products

class ProductCreate(CamelModel):
    """Schema for creating a product."""
    name: str = Field(min_length=1)
    description: Optional[str] = None
    price: float = Field(ge=0)
    stock: int = Field(default=0, ge=0)
    image_url: Optional[str] = None
    is_featured: bool = False


class ProductUpdate(CamelModel):
    """Partial product update; ``total_sold`` is an administrative correction."""
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    stock: Optional[int] = Field(default=None, ge=0)
    image_url: Optional[str] = None
    is_featured: Optional[bool] = None
    total_sold: Optional[int] = Field(default=None, ge=0)


class ProductResponse(CamelModel):
    """Schema for product response."""
    id: int
    name: str
    description: Optional[str] = None
    price: float
    stock: int
    total_sold: int
    is_featured: bool
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class StockAdjustRequest(CamelModel):
    operation: Literal["increment", "decrement"]
    amount: int = Field(default=1, ge=1)


class StockAdjustResponse(CamelModel):
    success: bool = True
    product: ProductResponse


class ProductSummary(CamelModel):
    id: int
    name: str
    price: float
    stock: int
    image_url: Optional[str] = None


# Cart

class AddToCartRequest(CamelModel):
    """Schema for add to cart request."""
    product_id: int
    quantity: int = Field(default=1, gt=0)


class UpdateCartItemRequest(CamelModel):
    """Target quantity for a cart line; zero or less removes the line."""
    quantity: int


class MergeCartRequest(CamelModel):
    guest_cart: List[GuestCartLine] = Field(default_factory=list)


class MergeCartResponse(CamelModel):
    success: bool = True
    message: str
    merged_items: int


class CartItemResponse(CamelModel):
    """Schema for cart item in response."""
    cart_item_id: int
    product_id: int
    quantity: int
    subtotal: float
    product: ProductSummary


class CartResponse(CamelModel):
    """Schema for cart response."""
    cart_id: int
    user_id: int
    items: List[CartItemResponse]
    total: float


# Orders

class OrderLineRequest(CamelModel):
    """A submitted order line; ``id`` is accepted as an alias of ``productId``."""
    product_id: int = Field(validation_alias=AliasChoices("productId", "product_id", "id"))
    quantity: int = Field(gt=0)
    price: float = Field(ge=0)
    name: Optional[str] = None


class CreateOrderRequest(CamelModel):
    """Schema for checkout request."""
    items: List[OrderLineRequest] = Field(min_length=1)
    total: float = Field(ge=0)
    payment_method: PaymentMethod
    user_id: Optional[int] = None
    shipping_address: Optional[str] = None
    contact_number: Optional[str] = None
    payment_proof: Optional[str] = None
    delivery_time: Optional[str] = None


class OrderItemResponse(CamelModel):
    id: int
    product_id: int
    quantity: int
    price: float
    product: Optional[ProductSummary] = None


class OrderUserSummary(CamelModel):
    name: Optional[str] = None
    email: str


class OrderResponse(CamelModel):
    """Schema for order response."""
    id: int
    user_id: Optional[int] = None
    total: float
    status: OrderStatus
    payment_method: PaymentMethod
    shipping_address: Optional[str] = None
    contact_number: Optional[str] = None
    payment_proof: Optional[str] = None
    delivery_time: Optional[str] = None
    decline_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[OrderItemResponse]
    user: Optional[OrderUserSummary] = None


class UpdateOrderStatusRequest(CamelModel):
    status: OrderStatus
    decline_reason: Optional[str] = None


# Admin

class TopProduct(CamelModel):
    name: str
    total_sold: int


class SalesPoint(CamelModel):
    date: str
    amount: float


class DashboardStatsResponse(CamelModel):
    total_revenue: float
    total_orders: int
    top_products: List[TopProduct]
    recent_sales: List[SalesPoint]


# Uploads

class UploadResponse(CamelModel):
    success: bool = True
    file_url: str
    message: str = "File uploaded successfully"
