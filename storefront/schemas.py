from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List
from datetime import datetime
from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Checkout
class CheckoutRequest(BaseModel):
    shipping_address: str = Field(..., min_length=10, max_length=500, description="Shipping address")

    @field_validator("shipping_address")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 10:
            raise ValueError("shipping_address must be at least 10 characters long")
        return value


class OrderCreatedOut(BaseModel):
    id: int
    total_amount: Decimal
    status: OrderStatus
    created_at: datetime


# Order queries
class OrderSummaryOut(BaseModel):
    id: int
    total_amount: Decimal
    status: OrderStatus
    shipping_address: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_orders: int
    has_next_page: bool
    has_prev_page: bool


class OrderListResponse(BaseModel):
    orders: List[OrderSummaryOut]
    pagination: Pagination


class OrderProductOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    category: Optional[str] = None

    model_config = {"from_attributes": True}


class OrderItemOut(BaseModel):
    quantity: int
    price: Decimal
    item_total: Decimal
    product: Optional[OrderProductOut] = None


class OrderDetailOut(OrderSummaryOut):
    items: List[OrderItemOut] = []


class OrderStatsOut(BaseModel):
    total_orders: int
    total_spent: Decimal
    pending_orders: int
    processing_orders: int
    shipped_orders: int
    delivered_orders: int
    cancelled_orders: int


# Cart
class AddToCartRequest(BaseModel):
    product_id: int = Field(..., gt=0, description="Product ID")
    quantity: int = Field(..., ge=1, le=100, description="Product quantity")


class UpdateCartItemRequest(BaseModel):
    quantity: int = Field(..., ge=1, le=100, description="New product quantity")


class CartProductOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    image_url: Optional[str] = None
    category: Optional[str] = None
    stock_quantity: int

    model_config = {"from_attributes": True}


class CartItemOut(BaseModel):
    cart_item_id: int
    quantity: int
    added_at: Optional[datetime] = None
    product: CartProductOut
    item_total: Decimal


class CartOut(BaseModel):
    items: List[CartItemOut]
    total_items: int
    cart_total: Decimal
