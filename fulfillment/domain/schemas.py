# fulfillment/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional
from decimal import Decimal
from datetime import datetime

from fulfillment.domain.enums import OrderStatus


class CartItemIn(BaseModel):
    """Adding a product to the caller's cart."""

    product_id: int = Field(..., gt=0, description="Catalog product id")
    quantity: int = Field(..., gt=0, description="Units to add (> 0)")


class CartQuantityIn(BaseModel):
    """Setting a line item's quantity; 0 removes the line."""

    quantity: int = Field(..., ge=0, description="New quantity (>= 0)")


class CartLineOut(BaseModel):
    item_id: int
    product_id: int
    quantity: int
    captured_price: Decimal
    product_name: str
    product_image: Optional[str] = None
    current_price: Decimal


class CartOut(BaseModel):
    cart_id: Optional[int] = None
    items: List[CartLineOut]
    subtotal: Decimal


class CheckoutIn(BaseModel):
    """Checkout request; amounts are recorded as declared."""

    address_id: str = Field(..., min_length=1, max_length=64)
    payment_method: str = Field(..., min_length=1, max_length=50)
    shipping_cost: Decimal = Field(..., ge=0)
    total_amount: Decimal = Field(..., ge=0)


class OrderCreatedOut(BaseModel):
    id: int
    status: OrderStatus
    total_amount: Decimal
    shipping_cost: Decimal
    payment_method: str
    address_id: str
    created_at: datetime


class OrderSummaryOut(BaseModel):
    id: int
    total_amount: Decimal
    status: OrderStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AdminOrderOut(OrderSummaryOut):
    customer_id: int
    customer_email: Optional[str] = None


class OrderLineOut(BaseModel):
    product_id: int
    quantity: int
    captured_price: Decimal
    product_name: str
    product_image: Optional[str] = None


class OrderDetailOut(BaseModel):
    id: int
    status: OrderStatus
    total_amount: Decimal
    shipping_cost: Decimal
    payment_method: str
    address_id: str
    created_at: datetime
    updated_at: datetime
    items: List[OrderLineOut]


class OrderStatusIn(BaseModel):
    # validated by the service so unknown values map to InvalidArgument
    status: str = Field(..., min_length=1)


class OrderStatusOut(BaseModel):
    id: int
    status: OrderStatus
    updated_at: datetime
