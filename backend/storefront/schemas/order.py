# storefront/schemas/order.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from storefront.schemas.cart import AddItemBody

# Order statuses. Only pending -> paid is driven by this service.
OrderStatus = Literal[
    "pending",
    "paid",
    "processing",
    "shipped",
    "delivered",
    "cancelled",
]

CLOSED_STATUSES = ("delivered", "cancelled")


class Order(BaseModel):
    id: str
    user_id: Optional[str] = None
    total: Decimal
    status: OrderStatus = "pending"
    created_at: Optional[datetime] = None
    checkout_id: Optional[str] = None
    payment_session_id: Optional[str] = None


class OrderItem(BaseModel):
    """Immutable snapshot of a line at purchase time."""
    order_id: str
    product_id: str
    quantity: int = Field(..., ge=1)
    price_at_order: Decimal
    id: Optional[str] = None


class OrderWithItems(BaseModel):
    order: Order
    items: List[OrderItem] = Field(default_factory=list)


class CheckoutQuote(BaseModel):
    subtotal: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal


# (Input) checkout payload; items are only read for guest checkout
class CheckoutBody(BaseModel):
    items: List[AddItemBody] = Field(default_factory=list)
    checkout_id: Optional[str] = Field(
        None,
        description="Idempotency key: the same checkout_id returns the same pending order.",
    )


class CheckoutOut(BaseModel):
    order: Order
    quote: CheckoutQuote
    session_id: str
    redirect_url: str


class MyOrdersOut(BaseModel):
    active: List[Order] = Field(default_factory=list)
    past: List[Order] = Field(default_factory=list)
