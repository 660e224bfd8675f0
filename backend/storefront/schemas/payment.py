"""
storefront/schemas/payment.py - Payment session and reconciliation models.
"""
from typing import Optional
from pydantic import BaseModel, Field

from storefront.schemas.order import Order


class PaymentSession(BaseModel):
    """Transient correlation token; only ever carried in the redirect URL."""
    session_id: str
    order_id: str
    amount: int = Field(..., description="Amount in minor units (e.g. cents)")
    currency: str
    redirect_url: str = ""


class SessionStatus(BaseModel):
    session_id: str
    order_id: Optional[str] = None
    paid: bool = False


class ReconcileOut(BaseModel):
    order: Order
    cart_cleared: bool = Field(..., description="False for guest orders or when clearing failed")
