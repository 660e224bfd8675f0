"""
storefront/schemas/cart.py - Pydantic models for the cart.
"""
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


def _clean(v: Optional[str]) -> str:
    v = (v or "").strip()
    for ch in ("\u200b", "\u200c", "\u200d", "\ufeff", "\xa0"):
        v = v.replace(ch, "")
    return v


class CartItem(BaseModel):
    """One cart line. (product_id, size) is the de-duplication key."""
    id: str = Field(..., description="Cart line id (local for guests, server-assigned otherwise)")
    product_id: str = Field(..., description="ID of the product")
    name: str = Field("", description="Product name captured at add-time")
    price: Decimal = Field(..., ge=0, description="Unit price captured at add-time")
    image: str = ""
    category: Optional[str] = None
    size: Optional[str] = None
    quantity: int = Field(..., ge=1)
    revision: int = Field(0, description="Bumped on every remote write to the line")

    @property
    def key(self):
        return self.product_id, self.size or ""

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class AddItemBody(BaseModel):
    """Add-to-cart payload; display fields are denormalized into the line."""
    product_id: str = Field(..., description="Product ID as shown in the catalog.")
    price: Decimal = Field(..., ge=0)
    name: str = ""
    image: str = ""
    category: Optional[str] = None
    size: Optional[str] = None
    quantity: int = Field(1, ge=1, le=10000, description="Quantity (>=1).")

    @field_validator("product_id")
    @classmethod
    def _clean_pid(cls, v: str) -> str:
        v = _clean(v)
        if not v:
            raise ValueError("product_id cannot be empty")
        return v


class UpdateQuantityBody(BaseModel):
    quantity: int = Field(..., description="Absolute quantity; < 1 removes the line.")


class MergeCartBody(BaseModel):
    items: List[AddItemBody] = Field(default_factory=list)


class CartOut(BaseModel):
    user_id: Optional[str] = None
    items: List[CartItem] = Field(default_factory=list)
    total_items: int = 0
    subtotal: Decimal = Decimal("0")
