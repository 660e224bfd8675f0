"""
storefront/repositories/base.py - Interfaces of the hosted platform the workflow consumes.

The Firestore implementations live next to this module; tests use in-memory fakes.
Stores raise their backend's own exceptions (google.api_core etc.); the services wrap
them into the storefront error taxonomy. The one domain error a store raises itself is
CartLineConflict for a conditional write whose revision has moved.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol

from storefront.schemas.cart import CartItem
from storefront.schemas.order import Order, OrderItem
from storefront.schemas.principal import Identity
from storefront.schemas.wishlist import WishlistItem


class IdentityProvider(Protocol):
    def get_current_user(self) -> Optional[Identity]:
        """Resolve the acting identity at call time; None when anonymous."""


class CartStore(Protocol):
    def list_cart_lines(self, user_id: str) -> List[CartItem]: ...

    def upsert_cart_line(
        self,
        user_id: str,
        product_id: str,
        size: Optional[str],
        delta_quantity: int,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Increment the (product_id, size) line by delta, creating it when absent."""

    def set_cart_line_quantity(self, line_id: str, quantity: int, expected_revision: Optional[int] = None) -> None:
        """Absolute set. Raises CartLineConflict if expected_revision no longer matches."""

    def delete_cart_line(self, line_id: str) -> None: ...

    def delete_all_cart_lines(self, user_id: str) -> int:
        """Returns the number of deleted lines; deleting zero lines is not an error."""


class OrderStore(Protocol):
    def insert_order(self, user_id: Optional[str], total: Decimal, status: str, checkout_id: Optional[str] = None) -> Order: ...

    def insert_order_items(self, items: List[OrderItem]) -> None: ...

    def delete_order(self, order_id: str) -> None: ...

    def update_order_status(self, order_id: str, status: str) -> None: ...

    def get_order(self, order_id: str) -> Optional[Order]: ...

    def list_orders(self, user_id: str) -> List[Order]:
        """Newest first."""

    def list_order_items(self, order_id: str) -> List[OrderItem]: ...

    def find_pending_order(self, user_id: Optional[str], checkout_id: str) -> Optional[Order]:
        """Most recent pending order of this owner carrying checkout_id."""

    def set_payment_session(self, order_id: str, session_id: str) -> None: ...

    def list_pending_orders(self, created_before: datetime) -> List[Order]: ...


class WishlistStore(Protocol):
    def list_items(self, user_id: str) -> List[WishlistItem]: ...

    def add_item(self, user_id: str, item: WishlistItem) -> None: ...

    def remove_item(self, user_id: str, product_id: str) -> None: ...
