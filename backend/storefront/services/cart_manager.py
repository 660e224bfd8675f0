"""
storefront/services/cart_manager.py - Cart State Manager.

One cart abstraction (items, total_items, subtotal) over two mutually exclusive modes:
- guest: lines live only in this object (the client's local storage);
- authenticated: lines live in the remote cart store and every write is followed by a
  full re-read, so displayed state always matches the store (no optimistic merge).

Remote failures surface as RemoteReadFailed / RemoteWriteFailed and leave local state
as it was; nothing is retried automatically except the single re-read-and-retry after
a revision conflict in update_quantity.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Callable, List, Mapping, Optional, TypeVar, Union
from uuid import uuid4

from storefront.core.errors import CartLineConflict, RemoteReadFailed, RemoteWriteFailed, StorefrontError
from storefront.repositories.base import CartStore
from storefront.schemas.cart import AddItemBody, CartItem
from storefront.schemas.principal import Identity
from storefront.utils.money import line_sum, to_decimal

logger = logging.getLogger("storefront.cart")

T = TypeVar("T")

GUEST = "guest"
AUTHENTICATED = "authenticated"


def _as_fields(item: Union[Mapping[str, Any], AddItemBody, CartItem]) -> dict:
    if isinstance(item, Mapping):
        return dict(item)
    return item.model_dump()


class CartStateManager:
    def __init__(self, cart_store: CartStore, local_items: Optional[List[CartItem]] = None):
        self._store = cart_store
        self._identity: Optional[Identity] = None
        self._items: List[CartItem] = [it.model_copy() for it in (local_items or [])]
        self.is_open = False

    @classmethod
    def for_identity(cls, cart_store: CartStore, identity: Identity) -> "CartStateManager":
        """Authenticated manager with the remote cart already loaded."""
        mgr = cls(cart_store)
        mgr._identity = identity
        mgr.refresh()
        return mgr

    # ---------- read side ----------
    @property
    def mode(self) -> str:
        return AUTHENTICATED if self._identity else GUEST

    @property
    def owner_id(self) -> Optional[str]:
        return self._identity.id if self._identity else None

    @property
    def items(self) -> List[CartItem]:
        return list(self._items)

    @property
    def total_items(self) -> int:
        return sum(it.quantity for it in self._items)

    @property
    def subtotal(self) -> Decimal:
        return line_sum(self._items)

    def snapshot(self) -> List[CartItem]:
        """Detached copy of the current lines, used as the basis of an order."""
        return [it.model_copy() for it in self._items]

    def find_line(self, line_id: str) -> Optional[CartItem]:
        return next((it for it in self._items if it.id == line_id), None)

    def open_cart(self) -> None:
        self.is_open = True

    def close_cart(self) -> None:
        self.is_open = False

    # ---------- remote plumbing ----------
    def _remote(self, op: Callable[[], T], error_cls, detail: str) -> T:
        try:
            return op()
        except StorefrontError:
            raise
        except Exception as exc:
            logger.warning("%s (owner=%s): %s", detail, self.owner_id, exc)
            raise error_cls(detail, cause=exc) from exc

    def refresh(self) -> None:
        """Re-read the whole remote cart. No-op in guest mode."""
        if not self._identity:
            return
        uid = self._identity.id
        lines = self._remote(lambda: self._store.list_cart_lines(uid), RemoteReadFailed, "Could not load cart")
        self._items = list(lines)

    # ---------- mutations ----------
    def add_item(self, item: Union[Mapping[str, Any], AddItemBody, CartItem], quantity: int = 1) -> None:
        fields = _as_fields(item)
        product_id = str(fields.get("product_id") or "").strip()
        if not product_id:
            raise ValueError("product_id required")
        if fields.get("price") is None:
            raise ValueError("price required")
        qty = int(quantity)
        if qty < 1:
            raise ValueError("quantity must be >= 1")
        size = fields.get("size") or None
        price = to_decimal(fields["price"])

        if self._identity:
            uid = self._identity.id
            details = {
                "name": fields.get("name") or "",
                "price": price,
                "image": fields.get("image") or "",
                "category": fields.get("category"),
            }
            self._remote(
                lambda: self._store.upsert_cart_line(uid, product_id, size, qty, details),
                RemoteWriteFailed, "Could not add item to cart",
            )
            self.refresh()
        else:
            key = (product_id, size or "")
            for idx, line in enumerate(self._items):
                if line.key == key:
                    self._items[idx] = line.model_copy(update={"quantity": line.quantity + qty})
                    break
            else:
                self._items.append(CartItem(
                    id=f"local-{uuid4().hex}",
                    product_id=product_id,
                    name=fields.get("name") or "",
                    price=price,
                    image=fields.get("image") or "",
                    category=fields.get("category"),
                    size=size,
                    quantity=qty,
                ))
        self.open_cart()

    def remove_item(self, line_id: str) -> None:
        if self._identity:
            self._remote(lambda: self._store.delete_cart_line(line_id), RemoteWriteFailed, "Could not remove item")
            self.refresh()
        else:
            self._items = [it for it in self._items if it.id != line_id]

    def update_quantity(self, line_id: str, quantity: int) -> None:
        """Absolute set; anything below 1 removes the line."""
        qty = int(quantity)
        if qty < 1:
            self.remove_item(line_id)
            return

        if not self._identity:
            self._items = [
                it.model_copy(update={"quantity": qty}) if it.id == line_id else it
                for it in self._items
            ]
            return

        line = self.find_line(line_id)
        expected = line.revision if line else None
        try:
            self._remote(
                lambda: self._store.set_cart_line_quantity(line_id, qty, expected),
                RemoteWriteFailed, "Could not update quantity",
            )
        except CartLineConflict:
            # someone else wrote the line: re-read, then retry once on the fresh revision
            self.refresh()
            fresh = self.find_line(line_id)
            if fresh is None:
                raise CartLineConflict("Cart line no longer exists.")
            if fresh.quantity != qty:
                try:
                    self._remote(
                        lambda: self._store.set_cart_line_quantity(line_id, qty, fresh.revision),
                        RemoteWriteFailed, "Could not update quantity",
                    )
                except CartLineConflict:
                    self.refresh()
                    raise
        self.refresh()

    def clear_cart(self) -> None:
        if self._identity:
            uid = self._identity.id
            self._remote(lambda: self._store.delete_all_cart_lines(uid), RemoteWriteFailed, "Could not clear cart")
            self.refresh()
        else:
            self._items = []

    # ---------- mode transitions ----------
    def on_auth_state_change(self, identity: Optional[Identity]) -> None:
        """
        anonymous -> authenticated: guest lines are upserted into the owner's remote cart,
        then local state is replaced by a fresh remote read. Lines are dropped from local
        state as they are merged, so a failed merge can be retried without double counting.
        authenticated -> anonymous: local state is emptied; the remote cart stays with its owner.
        """
        if identity is not None and identity.is_guest:
            identity = None

        if identity is None:
            if self._identity is not None:
                self._identity = None
                self._items = []
            return

        if self._identity is not None:
            if self._identity.id == identity.id:
                return
            # account switch: nothing local belongs to the new owner
            self._identity = identity
            self._items = []
            self.refresh()
            return

        uid = identity.id
        pending = list(self._items)
        for line in pending:
            details = {"name": line.name, "price": line.price, "image": line.image, "category": line.category}
            self._remote(
                lambda: self._store.upsert_cart_line(uid, line.product_id, line.size, line.quantity, details),
                RemoteWriteFailed, "Could not merge guest cart",
            )
            self._items = [it for it in self._items if it.id != line.id]
        if pending:
            logger.info("Merged %d guest cart line(s) into cart of %s", len(pending), uid)

        self._identity = identity
        self._items = []
        self.refresh()
