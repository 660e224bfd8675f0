"""
storefront/services/checkout.py - Order Creation Workflow.

create_order turns a cart snapshot into an Order plus its OrderItems as a best-effort
two-step saga: insert the order, insert the items, and on item failure delete the order
again (one attempt). A crash between the two steps, or a failed compensation, leaves a
pending order with no items behind; services/orders_sync.py sweeps those.

The cart is not cleared here. That happens on reconciliation, so a failed payment
leaves the cart intact for a retry.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import List, Optional, Sequence

from storefront.config import Settings, settings as default_settings
from storefront.core.errors import (
    EmptyCart,
    GuestCheckoutNotAllowed,
    OrderCreationFailed,
    OrderItemsFailed,
    OrderNotFound,
    RemoteReadFailed,
)
from storefront.repositories.base import IdentityProvider, OrderStore
from storefront.schemas.cart import CartItem
from storefront.schemas.order import CLOSED_STATUSES, CheckoutQuote, MyOrdersOut, Order, OrderItem, OrderWithItems
from storefront.utils.money import line_sum, round_whole, to_decimal

logger = logging.getLogger("storefront.checkout")


def quote_checkout(subtotal, cfg: Settings = default_settings) -> CheckoutQuote:
    """
    Amount charged at the processor: free shipping above the threshold, flat fee
    otherwise, tax rounded to whole units.
    """
    sub = to_decimal(subtotal)
    shipping = Decimal("0") if sub > cfg.free_shipping_threshold else to_decimal(cfg.shipping_fee)
    tax = round_whole(sub * to_decimal(cfg.tax_rate))
    return CheckoutQuote(subtotal=sub, shipping=shipping, tax=tax, total=sub + shipping + tax)


class OrderCreationWorkflow:
    def __init__(self, order_store: OrderStore, identity_provider: IdentityProvider,
                 cfg: Settings = default_settings):
        self._orders = order_store
        self._identity = identity_provider
        self._cfg = cfg

    def create_order(self, cart_snapshot: Sequence[CartItem], checkout_id: Optional[str] = None) -> Order:
        lines: List[CartItem] = list(cart_snapshot)
        if not lines:
            raise EmptyCart()

        # resolved at call time, never from cached state
        identity = self._identity.get_current_user()
        user_id = identity.id if identity else None
        if user_id is None and not self._cfg.allow_guest_checkout:
            raise GuestCheckoutNotAllowed()

        total = line_sum(lines)

        if checkout_id:
            existing = self._reusable_order(user_id, checkout_id, lines, total)
            if existing is not None:
                logger.info("Reusing pending order %s for checkout_id=%s", existing.id, checkout_id)
                return existing

        try:
            order = self._orders.insert_order(user_id, total, "pending", checkout_id)
        except Exception as exc:
            logger.error("Error creating order (user=%s): %s", user_id, exc)
            raise OrderCreationFailed(cause=exc) from exc

        items = [
            OrderItem(
                order_id=order.id,
                product_id=line.product_id,
                quantity=line.quantity,
                price_at_order=line.price,
            )
            for line in lines
        ]
        try:
            self._orders.insert_order_items(items)
        except Exception as exc:
            logger.error("Error creating order items for %s: %s", order.id, exc)
            try:
                self._orders.delete_order(order.id)
            except Exception:
                logger.exception("Rollback of order %s failed; left pending with no items", order.id)
            raise OrderItemsFailed(cause=exc) from exc

        logger.info("Order %s created: %d line(s), total=%s, user=%s", order.id, len(items), total, user_id)
        return order

    def _reusable_order(self, user_id: Optional[str], checkout_id: str,
                        lines: List[CartItem], total: Decimal) -> Optional[Order]:
        """
        The pending order for checkout_id, only if it was built from the same lines.
        A cart that changed between retries gets a new order; the stale one stays pending.
        """
        try:
            existing = self._orders.find_pending_order(user_id, checkout_id)
            if existing is None:
                return None
            items = self._orders.list_order_items(existing.id)
        except Exception as exc:
            logger.error("Checkout lookup failed for checkout_id=%s: %s", checkout_id, exc)
            raise RemoteReadFailed("Could not look up the pending order.", cause=exc) from exc

        wanted = sorted((ln.product_id, ln.quantity, to_decimal(ln.price)) for ln in lines)
        stored = sorted((it.product_id, it.quantity, to_decimal(it.price_at_order)) for it in items)
        if to_decimal(existing.total) != total or wanted != stored:
            logger.info("Cart changed since order %s (checkout_id=%s); creating a new order",
                        existing.id, checkout_id)
            return None
        return existing


# ---------- order history ----------

def list_orders(order_store: OrderStore, user_id: str) -> List[Order]:
    try:
        return order_store.list_orders(user_id)
    except Exception as exc:
        logger.error("Error fetching orders for %s: %s", user_id, exc)
        raise RemoteReadFailed("Could not load orders.", cause=exc) from exc


def split_active_past(orders: Sequence[Order]) -> MyOrdersOut:
    active, past = [], []
    for o in orders:
        (past if o.status in CLOSED_STATUSES else active).append(o)
    return MyOrdersOut(active=active, past=past)


def get_order(order_store: OrderStore, order_id: str) -> Order:
    try:
        order = order_store.get_order(order_id)
    except Exception as exc:
        logger.error("Error fetching order %s: %s", order_id, exc)
        raise RemoteReadFailed("Could not load order.", cause=exc) from exc
    if order is None:
        raise OrderNotFound()
    return order


def get_order_with_items(order_store: OrderStore, order_id: str) -> OrderWithItems:
    order = get_order(order_store, order_id)
    try:
        items = order_store.list_order_items(order_id)
    except Exception as exc:
        logger.error("Error fetching items of order %s: %s", order_id, exc)
        raise RemoteReadFailed("Could not load order.", cause=exc) from exc
    return OrderWithItems(order=order, items=items)
