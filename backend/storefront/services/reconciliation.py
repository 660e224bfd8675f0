"""
storefront/services/reconciliation.py - Payment handoff and reconciliation.

initiate_payment hands a pending order to the processor through the payment bridge.
reconcile runs when the shopper lands on the success redirect: it marks the order paid
and clears the owner's remote cart.

The status write in reconcile is unconditional and, unless VERIFY_PAYMENT_SESSIONS is
on, trusts the redirect parameters. handle_webhook is the processor-driven path keyed
by a signed event and is the one to rely on in production.

Calling reconcile twice is harmless: the status write is repeated and clearing an
already empty cart deletes zero lines, which is not an error.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from storefront.config import Settings, settings as default_settings
from storefront.core.crypto import verify_signature
from storefront.core.errors import (
    InvalidPaymentSession,
    InvalidWebhookSignature,
    PaymentNotVerified,
    PaymentSessionFailed,
    ReconciliationFailed,
)
from storefront.integrations.payment import PaymentBridge, build_cancel_url, build_success_url
from storefront.repositories.base import CartStore, OrderStore
from storefront.schemas.order import Order
from storefront.schemas.payment import PaymentSession, ReconcileOut
from storefront.schemas.principal import Identity
from storefront.utils.money import to_minor_units

logger = logging.getLogger("storefront.payments")

COMPLETED_EVENT = "checkout.session.completed"


class PaymentReconciler:
    def __init__(self, order_store: OrderStore, cart_store: CartStore, bridge: PaymentBridge,
                 cfg: Settings = default_settings):
        self._orders = order_store
        self._carts = cart_store
        self._bridge = bridge
        self._cfg = cfg

    # ---------- handoff ----------
    def initiate_payment(self, order: Order, amount, identity: Optional[Identity] = None,
                         currency: Optional[str] = None) -> PaymentSession:
        """
        Creates the processor session. On failure the order is left pending and untouched;
        a repeated checkout creates a new order unless it carries the same checkout_id.
        """
        minor = to_minor_units(amount)
        if minor <= 0:
            raise PaymentSessionFailed("Payment amount must be positive.")
        cur = (currency or self._cfg.currency).lower()

        ok, result = self._bridge.create_payment_session(
            order_id=order.id,
            amount_minor_units=minor,
            currency=cur,
            success_url=build_success_url(order.id, self._cfg.site_url),
            cancel_url=build_cancel_url(self._cfg.site_url),
            user_id=identity.id if identity else None,
        )
        if not ok:
            logger.error("Error creating checkout session for order %s: %s", order.id, result.get("error"))
            raise PaymentSessionFailed(result.get("error") or None)

        session = PaymentSession(
            session_id=result["session_id"],
            order_id=order.id,
            amount=minor,
            currency=cur,
            redirect_url=result.get("redirect_url") or "",
        )
        try:
            self._orders.set_payment_session(order.id, session.session_id)
        except Exception as exc:
            # correlation travels in the redirect URL; the stored copy is informational
            logger.warning("Could not record session %s on order %s: %s", session.session_id, order.id, exc)
        return session

    # ---------- reconciliation ----------
    def reconcile(self, session_id: Optional[str], order_id: Optional[str]) -> ReconcileOut:
        if not session_id or not order_id:
            raise InvalidPaymentSession()

        if self._cfg.verify_payment_sessions:
            self._verify_session(session_id, order_id)

        return self._mark_paid(order_id)

    def _verify_session(self, session_id: str, order_id: str) -> None:
        ok, info = self._bridge.retrieve_payment_session(session_id)
        if not ok:
            raise ReconciliationFailed("Could not verify the payment session with the processor.")
        if not info.get("paid") or str(info.get("order_id") or "") != order_id:
            logger.warning("Session %s not paid or not for order %s", session_id, order_id)
            raise PaymentNotVerified()

    def _mark_paid(self, order_id: str) -> ReconcileOut:
        try:
            self._orders.update_order_status(order_id, "paid")
        except Exception as exc:
            logger.error("Error updating order status for %s: %s", order_id, exc)
            raise ReconciliationFailed(cause=exc) from exc

        try:
            order = self._orders.get_order(order_id)
        except Exception as exc:
            logger.error("Order %s marked paid but could not be re-read: %s", order_id, exc)
            raise ReconciliationFailed(cause=exc) from exc
        if order is None:
            raise ReconciliationFailed(f"Order {order_id} disappeared during reconciliation.")

        cart_cleared = False
        if order.user_id:
            try:
                removed = self._carts.delete_all_cart_lines(order.user_id)
                cart_cleared = True
                logger.info("Order %s paid; cleared %d cart line(s) of %s", order_id, removed, order.user_id)
            except Exception as exc:
                # order is already paid; the shopper can clear the cart manually
                logger.error("Error clearing cart of %s after order %s: %s", order.user_id, order_id, exc)
        # guest orders: the client-side cart manager clears its own state

        return ReconcileOut(order=order, cart_cleared=cart_cleared)

    # ---------- processor webhook ----------
    def handle_webhook(self, body: bytes, signature: Optional[str]) -> Optional[ReconcileOut]:
        """
        Signed server-to-server event. Returns None for events that do not complete a payment.
        """
        if not verify_signature(body, signature, self._cfg.payment_webhook_secret):
            raise InvalidWebhookSignature()
        try:
            event: Dict[str, Any] = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            raise InvalidPaymentSession("Malformed webhook payload.")

        if event.get("type") != COMPLETED_EVENT:
            return None
        obj = (event.get("data") or {}).get("object") or {}
        if obj.get("payment_status") != "paid":
            return None
        order_id = obj.get("client_reference_id") or (obj.get("metadata") or {}).get("orderId")
        if not order_id:
            raise InvalidPaymentSession("Webhook event carries no order reference.")

        logger.info("Webhook %s for order %s (session %s)", COMPLETED_EVENT, order_id, obj.get("id"))
        return self._mark_paid(str(order_id))
