from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from storefront.config import settings
from storefront.core.auth import RequestIdentityProvider, get_identity, get_identity_provider, get_optional_identity
from storefront.core.deps import get_cart_store, get_order_store, get_reconciler
from storefront.core.errors import EmptyCart
from storefront.schemas.order import CheckoutBody, CheckoutOut, MyOrdersOut, OrderWithItems
from storefront.schemas.principal import Identity
from storefront.services.cart_manager import CartStateManager
from storefront.services.checkout import (
    OrderCreationWorkflow,
    get_order_with_items,
    list_orders,
    quote_checkout,
    split_active_past,
)
from storefront.services.reconciliation import PaymentReconciler

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post("/checkout", response_model=CheckoutOut, status_code=status.HTTP_201_CREATED)
def checkout(
    payload: CheckoutBody,
    provider: RequestIdentityProvider = Depends(get_identity_provider),
    cart_store=Depends(get_cart_store),
    order_store=Depends(get_order_store),
    reconciler: PaymentReconciler = Depends(get_reconciler),
):
    """
    ONE CHECKOUT -> ONE ORDER -> ONE PAYMENT SESSION
    - Signed-in users check out their stored cart; guests send their lines in the body.
    - The order is created pending; the cart is cleared only after payment succeeds.
    - Sending the same checkout_id again for an unchanged cart reuses the pending order.
    """
    identity = provider.get_current_user()
    if identity is not None:
        cart = CartStateManager.for_identity(cart_store, identity)
    else:
        cart = CartStateManager(cart_store)
        for it in payload.items:
            cart.add_item(it, quantity=it.quantity)

    snapshot = cart.snapshot()
    if not snapshot:
        raise EmptyCart()

    workflow = OrderCreationWorkflow(order_store, provider, settings)
    order = workflow.create_order(snapshot, checkout_id=payload.checkout_id)

    quote = quote_checkout(cart.subtotal, settings)
    session = reconciler.initiate_payment(order, quote.total, identity)
    return CheckoutOut(order=order, quote=quote, session_id=session.session_id, redirect_url=session.redirect_url)


@router.get("/my", response_model=MyOrdersOut)
def list_my_orders(identity: Identity = Depends(get_identity), order_store=Depends(get_order_store)):
    """Newest first, split into active and past (delivered / cancelled)."""
    return split_active_past(list_orders(order_store, identity.id))


@router.get("/{order_id}", response_model=OrderWithItems)
def get_order_detail(
    order_id: str,
    identity: Optional[Identity] = Depends(get_optional_identity),
    order_store=Depends(get_order_store),
):
    """Users see their own orders, admins all; guest orders are reachable by id."""
    detail = get_order_with_items(order_store, order_id)
    owner = detail.order.user_id
    if owner is not None:
        if identity is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required.")
        if owner != identity.id and identity.role != "admin":
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed.")
    return detail
