"""
storefront/routers/carts.py
Cart endpoints for signed-in users. Guest carts live on the client and reach the
server only through POST /cart/merge (at login) or the checkout body.

Every mutation answers with the cart as re-read from the store after the write.
"""
from fastapi import APIRouter, Depends, Response, status

from storefront.core.auth import get_identity
from storefront.core.deps import get_cart_store
from storefront.schemas.cart import AddItemBody, CartOut, MergeCartBody, UpdateQuantityBody
from storefront.schemas.principal import Identity
from storefront.services.cart_manager import CartStateManager

router = APIRouter(prefix="/cart", tags=["Cart"])


def _out(mgr: CartStateManager) -> CartOut:
    return CartOut(user_id=mgr.owner_id, items=mgr.items, total_items=mgr.total_items, subtotal=mgr.subtotal)


def _manager(identity: Identity = Depends(get_identity), store=Depends(get_cart_store)) -> CartStateManager:
    return CartStateManager.for_identity(store, identity)


@router.get("", response_model=CartOut)
def get_cart(mgr: CartStateManager = Depends(_manager)):
    """Full cart: lines, total item count and subtotal."""
    return _out(mgr)


@router.post("/items", response_model=CartOut)
def add_to_cart(payload: AddItemBody, mgr: CartStateManager = Depends(_manager)):
    """Same (product_id, size) increments the existing line."""
    mgr.add_item(payload, quantity=payload.quantity)
    return _out(mgr)


@router.patch("/items/{line_id}", response_model=CartOut)
def update_cart_item(line_id: str, payload: UpdateQuantityBody, mgr: CartStateManager = Depends(_manager)):
    """Absolute quantity; below 1 removes the line."""
    mgr.update_quantity(line_id, payload.quantity)
    return _out(mgr)


@router.delete("/items/{line_id}", response_model=CartOut)
def remove_cart_item(line_id: str, mgr: CartStateManager = Depends(_manager)):
    """Idempotent: removing a missing line is not an error."""
    mgr.remove_item(line_id)
    return _out(mgr)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def clear_cart(mgr: CartStateManager = Depends(_manager)):
    mgr.clear_cart()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/merge", response_model=CartOut)
def merge_guest_cart(payload: MergeCartBody, identity: Identity = Depends(get_identity),
                     store=Depends(get_cart_store)):
    """Upserts the guest lines the client held before login into the user's cart."""
    guest = CartStateManager(store)
    for it in payload.items:
        guest.add_item(it, quantity=it.quantity)
    guest.on_auth_state_change(identity)
    return _out(guest)
