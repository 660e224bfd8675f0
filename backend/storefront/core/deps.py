"""
storefront/core/deps.py - FastAPI dependency providers for stores and services.

Tests swap these out with `app.dependency_overrides`.
"""
from functools import lru_cache

from fastapi import Depends

from storefront.config import settings
from storefront.integrations.payment import PaymentBridge
from storefront.repositories.carts import FirestoreCartStore
from storefront.repositories.orders import FirestoreOrderStore
from storefront.repositories.wishlists import FirestoreWishlistStore
from storefront.services.reconciliation import PaymentReconciler
from storefront.services.wishlist import WishlistService


@lru_cache
def get_cart_store() -> FirestoreCartStore:
    return FirestoreCartStore()


@lru_cache
def get_order_store() -> FirestoreOrderStore:
    return FirestoreOrderStore()


@lru_cache
def get_wishlist_store() -> FirestoreWishlistStore:
    return FirestoreWishlistStore()


@lru_cache
def get_payment_bridge() -> PaymentBridge:
    return PaymentBridge()


def get_reconciler(
    order_store=Depends(get_order_store),
    cart_store=Depends(get_cart_store),
    bridge=Depends(get_payment_bridge),
) -> PaymentReconciler:
    return PaymentReconciler(order_store, cart_store, bridge, settings)


def get_wishlist_service(store=Depends(get_wishlist_store)) -> WishlistService:
    return WishlistService(store)
