from typing import List

from fastapi import APIRouter, Depends

from storefront.core.auth import get_identity
from storefront.core.deps import get_wishlist_service
from storefront.schemas.principal import Identity
from storefront.schemas.wishlist import WishlistItem
from storefront.services.wishlist import WishlistService

router = APIRouter(prefix="/wishlist", tags=["Wishlist"])


@router.get("", response_model=List[WishlistItem])
def get_wishlist(identity: Identity = Depends(get_identity), svc: WishlistService = Depends(get_wishlist_service)):
    return svc.list(identity.id)


@router.post("/items", response_model=List[WishlistItem])
def add_to_wishlist(item: WishlistItem, identity: Identity = Depends(get_identity),
                    svc: WishlistService = Depends(get_wishlist_service)):
    """Adding a product twice keeps a single entry."""
    return svc.add(identity.id, item)


@router.delete("/items/{product_id}", response_model=List[WishlistItem])
def remove_from_wishlist(product_id: str, identity: Identity = Depends(get_identity),
                         svc: WishlistService = Depends(get_wishlist_service)):
    return svc.remove(identity.id, product_id)
