# storefront/services/wishlist.py
import logging
from typing import List

from storefront.core.errors import RemoteReadFailed, RemoteWriteFailed
from storefront.repositories.base import WishlistStore
from storefront.schemas.wishlist import WishlistItem

logger = logging.getLogger("storefront.wishlist")


class WishlistService:
    def __init__(self, store: WishlistStore):
        self._store = store

    def list(self, user_id: str) -> List[WishlistItem]:
        try:
            return self._store.list_items(user_id)
        except Exception as exc:
            logger.warning("Could not load wishlist of %s: %s", user_id, exc)
            raise RemoteReadFailed("Could not load wishlist.", cause=exc) from exc

    def add(self, user_id: str, item: WishlistItem) -> List[WishlistItem]:
        try:
            self._store.add_item(user_id, item)
        except Exception as exc:
            logger.warning("Could not add %s to wishlist of %s: %s", item.product_id, user_id, exc)
            raise RemoteWriteFailed("Could not add to wishlist.", cause=exc) from exc
        return self.list(user_id)

    def remove(self, user_id: str, product_id: str) -> List[WishlistItem]:
        try:
            self._store.remove_item(user_id, product_id)
        except Exception as exc:
            logger.warning("Could not remove %s from wishlist of %s: %s", product_id, user_id, exc)
            raise RemoteWriteFailed("Could not remove from wishlist.", cause=exc) from exc
        return self.list(user_id)
