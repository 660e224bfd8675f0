from decimal import Decimal
from typing import List, Optional

from firebase_admin import firestore
from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from storefront.config import get_db, settings
from storefront.schemas.wishlist import WishlistItem


class FirestoreWishlistStore:
    """wishlists/{uid}/items/{product_id}: the product id is the document id, so adds are idempotent."""

    def __init__(self, db=None):
        self._db = db
        self._collection = settings.collection("wishlists")

    @property
    def db(self):
        if self._db is None:
            self._db = get_db()
        return self._db

    def _items(self, user_id: str):
        return self.db.collection(self._collection).document(user_id).collection("items")

    def list_items(self, user_id: str) -> List[WishlistItem]:
        q = self._items(user_id).order_by("added_at", direction=firestore.Query.DESCENDING).stream()
        out = []
        for doc in q:
            d = doc.to_dict() or {}
            price: Optional[Decimal] = None
            if d.get("price") is not None:
                price = Decimal(str(d["price"]))
            out.append(WishlistItem(
                product_id=doc.id,
                name=d.get("name") or "",
                price=price,
                image=d.get("image") or "",
                category=d.get("category"),
                added_at=d.get("added_at"),
            ))
        return out

    def add_item(self, user_id: str, item: WishlistItem) -> None:
        ref = self._items(user_id).document(item.product_id)
        if ref.get().exists:
            return
        ref.set({
            "name": item.name,
            "price": float(item.price) if item.price is not None else None,
            "image": item.image,
            "category": item.category,
            "added_at": SERVER_TIMESTAMP,
        })

    def remove_item(self, user_id: str, product_id: str) -> None:
        self._items(user_id).document(product_id).delete()
