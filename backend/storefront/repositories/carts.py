# storefront/repositories/carts.py
from __future__ import annotations

import hashlib
from decimal import Decimal
from typing import Any, Dict, List, Optional

from firebase_admin import firestore
from google.api_core.exceptions import AlreadyExists
from google.cloud.firestore_v1 import SERVER_TIMESTAMP
from google.cloud.firestore_v1.base_query import FieldFilter

from storefront.config import get_db, settings
from storefront.core.errors import CartLineConflict
from storefront.schemas.cart import CartItem

_BATCH_LIMIT = 400  # Firestore batch limit is 500 writes


def cart_line_id(user_id: str, product_id: str, size: Optional[str]) -> str:
    """Deterministic document id for the (owner, product, size) line."""
    raw = "\x1f".join((user_id, product_id, size or ""))
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()


def _doc_to_line(doc) -> CartItem:
    d = doc.to_dict() or {}
    return CartItem(
        id=doc.id,
        product_id=str(d.get("product_id") or ""),
        name=d.get("name") or "",
        price=Decimal(str(d.get("price", 0) or 0)),
        image=d.get("image") or "",
        category=d.get("category"),
        size=d.get("size") or None,
        quantity=int(d.get("quantity", 1) or 1),
        revision=int(d.get("revision", 0) or 0),
    )


class FirestoreCartStore:
    """
    One document per cart line in `cart_items`:
    {user_id, product_id, size, quantity, name, price, image, category, revision, added_at, updated_at}
    The document id is cart_line_id(user_id, product_id, size); `size` is stored as "" when absent.
    """

    def __init__(self, db=None, collection: Optional[str] = None):
        self._db = db
        self._collection = collection or settings.collection("cart_items")

    @property
    def db(self):
        if self._db is None:
            self._db = get_db()
        return self._db

    def _col(self):
        return self.db.collection(self._collection)

    def list_cart_lines(self, user_id: str) -> List[CartItem]:
        q = self._col().where(filter=FieldFilter("user_id", "==", user_id)).stream()
        lines = [_doc_to_line(d) for d in q]
        return [ln for ln in lines if ln.product_id and ln.quantity > 0]

    def upsert_cart_line(
        self,
        user_id: str,
        product_id: str,
        size: Optional[str],
        delta_quantity: int,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        size_key = size or ""
        ref = self._col().document(cart_line_id(user_id, product_id, size_key))
        details = details or {}
        try:
            # create() is atomic per id: a concurrent add of the same key falls through to the increment
            ref.create({
                "user_id": user_id,
                "product_id": product_id,
                "size": size_key,
                "quantity": int(delta_quantity),
                "name": details.get("name") or "",
                "price": float(Decimal(str(details.get("price", 0) or 0))),
                "image": details.get("image") or "",
                "category": details.get("category"),
                "revision": 0,
                "added_at": SERVER_TIMESTAMP,
                "updated_at": SERVER_TIMESTAMP,
            })
        except AlreadyExists:
            ref.update({
                "quantity": firestore.Increment(int(delta_quantity)),
                "revision": firestore.Increment(1),
                "updated_at": SERVER_TIMESTAMP,
            })

    def set_cart_line_quantity(self, line_id: str, quantity: int, expected_revision: Optional[int] = None) -> None:
        ref = self._col().document(line_id)
        transaction = self.db.transaction()

        @firestore.transactional
        def _apply(tx):
            snap = ref.get(transaction=tx)
            if not snap.exists:
                raise CartLineConflict("Cart line no longer exists.")
            current = int((snap.to_dict() or {}).get("revision", 0) or 0)
            if expected_revision is not None and current != expected_revision:
                raise CartLineConflict()
            tx.update(ref, {
                "quantity": int(quantity),
                "revision": current + 1,
                "updated_at": SERVER_TIMESTAMP,
            })

        _apply(transaction)

    def delete_cart_line(self, line_id: str) -> None:
        # Deleting a missing document is a no-op in Firestore.
        self._col().document(line_id).delete()

    def delete_all_cart_lines(self, user_id: str) -> int:
        q = self._col().where(filter=FieldFilter("user_id", "==", user_id)).stream()
        batch = self.db.batch()
        count = 0
        for d in q:
            batch.delete(d.reference)
            count += 1
            if count % _BATCH_LIMIT == 0:
                batch.commit()
                batch = self.db.batch()
        if count % _BATCH_LIMIT != 0:
            batch.commit()
        return count
