# storefront/repositories/orders.py
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from firebase_admin import firestore
from google.api_core.exceptions import FailedPrecondition
from google.cloud.firestore_v1 import SERVER_TIMESTAMP
from google.cloud.firestore_v1.base_query import FieldFilter

from storefront.config import get_db, settings
from storefront.schemas.order import Order, OrderItem

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_BATCH_LIMIT = 400  # Firestore batch limit is 500 writes


def _doc_to_order(doc) -> Order:
    d = doc.to_dict() or {}
    return Order(
        id=doc.id,
        user_id=d.get("user_id"),
        total=Decimal(str(d.get("total", 0) or 0)),
        status=d.get("status") or "pending",
        created_at=d.get("created_at"),
        checkout_id=d.get("checkout_id"),
        payment_session_id=d.get("payment_session_id"),
    )


def _doc_to_item(doc) -> OrderItem:
    d = doc.to_dict() or {}
    return OrderItem(
        id=doc.id,
        order_id=d.get("order_id"),
        product_id=str(d.get("product_id") or ""),
        quantity=int(d.get("quantity", 1) or 1),
        price_at_order=Decimal(str(d.get("price_at_order", 0) or 0)),
    )


class FirestoreOrderStore:
    """
    `orders`:      {user_id, total, status, checkout_id, payment_session_id, created_at, updated_at}
    `order_items`: {order_id, product_id, quantity, price_at_order}
    Firestore gives the client no cross-collection transaction over these two writes
    in the workflow's shape, so the workflow compensates instead.
    """

    def __init__(self, db=None):
        self._db = db
        self._orders = settings.collection("orders")
        self._items = settings.collection("order_items")

    @property
    def db(self):
        if self._db is None:
            self._db = get_db()
        return self._db

    def insert_order(self, user_id: Optional[str], total: Decimal, status: str, checkout_id: Optional[str] = None) -> Order:
        ref = self.db.collection(self._orders).document()
        ref.set({
            "user_id": user_id,
            "total": float(total),
            "status": status,
            "checkout_id": checkout_id,
            "payment_session_id": None,
            "created_at": SERVER_TIMESTAMP,
            "updated_at": SERVER_TIMESTAMP,
        })
        # read back for the server-assigned created_at
        return _doc_to_order(ref.get())

    def insert_order_items(self, items: List[OrderItem]) -> None:
        """Committed in chunks of _BATCH_LIMIT; a failure part-way leaves earlier chunks written."""
        batch = self.db.batch()
        col = self.db.collection(self._items)
        for count, it in enumerate(items, start=1):
            batch.set(col.document(), {
                "order_id": it.order_id,
                "product_id": it.product_id,
                "quantity": int(it.quantity),
                "price_at_order": float(it.price_at_order),
            })
            if count % _BATCH_LIMIT == 0:
                batch.commit()
                batch = self.db.batch()
        if len(items) % _BATCH_LIMIT != 0:
            batch.commit()

    def delete_order(self, order_id: str) -> None:
        self.db.collection(self._orders).document(order_id).delete()

    def update_order_status(self, order_id: str, status: str) -> None:
        # update() raises NotFound for a missing document
        self.db.collection(self._orders).document(order_id).update(
            {"status": status, "updated_at": SERVER_TIMESTAMP}
        )

    def set_payment_session(self, order_id: str, session_id: str) -> None:
        self.db.collection(self._orders).document(order_id).update(
            {"payment_session_id": session_id, "updated_at": SERVER_TIMESTAMP}
        )

    def get_order(self, order_id: str) -> Optional[Order]:
        snap = self.db.collection(self._orders).document(order_id).get()
        if not snap.exists:
            return None
        return _doc_to_order(snap)

    def list_orders(self, user_id: str) -> List[Order]:
        # Fast path needs a composite index (user_id, created_at desc)
        try:
            docs = list(
                self.db.collection(self._orders)
                    .where(filter=FieldFilter("user_id", "==", user_id))
                    .order_by("created_at", direction=firestore.Query.DESCENDING)
                    .stream()
            )
        except FailedPrecondition:
            docs = sorted(
                self.db.collection(self._orders)
                    .where(filter=FieldFilter("user_id", "==", user_id))
                    .stream(),
                key=lambda d: (d.to_dict() or {}).get("created_at") or _EPOCH,
                reverse=True,
            )
        return [_doc_to_order(d) for d in docs]

    def list_order_items(self, order_id: str) -> List[OrderItem]:
        q = self.db.collection(self._items).where(filter=FieldFilter("order_id", "==", order_id)).stream()
        return [_doc_to_item(d) for d in q]

    def find_pending_order(self, user_id: Optional[str], checkout_id: str) -> Optional[Order]:
        docs = list(
            self.db.collection(self._orders)
                .where(filter=FieldFilter("user_id", "==", user_id))
                .where(filter=FieldFilter("checkout_id", "==", checkout_id))
                .where(filter=FieldFilter("status", "==", "pending"))
                .stream()
        )
        if not docs:
            return None
        # newest match, picked client-side (no composite index on created_at)
        orders = [_doc_to_order(d) for d in docs]
        return max(orders, key=lambda o: o.created_at or _EPOCH)

    def list_pending_orders(self, created_before: datetime) -> List[Order]:
        q = (
            self.db.collection(self._orders)
                .where(filter=FieldFilter("status", "==", "pending"))
                .where(filter=FieldFilter("created_at", "<", created_before))
                .stream()
        )
        return [_doc_to_order(d) for d in q]
