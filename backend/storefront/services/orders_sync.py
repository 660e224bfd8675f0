# storefront/services/orders_sync.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from storefront.config import settings
from storefront.repositories.base import OrderStore

logger = logging.getLogger("storefront.orders_sync")


def sweep_orphaned_orders_once(order_store: Optional[OrderStore] = None,
                               max_age_minutes: Optional[int] = None,
                               now: Optional[datetime] = None) -> int:
    """
    Deletes pending orders older than the threshold that have no order items
    (left behind when item insertion and its compensation both failed).
    Returns the number of deleted orders.
    """
    if order_store is None:
        from storefront.repositories.orders import FirestoreOrderStore
        order_store = FirestoreOrderStore()
    age = settings.orphan_max_age_minutes if max_age_minutes is None else max_age_minutes
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(minutes=age)

    deleted = 0
    for order in order_store.list_pending_orders(cutoff):
        try:
            if order_store.list_order_items(order.id):
                continue
            order_store.delete_order(order.id)
            deleted += 1
        except Exception as exc:
            logger.warning("Orphan sweep skipped order %s: %s", order.id, exc)
    if deleted:
        logger.info("Orphan sweep removed %d pending order(s) without items", deleted)
    return deleted
