from datetime import timedelta
from decimal import Decimal

from storefront.schemas.order import OrderItem
from storefront.services.orders_sync import sweep_orphaned_orders_once


def _order(store, with_items=True, status="pending"):
    order = store.insert_order("alice", Decimal("10"), status)
    if with_items:
        store.insert_order_items([OrderItem(order_id=order.id, product_id="p", quantity=1,
                                            price_at_order=Decimal("10"))])
    return order


def test_sweep_removes_only_old_itemless_pending_orders(order_store):
    orphan = _order(order_store, with_items=False)
    complete = _order(order_store)
    paid_orphan = _order(order_store, with_items=False, status="paid")
    order_store.now += timedelta(hours=2)
    fresh_orphan = _order(order_store, with_items=False)

    now = fresh_orphan.created_at + timedelta(minutes=59)
    deleted = sweep_orphaned_orders_once(order_store, max_age_minutes=60, now=now)

    assert deleted == 1
    assert set(order_store.orders) == {complete.id, paid_orphan.id, fresh_orphan.id}
    assert orphan.id not in order_store.orders


def test_sweep_continues_past_store_errors(order_store):
    _order(order_store, with_items=False)
    order_store.fail_on.add("delete_order")
    later = order_store.now + timedelta(hours=2)
    assert sweep_orphaned_orders_once(order_store, max_age_minutes=60, now=later) == 0
    assert len(order_store.orders) == 1
