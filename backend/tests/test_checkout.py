from decimal import Decimal

import pytest

from fakes import StaticIdentityProvider
from storefront.core.errors import (
    EmptyCart,
    GuestCheckoutNotAllowed,
    OrderCreationFailed,
    OrderItemsFailed,
    OrderNotFound,
    RemoteReadFailed,
)
from storefront.services.cart_manager import CartStateManager
from storefront.services.checkout import (
    OrderCreationWorkflow,
    get_order_with_items,
    list_orders,
    quote_checkout,
    split_active_past,
)


@pytest.fixture
def guest_cart(cart_store, shoe, watch):
    cart = CartStateManager(cart_store)
    cart.add_item(shoe)
    cart.add_item(shoe)
    cart.add_item(watch, quantity=3)
    return cart


def test_order_total_and_price_snapshot(order_store, provider, cfg, guest_cart):
    snapshot = guest_cart.snapshot()
    order = OrderCreationWorkflow(order_store, provider, cfg).create_order(snapshot)

    assert order.status == "pending"
    assert order.user_id == "alice"
    assert order.total == Decimal("120.00") * 2 + Decimal("350.50") * 3
    assert order.created_at is not None

    items = {it.product_id: it for it in order_store.list_order_items(order.id)}
    assert items["shoe-1"].quantity == 2
    assert items["shoe-1"].price_at_order == Decimal("120.00")
    assert items["watch-1"].price_at_order == Decimal("350.50")


def test_price_at_order_ignores_later_price_changes(order_store, provider, cfg, guest_cart):
    order = OrderCreationWorkflow(order_store, provider, cfg).create_order(guest_cart.snapshot())
    # the shopper keeps browsing; a re-added line at a new live price does not touch the order
    guest_cart.clear_cart()
    guest_cart.add_item({"product_id": "shoe-1", "size": "42", "price": Decimal("99.00")})
    item = [it for it in order_store.list_order_items(order.id) if it.product_id == "shoe-1"][0]
    assert item.price_at_order == Decimal("120.00")


def test_identity_resolved_at_call_time(order_store, alice, bob, cfg, guest_cart):
    provider = StaticIdentityProvider(alice)
    workflow = OrderCreationWorkflow(order_store, provider, cfg)
    provider.identity = bob
    order = workflow.create_order(guest_cart.snapshot())
    assert order.user_id == "bob"
    assert provider.calls == 1


def test_guest_checkout_creates_ownerless_order(order_store, cfg, guest_cart):
    order = OrderCreationWorkflow(order_store, StaticIdentityProvider(None), cfg).create_order(guest_cart.snapshot())
    assert order.user_id is None


def test_guest_checkout_can_be_disabled(order_store, cfg, guest_cart):
    cfg = cfg.model_copy(update={"allow_guest_checkout": False})
    with pytest.raises(GuestCheckoutNotAllowed):
        OrderCreationWorkflow(order_store, StaticIdentityProvider(None), cfg).create_order(guest_cart.snapshot())
    assert order_store.orders == {}


def test_empty_snapshot_is_rejected(order_store, provider, cfg):
    with pytest.raises(EmptyCart):
        OrderCreationWorkflow(order_store, provider, cfg).create_order([])


def test_order_insert_failure_stops_workflow(order_store, provider, cfg, guest_cart):
    order_store.fail_on.add("insert_order")
    with pytest.raises(OrderCreationFailed):
        OrderCreationWorkflow(order_store, provider, cfg).create_order(guest_cart.snapshot())
    assert "insert_order_items" not in order_store.calls


def test_items_failure_rolls_back_order(order_store, provider, cfg, guest_cart):
    order_store.fail_on.add("insert_order_items")
    with pytest.raises(OrderItemsFailed):
        OrderCreationWorkflow(order_store, provider, cfg).create_order(guest_cart.snapshot())

    assert order_store.calls.count("delete_order") == 1
    assert order_store.list_orders("alice") == []


def test_failed_rollback_leaves_orphan_and_reports_items_error(order_store, provider, cfg, guest_cart):
    order_store.fail_on.update({"insert_order_items", "delete_order"})
    with pytest.raises(OrderItemsFailed):
        OrderCreationWorkflow(order_store, provider, cfg).create_order(guest_cart.snapshot())
    orphans = order_store.list_orders("alice")
    assert len(orphans) == 1 and orphans[0].status == "pending"
    assert order_store.calls.count("delete_order") == 1


def test_checkout_does_not_clear_cart(order_store, provider, cfg, guest_cart):
    OrderCreationWorkflow(order_store, provider, cfg).create_order(guest_cart.snapshot())
    assert guest_cart.total_items == 5


def test_retry_without_checkout_id_creates_new_order(order_store, provider, cfg, guest_cart):
    wf = OrderCreationWorkflow(order_store, provider, cfg)
    first = wf.create_order(guest_cart.snapshot())
    second = wf.create_order(guest_cart.snapshot())
    assert first.id != second.id


def test_retry_with_same_checkout_id_reuses_pending_order(order_store, provider, cfg, guest_cart):
    wf = OrderCreationWorkflow(order_store, provider, cfg)
    first = wf.create_order(guest_cart.snapshot(), checkout_id="chk-1")
    second = wf.create_order(guest_cart.snapshot(), checkout_id="chk-1")
    assert first.id == second.id
    assert len(order_store.orders) == 1


def test_checkout_id_not_reused_when_cart_changed(order_store, cart_store, alice, provider, cfg, shoe, watch):
    cart = CartStateManager.for_identity(cart_store, alice)
    cart.add_item(shoe)
    wf = OrderCreationWorkflow(order_store, provider, cfg)
    first = wf.create_order(cart.snapshot(), checkout_id="k1")

    cart.add_item(watch)
    second = wf.create_order(cart.snapshot(), checkout_id="k1")

    assert second.id != first.id
    assert second.total == cart.subtotal == Decimal("470.50")
    assert sorted(it.product_id for it in order_store.list_order_items(second.id)) == ["shoe-1", "watch-1"]
    # stale order is left pending, untouched
    assert order_store.get_order(first.id).total == Decimal("120.00")

    # a further retry with the unchanged cart lands on the newest order
    assert wf.create_order(cart.snapshot(), checkout_id="k1").id == second.id


def test_checkout_id_not_reused_when_quantity_changed(order_store, provider, cfg, guest_cart):
    wf = OrderCreationWorkflow(order_store, provider, cfg)
    first = wf.create_order(guest_cart.snapshot(), checkout_id="k2")
    guest_cart.update_quantity(guest_cart.items[0].id, 5)
    second = wf.create_order(guest_cart.snapshot(), checkout_id="k2")
    assert second.id != first.id
    assert second.total == guest_cart.subtotal


def test_checkout_lookup_failure_is_reported(order_store, provider, cfg, guest_cart):
    order_store.fail_on.add("find_pending_order")
    with pytest.raises(RemoteReadFailed):
        OrderCreationWorkflow(order_store, provider, cfg).create_order(guest_cart.snapshot(), checkout_id="k3")
    assert "insert_order" not in order_store.calls


def test_checkout_id_not_reused_once_paid(order_store, provider, cfg, guest_cart):
    wf = OrderCreationWorkflow(order_store, provider, cfg)
    first = wf.create_order(guest_cart.snapshot(), checkout_id="chk-1")
    order_store.update_order_status(first.id, "paid")
    second = wf.create_order(guest_cart.snapshot(), checkout_id="chk-1")
    assert second.id != first.id


@pytest.mark.parametrize("subtotal,shipping,tax,total", [
    ("240", "1000", "43", "1283"),
    ("50000", "0", "9000", "59000"),
    ("41700", "1000", "7506", "50206"),
])
def test_quote_checkout(cfg, subtotal, shipping, tax, total):
    q = quote_checkout(Decimal(subtotal), cfg)
    assert (q.shipping, q.tax, q.total) == (Decimal(shipping), Decimal(tax), Decimal(total))


def test_order_history_newest_first_and_split(order_store, provider, cfg, guest_cart):
    wf = OrderCreationWorkflow(order_store, provider, cfg)
    a = wf.create_order(guest_cart.snapshot())
    b = wf.create_order(guest_cart.snapshot())
    order_store.update_order_status(a.id, "delivered")

    orders = list_orders(order_store, "alice")
    assert [o.id for o in orders] == [b.id, a.id]
    split = split_active_past(orders)
    assert [o.id for o in split.active] == [b.id]
    assert [o.id for o in split.past] == [a.id]


def test_order_with_items(order_store, provider, cfg, guest_cart):
    order = OrderCreationWorkflow(order_store, provider, cfg).create_order(guest_cart.snapshot())
    detail = get_order_with_items(order_store, order.id)
    assert detail.order.id == order.id
    assert len(detail.items) == 2

    with pytest.raises(OrderNotFound):
        get_order_with_items(order_store, "missing")

    order_store.fail_on.add("list_orders")
    with pytest.raises(RemoteReadFailed):
        list_orders(order_store, "alice")
