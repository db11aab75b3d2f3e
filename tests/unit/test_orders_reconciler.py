import logging

import pytest

from backend.cart.service import CartManager
from backend.errors import NotFound, PersistenceError
from backend.orders.reconciler import OrderReconciler
from fakes import FakeCartRepository, FakeOrderRepository


@pytest.fixture()
def setup(store):
    carts = CartManager(FakeCartRepository(store))
    orders = FakeOrderRepository(store)
    cart = carts.get_or_create_cart("u1")
    carts.add_item(cart["id"], "p-plantain", 2)
    carts.add_item(cart["id"], "p-kilishi", 1)
    order = orders.insert_order({
        "order_ref": "order_1700000000000_abcdefghi",
        "user_id": "u1",
        "status": "awaiting_payment",
        "payment_status": "pending",
        "total_amount": "90.60",
        "shipping_fee": "10.00",
        "shipping_address": {},
        "delivery_method": "standard",
    })
    return OrderReconciler(orders, carts), cart["id"], order


def test_finalize_success_snapshots_prices_and_clears_cart(setup, store):
    reconciler, cart_id, order = setup
    result = reconciler.finalize_success(cart_id, order["order_ref"], "pi_1")

    assert result["order"]["status"] == "paid"
    assert result["order"]["payment_status"] == "completed"
    assert result["cart_cleared"] is True
    prices = sorted(it["price"] for it in store.order_items)
    assert prices == ["25.00", "30.60"]
    assert all(it["order_id"] == order["id"] for it in store.order_items)
    assert store.cart_items == {}


def test_snapshot_is_independent_of_later_price_changes(setup, store):
    reconciler, cart_id, order = setup
    reconciler.finalize_success(cart_id, order["order_ref"], "pi_1")
    store.products["p-kilishi"]["price"] = "99.00"
    kilishi = [it for it in store.order_items if it["product_id"] == "p-kilishi"]
    assert kilishi[0]["price"] == "30.60"


def test_finalize_success_twice_creates_no_duplicates(setup, store):
    reconciler, cart_id, order = setup
    reconciler.finalize_success(cart_id, order["order_ref"], "pi_1")
    again = reconciler.finalize_success(cart_id, order["order_ref"], "pi_1")
    assert again["already_finalized"] is True
    assert len(again["items"]) == 2
    assert len(store.order_items) == 2


def test_finalize_success_unknown_order(setup):
    reconciler, cart_id, _ = setup
    with pytest.raises(NotFound):
        reconciler.finalize_success(cart_id, "order_0_unknown00", "pi_1")


def test_snapshot_failure_leaves_order_and_cart(setup, store):
    reconciler, cart_id, order = setup
    store.failures.add("insert_items")
    with pytest.raises(PersistenceError):
        reconciler.finalize_success(cart_id, order["order_ref"], "pi_1")
    assert store.orders[order["id"]]["status"] == "awaiting_payment"
    assert len(store.cart_items) == 2


def test_empty_cart_cannot_be_snapshotted(setup, store):
    reconciler, cart_id, order = setup
    store.cart_items.clear()
    with pytest.raises(PersistenceError):
        reconciler.finalize_success(cart_id, order["order_ref"], "pi_1")
    assert store.orders[order["id"]]["status"] == "awaiting_payment"


def test_cart_clear_failure_keeps_order_paid(setup, store, caplog):
    reconciler, cart_id, order = setup
    store.failures.add("delete_items_by_cart")
    with caplog.at_level(logging.ERROR):
        result = reconciler.finalize_success(cart_id, order["order_ref"], "pi_1")
    assert result["order"]["status"] == "paid"
    assert result["cart_cleared"] is False
    assert "cart clear failed" in caplog.text
    assert len(store.cart_items) == 2


def test_total_drift_is_logged(setup, store, caplog):
    reconciler, cart_id, order = setup
    store.orders[order["id"]]["total_amount"] = "50.00"
    with caplog.at_level(logging.WARNING):
        reconciler.finalize_success(cart_id, order["order_ref"], "pi_1")
    assert "total drift" in caplog.text


def test_late_success_on_cancelled_order_only_fixes_payment(setup, store):
    reconciler, cart_id, order = setup
    reconciler.finalize_failure(order["order_ref"], "cancelled")
    result = reconciler.finalize_success(cart_id, order["order_ref"], "pi_late")
    assert result["order"]["status"] == "cancelled"
    assert result["order"]["payment_status"] == "completed"
    assert result["order"]["payment_reference"] == "pi_late"
    assert store.order_items == []
    assert len(store.cart_items) == 2


@pytest.mark.parametrize("reason,expected", [("cancelled", "cancelled"), ("gateway_error", "failed")])
def test_finalize_failure(setup, store, reason, expected):
    reconciler, _, order = setup
    result = reconciler.finalize_failure(order["order_ref"], reason)
    assert result["status"] == expected
    assert result["payment_status"] == "failed"
    assert len(store.cart_items) == 2


def test_finalize_failure_keeps_terminal_orders(setup):
    reconciler, cart_id, order = setup
    reconciler.finalize_success(cart_id, order["order_ref"], "pi_1")
    result = reconciler.finalize_failure(order["order_ref"], "cancelled")
    assert result["status"] == "paid"


def test_finalize_failure_without_order(setup):
    reconciler, _, _ = setup
    assert reconciler.finalize_failure("order_0_unknown00", "cancelled") is None
