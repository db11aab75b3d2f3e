import pytest
from unittest.mock import MagicMock
from postgrest.exceptions import APIError

from backend.cart.repository import CartRepository
from backend.errors import PersistenceError
from backend.infra.db import execute, first_row, is_unique_violation, rows
from backend.orders.repository import OrderRepository
from backend.payments.repository import CustomerRepository

class _Resp:
    def __init__(self, data=None):
        self.data = data

def _mk_client(data=None):
    client = MagicMock()
    query = MagicMock()
    client.table.return_value = query
    for name in ("select", "eq", "is_", "limit", "order", "insert", "update", "delete"):
        getattr(query, name).return_value = query
    query.execute.return_value = _Resp(data)
    return client, query

# --- helpers db ---

def test_rows_and_first_row_normalize_data():
    assert rows(_Resp([{"a": 1}])) == [{"a": 1}]
    assert rows(_Resp({"a": 1})) == [{"a": 1}]
    assert rows(_Resp(None)) == []
    assert rows(None) == []
    assert first_row(_Resp([])) is None

def test_execute_wraps_errors():
    query = MagicMock()
    query.execute.side_effect = RuntimeError("connection reset")
    with pytest.raises(PersistenceError) as exc:
        execute(query, "fetch_items")
    assert exc.value.status_code == 503
    assert isinstance(exc.value.__cause__, RuntimeError)

def test_is_unique_violation():
    api_error = APIError({"message": "conflict", "code": "23505", "hint": None, "details": None})
    query = MagicMock()
    query.execute.side_effect = api_error
    with pytest.raises(PersistenceError) as exc:
        execute(query, "insert_customer")
    assert is_unique_violation(exc.value)
    assert not is_unique_violation(PersistenceError("Erreur de stockage (insert_customer)"))

# --- cart ---

def test_fetch_items_renames_product_join():
    client, query = _mk_client([{"id": "i1", "quantity": 2, "products": {"id": "p1", "price": "5.00"}}])
    items = CartRepository(client).fetch_items("c1")
    assert items == [{"id": "i1", "quantity": 2, "product": {"id": "p1", "price": "5.00"}}]
    client.table.assert_called_with("cart_items")
    query.eq.assert_called_with("cart_id", "c1")

def test_insert_cart_falls_back_to_payload():
    client, query = _mk_client([])
    assert CartRepository(client).insert_cart("u1") == {"user_id": "u1"}
    query.insert.assert_called_once_with({"user_id": "u1"})

def test_get_item_missing():
    client, _ = _mk_client([])
    assert CartRepository(client).get_item("i404") is None

def test_delete_items_by_cart_filters_on_cart():
    client, query = _mk_client()
    CartRepository(client).delete_items_by_cart("c1")
    query.delete.assert_called_once()
    query.eq.assert_called_with("cart_id", "c1")

# --- orders ---

def test_insert_items_skips_empty_batch():
    client, query = _mk_client()
    assert OrderRepository(client).insert_items([]) == []
    query.insert.assert_not_called()

def test_insert_items_single_round_trip():
    lines = [{"order_id": "o1", "product_id": "p1", "quantity": 1, "price": "5.00"},
             {"order_id": "o1", "product_id": "p2", "quantity": 2, "price": "1.00"}]
    client, query = _mk_client(lines)
    assert OrderRepository(client).insert_items(lines) == lines
    query.insert.assert_called_once_with(lines)
    query.execute.assert_called_once()

def test_list_user_orders_most_recent_first():
    client, query = _mk_client([{"order_ref": "order_2"}, {"order_ref": "order_1"}])
    result = OrderRepository(client).list_user_orders("u1", limit=10)
    assert [o["order_ref"] for o in result] == ["order_2", "order_1"]
    query.order.assert_called_with("created_at", desc=True)
    query.limit.assert_called_with(10)

def test_update_order_without_returned_row():
    client, _ = _mk_client(None)
    assert OrderRepository(client).update_order("o1", {"status": "paid"}) == {}

# --- stripe customers ---

def test_get_active_customer_ignores_soft_deleted():
    client, query = _mk_client([{"customer_id": "cus_1"}])
    assert CustomerRepository(client).get_active_customer("u1") == {"customer_id": "cus_1"}
    query.is_.assert_called_once_with("deleted_at", "null")

def test_insert_subscription_default_status():
    client, query = _mk_client([])
    assert CustomerRepository(client).insert_subscription("cus_1") == {"customer_id": "cus_1", "status": "not_started"}
    query.insert.assert_called_once_with({"customer_id": "cus_1", "status": "not_started"})
