import pytest

from backend.errors import InsufficientInventory, NotAuthenticated, NotFound, ValidationError

def _cart(cart_manager, user_id="u1"):
    return cart_manager.get_or_create_cart(user_id)

def test_get_or_create_cart_is_single_per_user(cart_manager, store):
    first = _cart(cart_manager)
    second = _cart(cart_manager)
    assert first["id"] == second["id"]
    assert len(store.carts) == 1
    assert first["items"] == []

def test_get_or_create_cart_requires_user(cart_manager):
    with pytest.raises(NotAuthenticated):
        cart_manager.get_or_create_cart(None)

def test_add_same_product_twice_merges_rows(cart_manager):
    cart = _cart(cart_manager)
    cart_manager.add_item(cart["id"], "p-plantain", 2)
    view = cart_manager.add_item(cart["id"], "p-plantain", 3)
    rows = [it for it in view["items"] if it["product_id"] == "p-plantain"]
    assert len(rows) == 1
    assert rows[0]["quantity"] == 5
    assert rows[0]["product"]["name"] == "Plantain chips"

def test_add_item_rejects_quantity_below_one(cart_manager):
    cart = _cart(cart_manager)
    with pytest.raises(ValidationError) as exc:
        cart_manager.add_item(cart["id"], "p-plantain", 0)
    assert exc.value.fields == ["quantity"]

def test_add_unknown_product(cart_manager):
    cart = _cart(cart_manager)
    with pytest.raises(ValidationError):
        cart_manager.add_item(cart["id"], "p-unknown", 1)

def test_add_item_over_inventory_leaves_cart_untouched(cart_manager, store):
    cart = _cart(cart_manager)
    cart_manager.add_item(cart["id"], "p-kilishi", 2)
    with pytest.raises(InsufficientInventory) as exc:
        cart_manager.add_item(cart["id"], "p-kilishi", 2)
    assert exc.value.status_code == 409
    assert exc.value.available == 3
    view = cart_manager.get_cart(cart["id"])
    assert [it["quantity"] for it in view["items"]] == [2]

def test_update_to_zero_equals_remove(cart_manager, store):
    cart = _cart(cart_manager)
    view = cart_manager.add_item(cart["id"], "p-plantain", 1)
    item_id = view["items"][0]["id"]
    updated = cart_manager.update_item(item_id, 0, cart_id=cart["id"])

    other = _cart(cart_manager, "u2")
    view2 = cart_manager.add_item(other["id"], "p-plantain", 1)
    removed = cart_manager.remove_item(view2["items"][0]["id"], cart_id=other["id"])

    assert updated["items"] == [] == removed["items"]

def test_update_item_revalidates_inventory(cart_manager):
    cart = _cart(cart_manager)
    view = cart_manager.add_item(cart["id"], "p-kilishi", 1)
    with pytest.raises(InsufficientInventory):
        cart_manager.update_item(view["items"][0]["id"], 4)

def test_update_item_of_another_cart(cart_manager):
    mine = _cart(cart_manager, "u1")
    theirs = _cart(cart_manager, "u2")
    view = cart_manager.add_item(theirs["id"], "p-chinchin", 1)
    with pytest.raises(NotFound):
        cart_manager.update_item(view["items"][0]["id"], 2, cart_id=mine["id"])

def test_remove_missing_item_is_idempotent(cart_manager):
    cart = _cart(cart_manager)
    view = cart_manager.remove_item("item-404", cart_id=cart["id"])
    assert view["items"] == []

def test_clear_cart_twice(cart_manager):
    cart = _cart(cart_manager)
    cart_manager.add_item(cart["id"], "p-plantain", 1)
    cart_manager.add_item(cart["id"], "p-chinchin", 4)
    assert cart_manager.clear_cart(cart["id"])["items"] == []
    assert cart_manager.clear_cart(cart["id"])["items"] == []

def test_totals_use_cart_view(cart_manager):
    cart = _cart(cart_manager)
    view = cart_manager.add_item(cart["id"], "p-kilishi", 1)
    totals = cart_manager.totals(view, "10.00")
    assert str(totals["discount"]) == "3.40"
    assert str(totals["total"]) == "40.60"
