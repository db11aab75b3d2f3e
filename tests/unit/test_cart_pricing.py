from decimal import Decimal

from backend.cart.pricing import compute_totals, effective_unit_price, to_decimal, to_minor_units

def _item(price, qty, discount=None):
    return {"quantity": qty, "product": {"price": price, "discount_percentage": discount}}

def test_compute_totals_reference_cart():
    items = [_item("10", 2), _item("5", 1, discount=20)]
    totals = compute_totals(items, Decimal("10"))
    assert totals["subtotal"] == Decimal("25.00")
    assert totals["discount"] == Decimal("1.00")
    assert totals["shipping"] == Decimal("10.00")
    assert totals["total"] == Decimal("34.00")

def test_empty_cart_has_no_shipping():
    totals = compute_totals([], Decimal("20"))
    assert totals == {"subtotal": Decimal("0.00"), "discount": Decimal("0.00"), "shipping": Decimal("0.00"), "total": Decimal("0.00")}

def test_items_without_product_are_ignored():
    totals = compute_totals([{"quantity": 3, "product": None}, _item(2, 1)], Decimal("0"))
    assert totals["subtotal"] == Decimal("2.00")

def test_effective_unit_price_rounds_half_up():
    # 0.15 * (1 - 0.5) = 0.075 -> 0.08
    assert effective_unit_price({"price": "0.15", "discount_percentage": 50}) == Decimal("0.08")

def test_discount_is_clamped():
    assert effective_unit_price({"price": "10", "discount_percentage": 150}) == Decimal("0.00")
    assert effective_unit_price({"price": "10", "discount_percentage": -5}) == Decimal("10.00")

def test_to_minor_units_half_up():
    assert to_minor_units("10.005") == 1001
    assert to_minor_units(Decimal("34.00")) == 3400
    assert to_minor_units(19.99) == 1999

def test_to_decimal_tolerates_garbage():
    assert to_decimal(None) == Decimal("0.00")
    assert to_decimal("abc") == Decimal("0.00")
    assert to_decimal(3) == Decimal("3")

def test_discount_is_rounded_on_the_sum_not_per_unit():
    # 0.99 × 33% × 3 = 0.9801 -> 0.98 (et non 3 × 0.33)
    totals = compute_totals([_item("0.99", 3, discount=33)], Decimal("10"))
    assert totals["subtotal"] == Decimal("2.97")
    assert totals["discount"] == Decimal("0.98")
    assert totals["total"] == Decimal("11.99")
