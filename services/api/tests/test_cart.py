from __future__ import annotations

from decimal import Decimal

import pytest
from packages.shared.pricing.cart import Cart, line_key
from packages.shared.pricing.engine import CouponTerms, InvalidInputError, LineItem
from packages.shared.schemas.order_v1 import CouponKindV1, OrderTypeV1

BURGER = LineItem(name="Veg Burger", unit_price=Decimal("99"), quantity=1, reference_id="item-1")
ROLL_HALF = LineItem(
    name="Paneer Roll",
    unit_price=Decimal("70"),
    quantity=1,
    reference_id="item-2",
    variant_label="Half",
)
ROLL_FULL = LineItem(
    name="Paneer Roll",
    unit_price=Decimal("120"),
    quantity=1,
    reference_id="item-2",
    variant_label="Full",
)


def test_add_merges_same_item_and_keeps_previous_snapshot() -> None:
    empty = Cart()
    one = empty.add(BURGER)
    two = one.add(BURGER)

    assert empty.is_empty
    assert one.get(line_key(BURGER)).quantity == 1
    assert two.get(line_key(BURGER)).quantity == 2
    assert len(two) == 1


def test_variants_of_the_same_item_are_separate_lines() -> None:
    cart = Cart().add(ROLL_HALF).add(ROLL_FULL)

    assert len(cart) == 2
    assert cart.subtotal() == Decimal("190.00")


def test_set_quantity_and_remove() -> None:
    cart = Cart().add(BURGER).add(ROLL_HALF)

    bumped = cart.set_quantity(line_key(BURGER), 3)
    assert bumped.get(line_key(BURGER)).quantity == 3

    dropped = bumped.set_quantity(line_key(ROLL_HALF), 0)
    assert dropped.get(line_key(ROLL_HALF)) is None
    assert [it.name for it in dropped] == ["Veg Burger"]

    assert dropped.remove(line_key(BURGER)).is_empty
    assert cart.clear().is_empty


def test_add_rejects_non_positive_quantity() -> None:
    with pytest.raises(InvalidInputError):
        Cart().add(BURGER, quantity=0)


def test_cart_prices_through_the_engine() -> None:
    cart = Cart().add(BURGER, quantity=2)
    coupon = CouponTerms(
        code="CHAI10",
        kind=CouponKindV1.PERCENT,
        value=Decimal("10"),
        max_discount=Decimal("100"),
    )

    pricing = cart.price(OrderTypeV1.PICKUP, coupon)

    assert pricing.subtotal == Decimal("198.00")
    assert pricing.discount == Decimal("19.80")
    assert pricing.total == Decimal("178.20")
