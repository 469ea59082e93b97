from __future__ import annotations

from decimal import Decimal

import pytest
from packages.shared.pricing.engine import (
    CouponTerms,
    InvalidInputError,
    LineItem,
    compute_discount,
    compute_pricing,
    compute_subtotal,
    from_minor_units,
    price_subtotal,
    to_minor_units,
    validate_coupon_terms,
)
from packages.shared.schemas.order_v1 import CouponKindV1, OrderTypeV1

FEE = Decimal("20")


def _percent(value: str, cap: str = "100000") -> CouponTerms:
    return CouponTerms(
        code="PCT", kind=CouponKindV1.PERCENT, value=Decimal(value), max_discount=Decimal(cap)
    )


def _flat(value: str, min_subtotal: str = "0") -> CouponTerms:
    return CouponTerms(
        code="FLAT",
        kind=CouponKindV1.FLAT,
        value=Decimal(value),
        min_subtotal=Decimal(min_subtotal),
    )


FREE_DELIVERY = CouponTerms(code="FREEDEL", kind=CouponKindV1.FREE_DELIVERY)


def test_veg_burger_pickup_with_ten_percent_coupon() -> None:
    items = [LineItem(name="Veg Burger", unit_price=Decimal("99"), quantity=2)]

    pricing = compute_pricing(items, OrderTypeV1.PICKUP, _percent("10", "100"), delivery_fee=FEE)

    assert pricing.subtotal == Decimal("198.00")
    assert pricing.discount == Decimal("19.80")
    assert pricing.delivery_fee == Decimal("0.00")
    assert pricing.total == Decimal("178.20")


def test_subtotal_sums_price_times_quantity() -> None:
    items = [
        LineItem(name="Masala Chai", unit_price=Decimal("25"), quantity=4),
        LineItem(name="Paneer Roll", unit_price=Decimal("70"), quantity=1, variant_label="Half"),
    ]
    assert compute_subtotal(items) == Decimal("170.00")


def test_delivery_fee_only_for_delivery_orders() -> None:
    items = [LineItem(name="Veg Burger", unit_price=Decimal("99"), quantity=1)]

    pickup = compute_pricing(items, OrderTypeV1.PICKUP, None, delivery_fee=FEE)
    delivery = compute_pricing(items, OrderTypeV1.DELIVERY, None, delivery_fee=FEE)

    assert pickup.delivery_fee == Decimal("0")
    assert pickup.total == Decimal("99.00")
    assert delivery.delivery_fee == Decimal("20.00")
    assert delivery.total == Decimal("119.00")


def test_total_is_never_negative() -> None:
    items = [LineItem(name="Masala Chai", unit_price=Decimal("25"), quantity=1)]

    pricing = compute_pricing(items, OrderTypeV1.DELIVERY, _flat("500"), delivery_fee=FEE)

    assert pricing.discount == Decimal("500.00")
    assert pricing.total == Decimal("0.00")


def test_percent_discount_is_capped() -> None:
    pricing = price_subtotal(
        Decimal("1000"), OrderTypeV1.PICKUP, _percent("50", "100"), delivery_fee=FEE
    )

    assert pricing.discount == Decimal("100.00")
    assert pricing.total == Decimal("900.00")


@pytest.mark.parametrize(
    ("subtotal", "expected"),
    [("400", "0"), ("499.99", "0"), ("500", "50"), ("800", "50")],
)
def test_flat_discount_threshold_is_inclusive(subtotal: str, expected: str) -> None:
    discount = compute_discount(Decimal(subtotal), _flat("50", "500"))
    assert discount == Decimal(expected)


def test_free_delivery_on_pickup_is_a_no_op() -> None:
    pricing = price_subtotal(Decimal("150"), OrderTypeV1.PICKUP, FREE_DELIVERY, delivery_fee=FEE)

    assert pricing.delivery_fee == Decimal("0")
    assert pricing.discount == Decimal("0")
    assert pricing.free_delivery is False
    assert pricing.total == Decimal("150.00")


def test_free_delivery_zeroes_fee_for_delivery() -> None:
    pricing = price_subtotal(
        Decimal("150"), OrderTypeV1.DELIVERY, FREE_DELIVERY, delivery_fee=FEE
    )

    assert pricing.delivery_fee == Decimal("0")
    assert pricing.discount == Decimal("0")
    assert pricing.free_delivery is True
    assert pricing.total == Decimal("150.00")


def test_percent_discount_rounds_half_up_to_cents() -> None:
    items = [LineItem(name="Samosa", unit_price=Decimal("33.33"), quantity=3)]

    pricing = compute_pricing(items, OrderTypeV1.PICKUP, _percent("10"), delivery_fee=FEE)

    assert pricing.subtotal == Decimal("99.99")
    assert pricing.discount == Decimal("10.00")
    assert pricing.total == Decimal("89.99")


def test_float_prices_do_not_leak_binary_noise() -> None:
    items = [LineItem(name="Cutting Chai", unit_price=0.1, quantity=3)]  # type: ignore[arg-type]
    assert compute_subtotal(items) == Decimal("0.30")


@pytest.mark.parametrize(
    "item",
    [
        LineItem(name="Veg Burger", unit_price=Decimal("99"), quantity=0),
        LineItem(name="Veg Burger", unit_price=Decimal("99"), quantity=-2),
        LineItem(name="Veg Burger", unit_price=Decimal("-1"), quantity=1),
        LineItem(name="  ", unit_price=Decimal("10"), quantity=1),
    ],
)
def test_invalid_line_items_are_rejected(item: LineItem) -> None:
    with pytest.raises(InvalidInputError):
        compute_pricing([item], OrderTypeV1.PICKUP, None)


def test_negative_subtotal_is_rejected() -> None:
    with pytest.raises(InvalidInputError):
        price_subtotal(Decimal("-5"), OrderTypeV1.PICKUP, None)


@pytest.mark.parametrize(
    ("kind", "value", "min_subtotal", "max_discount"),
    [
        (CouponKindV1.PERCENT, "101", "0", "100"),
        (CouponKindV1.FLAT, "-5", "0", "100"),
        (CouponKindV1.FLAT, "5", "-1", "100"),
        (CouponKindV1.PERCENT, "10", "0", "-1"),
        (CouponKindV1.PERCENT, "12.345", "0", "100"),
        (CouponKindV1.FLAT, "5", "99.999", "100"),
    ],
)
def test_malformed_coupon_terms_are_rejected(
    kind: CouponKindV1, value: str, min_subtotal: str, max_discount: str
) -> None:
    with pytest.raises(InvalidInputError):
        validate_coupon_terms(kind, Decimal(value), Decimal(min_subtotal), Decimal(max_discount))


def test_minor_units_conversion() -> None:
    assert to_minor_units(Decimal("178.2")) == 17820
    assert from_minor_units(1980) == Decimal("19.80")
