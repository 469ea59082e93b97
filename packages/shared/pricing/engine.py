"""Order pricing engine.

Pure functions that turn line items, an order type and an optional coupon into the four
monetary totals of an order. The checkout preview and the order service both call into
this module, so the two paths cannot disagree for the same inputs.

No I/O happens here. Money is ``Decimal`` quantized to two places.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from packages.shared.schemas.order_v1 import CouponKindV1, OrderTypeV1

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

DEFAULT_MAX_DISCOUNT = Decimal("100000")
DEFAULT_DELIVERY_FEE = Decimal("20")


class InvalidInputError(ValueError):
    """A line item or coupon definition that cannot be priced."""


@dataclass(frozen=True, slots=True)
class LineItem:
    name: str
    unit_price: Decimal
    quantity: int
    reference_id: str | None = None
    variant_label: str | None = None

    @property
    def line_total(self) -> Decimal:
        return quantize(self.unit_price * self.quantity)


@dataclass(frozen=True, slots=True)
class CouponTerms:
    """The arithmetic part of a coupon; eligibility is decided elsewhere."""

    code: str
    kind: CouponKindV1
    value: Decimal = ZERO
    min_subtotal: Decimal = ZERO
    max_discount: Decimal = DEFAULT_MAX_DISCOUNT


@dataclass(frozen=True, slots=True)
class Pricing:
    subtotal: Decimal
    discount: Decimal
    delivery_fee: Decimal
    total: Decimal
    free_delivery: bool = False


def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: object, field: str = "amount") -> Decimal:
    if isinstance(value, bool):
        raise InvalidInputError(f"{field} must be a number")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            # str() keeps floats like 99.99 from dragging binary noise along.
            result = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError) as e:
            raise InvalidInputError(f"{field} must be a number") from e

    if not result.is_finite():
        raise InvalidInputError(f"{field} must be a finite number")
    return result


def to_minor_units(amount: Decimal) -> int:
    return int(quantize(amount) * 100)


def from_minor_units(minor: int) -> Decimal:
    return quantize(Decimal(minor) / HUNDRED)


def validate_line_item(item: LineItem) -> None:
    if not item.name or not item.name.strip():
        raise InvalidInputError("Line item name is required")

    if isinstance(item.quantity, bool) or not isinstance(item.quantity, int):
        raise InvalidInputError(f"Quantity for {item.name!r} must be an integer")
    if item.quantity < 1:
        raise InvalidInputError(f"Quantity for {item.name!r} must be at least 1")

    price = to_decimal(item.unit_price, field=f"Unit price for {item.name!r}")
    if price < 0:
        raise InvalidInputError(f"Unit price for {item.name!r} must not be negative")


def validate_coupon_terms(
    kind: CouponKindV1,
    value: Decimal,
    min_subtotal: Decimal,
    max_discount: Decimal,
) -> None:
    for label, amount in (
        ("value", value),
        ("min_subtotal", min_subtotal),
        ("max_discount", max_discount),
    ):
        amount = to_decimal(amount, field=label)
        if amount < 0:
            raise InvalidInputError(f"Coupon {label} must not be negative")
        # Storage keeps hundredths.
        if amount != quantize(amount):
            raise InvalidInputError(f"Coupon {label} allows at most two decimal places")

    if kind == CouponKindV1.PERCENT and to_decimal(value) > HUNDRED:
        raise InvalidInputError("Percent coupon value must be between 0 and 100")


def compute_subtotal(line_items: Iterable[LineItem]) -> Decimal:
    subtotal = ZERO
    for item in line_items:
        validate_line_item(item)
        subtotal += to_decimal(item.unit_price) * item.quantity
    return quantize(subtotal)


def compute_discount(subtotal: Decimal, coupon: CouponTerms | None) -> Decimal:
    if coupon is None:
        return ZERO

    if coupon.kind == CouponKindV1.PERCENT:
        raw = subtotal * to_decimal(coupon.value) / HUNDRED
        return quantize(min(raw, to_decimal(coupon.max_discount)))

    if coupon.kind == CouponKindV1.FLAT:
        # Below the threshold the coupon is a silent no-op, not an error.
        if subtotal >= to_decimal(coupon.min_subtotal):
            return quantize(to_decimal(coupon.value))
        return ZERO

    return ZERO


def price_subtotal(
    subtotal: Decimal,
    order_type: OrderTypeV1,
    coupon: CouponTerms | None,
    *,
    delivery_fee: Decimal = DEFAULT_DELIVERY_FEE,
) -> Pricing:
    """Price an already-summed subtotal.

    This is the arithmetic shared by the coupon preview (which only knows the cart
    subtotal) and full order pricing.
    """

    subtotal = quantize(to_decimal(subtotal, field="subtotal"))
    if subtotal < 0:
        raise InvalidInputError("subtotal must not be negative")

    fee = quantize(to_decimal(delivery_fee, field="delivery_fee"))
    if fee < 0:
        raise InvalidInputError("delivery_fee must not be negative")

    order_type = OrderTypeV1(order_type)
    base_fee = fee if order_type == OrderTypeV1.DELIVERY else ZERO

    free_delivery = (
        coupon is not None
        and coupon.kind == CouponKindV1.FREE_DELIVERY
        and order_type == OrderTypeV1.DELIVERY
    )
    if free_delivery:
        base_fee = ZERO

    discount = compute_discount(subtotal, coupon)
    total = max(ZERO, subtotal + base_fee - discount)

    return Pricing(
        subtotal=subtotal,
        discount=discount,
        delivery_fee=base_fee,
        total=quantize(total),
        free_delivery=free_delivery,
    )


def compute_pricing(
    line_items: Iterable[LineItem],
    order_type: OrderTypeV1,
    coupon: CouponTerms | None,
    *,
    delivery_fee: Decimal = DEFAULT_DELIVERY_FEE,
) -> Pricing:
    return price_subtotal(
        compute_subtotal(line_items),
        order_type,
        coupon,
        delivery_fee=delivery_fee,
    )
