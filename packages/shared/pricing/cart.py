"""Immutable cart aggregate.

Every transition returns a new ``Cart`` and leaves the previous snapshot untouched.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, replace
from decimal import Decimal

from packages.shared.pricing.engine import (
    DEFAULT_DELIVERY_FEE,
    CouponTerms,
    LineItem,
    Pricing,
    compute_pricing,
    compute_subtotal,
    validate_line_item,
)
from packages.shared.schemas.order_v1 import OrderTypeV1

CartKey = tuple[str, str | None]


def line_key(item: LineItem) -> CartKey:
    # Ad-hoc entries without a catalog reference are keyed by name.
    return (item.reference_id or item.name, item.variant_label)


@dataclass(frozen=True, slots=True)
class Cart:
    items: tuple[LineItem, ...] = ()

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[LineItem]:
        return iter(self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def get(self, key: CartKey) -> LineItem | None:
        for item in self.items:
            if line_key(item) == key:
                return item
        return None

    def add(self, item: LineItem, quantity: int = 1) -> Cart:
        """Add ``quantity`` units; an existing line with the same key is incremented."""

        addition = replace(item, quantity=quantity)
        validate_line_item(addition)

        key = line_key(item)
        existing = self.get(key)
        if existing is None:
            return Cart(items=self.items + (addition,))

        return Cart(
            items=tuple(
                replace(it, quantity=it.quantity + quantity) if line_key(it) == key else it
                for it in self.items
            )
        )

    def remove(self, key: CartKey) -> Cart:
        return Cart(items=tuple(it for it in self.items if line_key(it) != key))

    def set_quantity(self, key: CartKey, quantity: int) -> Cart:
        if quantity < 1:
            return self.remove(key)

        return Cart(
            items=tuple(
                replace(it, quantity=quantity) if line_key(it) == key else it for it in self.items
            )
        )

    def clear(self) -> Cart:
        return Cart()

    def subtotal(self) -> Decimal:
        return compute_subtotal(self.items)

    def price(
        self,
        order_type: OrderTypeV1,
        coupon: CouponTerms | None = None,
        *,
        delivery_fee: Decimal = DEFAULT_DELIVERY_FEE,
    ) -> Pricing:
        return compute_pricing(self.items, order_type, coupon, delivery_fee=delivery_fee)
