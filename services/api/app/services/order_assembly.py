from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from packages.shared.pricing.engine import (
    DEFAULT_DELIVERY_FEE,
    InvalidInputError,
    LineItem,
    Pricing,
    compute_pricing,
    to_decimal,
    validate_line_item,
)
from packages.shared.schemas.order_v1 import OrderStatusV1, OrderTypeV1
from services.api.app.logger import get_logger
from services.api.app.services.coupon_validation import CouponValidationService
from services.api.app.services.errors import (
    EmptyCartError,
    InactiveError,
    InvalidTransitionError,
    NotFoundError,
    OrderNotFoundError,
)
from services.api.app.services.repositories import (
    CouponRecord,
    CouponRepository,
    CustomerInfo,
    OrderEvent,
    OrderRecord,
    OrderRepository,
    OrderSnapshot,
    utcnow,
)

log = get_logger("orders")

# Only consulted when strict status checking is switched on.
ALLOWED_TRANSITIONS: dict[OrderStatusV1, frozenset[OrderStatusV1]] = {
    OrderStatusV1.PLACED: frozenset({OrderStatusV1.PACKING, OrderStatusV1.CANCELLED}),
    OrderStatusV1.PACKING: frozenset(
        {OrderStatusV1.SHIPPED, OrderStatusV1.OUT_FOR_DELIVERY, OrderStatusV1.CANCELLED}
    ),
    OrderStatusV1.SHIPPED: frozenset(
        {OrderStatusV1.OUT_FOR_DELIVERY, OrderStatusV1.DELIVERED, OrderStatusV1.CANCELLED}
    ),
    OrderStatusV1.OUT_FOR_DELIVERY: frozenset({OrderStatusV1.DELIVERED, OrderStatusV1.CANCELLED}),
    OrderStatusV1.DELIVERED: frozenset(),
    OrderStatusV1.CANCELLED: frozenset(),
}


@dataclass(frozen=True, slots=True)
class Quote:
    pricing: Pricing
    coupon_code: str | None
    coupon_message: str | None


class OrderAssemblyService:
    """Server-side authority for order totals.

    Client-submitted totals never reach this class: pricing is recomputed from the
    submitted line items and a fresh coupon lookup every time an order is placed.
    """

    def __init__(
        self,
        coupons: CouponRepository,
        orders: OrderRepository,
        *,
        delivery_fee: Decimal = DEFAULT_DELIVERY_FEE,
        clock: Callable[[], datetime] = utcnow,
        strict_status: bool = False,
        lookup_retries: int = 0,
    ) -> None:
        self._coupons = coupons
        self._orders = orders
        self._delivery_fee = delivery_fee
        self._clock = clock
        self._strict_status = strict_status
        self._validator = CouponValidationService(
            coupons,
            delivery_fee=delivery_fee,
            clock=clock,
            lookup_retries=lookup_retries,
        )

    def quote(
        self,
        items: Sequence[LineItem],
        coupon_code: str | None,
        order_type: OrderTypeV1,
    ) -> Quote:
        line_items = self._snapshot_lines(items)
        coupon, message = self._eligible_coupon(coupon_code)
        pricing = self._price(line_items, order_type, coupon)
        return Quote(
            pricing=pricing,
            coupon_code=coupon.code if coupon is not None else None,
            coupon_message=message,
        )

    def place_order(
        self,
        items: Sequence[LineItem],
        coupon_code: str | None,
        order_type: OrderTypeV1,
        customer: CustomerInfo,
        payment_method: str,
        *,
        owner_id: str | None,
        payment_reference: str | None = None,
        idempotency_key: str | None = None,
    ) -> OrderRecord:
        if owner_id and idempotency_key:
            existing = self._orders.find_by_idempotency_key(owner_id, idempotency_key)
            if existing is not None:
                log.info("Order %s replayed for idempotency key %s", existing.id, idempotency_key)
                return existing

        line_items = self._snapshot_lines(items)
        order_type = OrderTypeV1(order_type)

        if order_type == OrderTypeV1.DELIVERY and not (customer.address1 or "").strip():
            raise InvalidInputError("Delivery orders need an address")

        method = (payment_method or "").strip().upper()
        if not method:
            raise InvalidInputError("payment_method is required")

        coupon, _ = self._eligible_coupon(coupon_code)
        pricing = self._price(line_items, order_type, coupon)

        # A coupon that changes nothing on this order does not use up a redemption.
        applies = pricing.discount > 0 or pricing.free_delivery
        if coupon is not None and applies and not self._coupons.redeem(coupon.id):
            log.info("Coupon %s ran out of redemptions, placing order without it", coupon.code)
            coupon = None
            pricing = self._price(line_items, order_type, None)

        order = self._orders.insert(
            OrderSnapshot(
                user_id=owner_id,
                line_items=line_items,
                subtotal=pricing.subtotal,
                discount=pricing.discount,
                delivery_fee=pricing.delivery_fee,
                total=pricing.total,
                coupon_code=coupon.code if coupon is not None else None,
                order_type=order_type,
                payment_method=method,
                payment_reference=payment_reference,
                customer=customer,
                idempotency_key=idempotency_key,
            )
        )
        log.info(
            "Order %s placed by %s: total=%s coupon=%s",
            order.id,
            owner_id or "anonymous",
            order.total,
            order.coupon_code,
        )
        return order

    def update_status(
        self,
        order_id: str,
        status: OrderStatusV1,
        *,
        actor_id: str | None = None,
    ) -> OrderRecord:
        status = OrderStatusV1(status)

        if self._strict_status:
            current = self._orders.get(order_id)
            if current is None:
                raise OrderNotFoundError(order_id)
            if status != current.status and status not in ALLOWED_TRANSITIONS[current.status]:
                raise InvalidTransitionError(current.status.value, status.value)

        order = self._orders.update_status(order_id, status, actor_id=actor_id)
        log.info("Order %s moved to %s", order.id, order.status.value)
        return order

    def orders_for(self, owner_id: str) -> list[OrderRecord]:
        return self._orders.find_by_owner(owner_id)

    def all_orders(self) -> list[OrderRecord]:
        return self._orders.list_all()

    def history(self, order_id: str) -> list[OrderEvent]:
        if self._orders.get(order_id) is None:
            raise OrderNotFoundError(order_id)
        return self._orders.events(order_id)

    def _snapshot_lines(self, items: Sequence[LineItem]) -> tuple[LineItem, ...]:
        if not items:
            raise EmptyCartError()

        snapshot = []
        for item in items:
            validate_line_item(item)
            snapshot.append(
                LineItem(
                    name=item.name.strip(),
                    unit_price=to_decimal(item.unit_price),
                    quantity=item.quantity,
                    reference_id=item.reference_id,
                    variant_label=item.variant_label,
                )
            )
        return tuple(snapshot)

    def _eligible_coupon(self, coupon_code: str | None) -> tuple[CouponRecord | None, str | None]:
        """Resolve the coupon fresh; an unusable one degrades to no coupon."""

        if coupon_code is None or not coupon_code.strip():
            return None, None

        try:
            return self._validator.resolve(coupon_code, self._clock()), None
        except (NotFoundError, InactiveError) as e:
            log.info("Ignoring coupon %r at checkout: %s", coupon_code, e)
            return None, str(e)

    def _price(
        self,
        line_items: tuple[LineItem, ...],
        order_type: OrderTypeV1,
        coupon: CouponRecord | None,
    ) -> Pricing:
        return compute_pricing(
            line_items,
            order_type,
            coupon.terms() if coupon is not None else None,
            delivery_fee=self._delivery_fee,
        )
