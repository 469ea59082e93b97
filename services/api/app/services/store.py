from __future__ import annotations

from dataclasses import replace
from uuid import uuid4

from packages.shared.schemas.order_v1 import OrderStatusV1
from services.api.app.services.errors import (
    CouponNotFoundError,
    DuplicateCouponError,
    OrderNotFoundError,
)
from services.api.app.services.repositories import (
    CouponRecord,
    NewCoupon,
    OrderEvent,
    OrderRecord,
    OrderSnapshot,
    utcnow,
)


class InMemoryCouponRepository:
    """Dict-backed coupon repository for service tests and local tooling."""

    def __init__(self) -> None:
        self._coupons: dict[str, CouponRecord] = {}

    def find_by_code(self, code: str) -> CouponRecord | None:
        for coupon in self._coupons.values():
            if coupon.code == code:
                return coupon
        return None

    def list_all(self) -> list[CouponRecord]:
        return sorted(self._coupons.values(), key=lambda c: c.created_at, reverse=True)

    def create(self, fields: NewCoupon) -> CouponRecord:
        if self.find_by_code(fields.code) is not None:
            raise DuplicateCouponError(fields.code)

        record = CouponRecord(
            id=uuid4().hex,
            code=fields.code,
            kind=fields.kind,
            value=fields.value,
            min_subtotal=fields.min_subtotal,
            max_discount=fields.max_discount,
            active=fields.active,
            valid_from=fields.valid_from,
            valid_until=fields.valid_until,
            max_redemptions=fields.max_redemptions,
            redeemed_count=0,
            created_at=utcnow(),
        )
        self._coupons[record.id] = record
        return record

    def set_active(self, coupon_id: str, active: bool) -> CouponRecord:
        record = self._coupons.get(coupon_id)
        if record is None:
            raise CouponNotFoundError(coupon_id)

        updated = replace(record, active=active)
        self._coupons[coupon_id] = updated
        return updated

    def redeem(self, coupon_id: str) -> bool:
        record = self._coupons.get(coupon_id)
        if record is None:
            return False
        if record.max_redemptions is not None and record.redeemed_count >= record.max_redemptions:
            return False

        self._coupons[coupon_id] = replace(record, redeemed_count=record.redeemed_count + 1)
        return True


class InMemoryOrderRepository:
    def __init__(self) -> None:
        self._orders: dict[str, OrderRecord] = {}
        self._events: list[OrderEvent] = []

    def insert(self, snapshot: OrderSnapshot) -> OrderRecord:
        now = utcnow()
        record = OrderRecord(
            id=uuid4().hex,
            user_id=snapshot.user_id,
            line_items=tuple(snapshot.line_items),
            subtotal=snapshot.subtotal,
            discount=snapshot.discount,
            delivery_fee=snapshot.delivery_fee,
            total=snapshot.total,
            coupon_code=snapshot.coupon_code,
            order_type=snapshot.order_type,
            payment_method=snapshot.payment_method,
            payment_reference=snapshot.payment_reference,
            status=OrderStatusV1.PLACED,
            customer=snapshot.customer,
            idempotency_key=snapshot.idempotency_key,
            created_at=now,
            updated_at=now,
        )
        self._orders[record.id] = record
        self._record(record.id, snapshot.user_id, "ORDER_PLACED", {"total": str(record.total)})
        return record

    def get(self, order_id: str) -> OrderRecord | None:
        return self._orders.get(order_id)

    def find_by_owner(self, user_id: str) -> list[OrderRecord]:
        return sorted(
            (o for o in self._orders.values() if o.user_id == user_id),
            key=lambda o: o.created_at,
            reverse=True,
        )

    def find_by_idempotency_key(self, user_id: str, key: str) -> OrderRecord | None:
        for order in self._orders.values():
            if order.user_id == user_id and order.idempotency_key == key:
                return order
        return None

    def list_all(self) -> list[OrderRecord]:
        return sorted(self._orders.values(), key=lambda o: o.created_at, reverse=True)

    def update_status(
        self, order_id: str, status: OrderStatusV1, *, actor_id: str | None = None
    ) -> OrderRecord:
        record = self._orders.get(order_id)
        if record is None:
            raise OrderNotFoundError(order_id)

        updated = replace(record, status=status, updated_at=utcnow())
        self._orders[order_id] = updated
        self._record(
            order_id,
            actor_id,
            "ORDER_STATUS_CHANGED",
            {"from": record.status.value, "to": status.value},
        )
        return updated

    def events(self, order_id: str) -> list[OrderEvent]:
        return [e for e in self._events if e.order_id == order_id]

    def _record(self, order_id: str, user_id: str | None, event_type: str, payload: dict) -> None:
        self._events.append(
            OrderEvent(
                id=uuid4().hex,
                order_id=order_id,
                user_id=user_id,
                event_type=event_type,
                payload=payload,
                created_at=utcnow(),
            )
        )
