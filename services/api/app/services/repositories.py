from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Protocol
from uuid import uuid4

from packages.shared.pricing.engine import (
    CouponTerms,
    LineItem,
    from_minor_units,
    to_minor_units,
)
from packages.shared.schemas.order_v1 import CouponKindV1, OrderStatusV1, OrderTypeV1
from services.api.app.db.models import Coupon, EventLog, Order
from services.api.app.logger import get_logger
from services.api.app.services.errors import (
    CouponNotFoundError,
    DuplicateCouponError,
    OrderNotFoundError,
    PersistenceError,
)
from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

log = get_logger("repositories")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True, slots=True)
class NewCoupon:
    code: str
    kind: CouponKindV1
    value: Decimal = Decimal("0")
    min_subtotal: Decimal = Decimal("0")
    max_discount: Decimal = Decimal("100000")
    active: bool = True
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    max_redemptions: int | None = None


@dataclass(frozen=True, slots=True)
class CouponRecord:
    id: str
    code: str
    kind: CouponKindV1
    value: Decimal
    min_subtotal: Decimal
    max_discount: Decimal
    active: bool
    valid_from: datetime | None
    valid_until: datetime | None
    max_redemptions: int | None
    redeemed_count: int
    created_at: datetime

    def terms(self) -> CouponTerms:
        return CouponTerms(
            code=self.code,
            kind=self.kind,
            value=self.value,
            min_subtotal=self.min_subtotal,
            max_discount=self.max_discount,
        )

    def ineligibility_reason(self, now: datetime) -> str | None:
        """Return why the coupon cannot be used at ``now``, or None if it can."""

        if not self.active:
            return "disabled"
        if self.valid_from is not None and now < self.valid_from:
            return "not_started"
        if self.valid_until is not None and now > self.valid_until:
            return "expired"
        if self.max_redemptions is not None and self.redeemed_count >= self.max_redemptions:
            return "exhausted"
        return None


@dataclass(frozen=True, slots=True)
class CustomerInfo:
    customer_name: str | None = None
    phone: str | None = None
    address1: str | None = None
    address2: str | None = None
    landmark: str | None = None
    pincode: str | None = None
    notes: str | None = None


@dataclass(frozen=True, slots=True)
class OrderSnapshot:
    """Everything needed to insert an order; all numbers are already server-computed."""

    user_id: str | None
    line_items: tuple[LineItem, ...]
    subtotal: Decimal
    discount: Decimal
    delivery_fee: Decimal
    total: Decimal
    coupon_code: str | None
    order_type: OrderTypeV1
    payment_method: str
    payment_reference: str | None = None
    customer: CustomerInfo = field(default_factory=CustomerInfo)
    idempotency_key: str | None = None


@dataclass(frozen=True, slots=True)
class OrderRecord:
    id: str
    user_id: str | None
    line_items: tuple[LineItem, ...]
    subtotal: Decimal
    discount: Decimal
    delivery_fee: Decimal
    total: Decimal
    coupon_code: str | None
    order_type: OrderTypeV1
    payment_method: str
    payment_reference: str | None
    status: OrderStatusV1
    customer: CustomerInfo
    idempotency_key: str | None
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True, slots=True)
class OrderEvent:
    id: str
    order_id: str
    user_id: str | None
    event_type: str
    payload: dict
    created_at: datetime


class CouponRepository(Protocol):
    def find_by_code(self, code: str) -> CouponRecord | None: ...

    def list_all(self) -> list[CouponRecord]: ...

    def create(self, fields: NewCoupon) -> CouponRecord: ...

    def set_active(self, coupon_id: str, active: bool) -> CouponRecord: ...

    def redeem(self, coupon_id: str) -> bool: ...


class OrderRepository(Protocol):
    def insert(self, snapshot: OrderSnapshot) -> OrderRecord: ...

    def get(self, order_id: str) -> OrderRecord | None: ...

    def find_by_owner(self, user_id: str) -> list[OrderRecord]: ...

    def find_by_idempotency_key(self, user_id: str, key: str) -> OrderRecord | None: ...

    def list_all(self) -> list[OrderRecord]: ...

    def update_status(
        self, order_id: str, status: OrderStatusV1, *, actor_id: str | None = None
    ) -> OrderRecord: ...

    def events(self, order_id: str) -> list[OrderEvent]: ...


def _line_to_json(item: LineItem) -> dict:
    return {
        "name": item.name,
        "unit_price_cents": to_minor_units(item.unit_price),
        "quantity": item.quantity,
        "reference_id": item.reference_id,
        "variant_label": item.variant_label,
    }


def _line_from_json(raw: dict) -> LineItem:
    return LineItem(
        name=raw["name"],
        unit_price=from_minor_units(int(raw["unit_price_cents"])),
        quantity=int(raw["quantity"]),
        reference_id=raw.get("reference_id"),
        variant_label=raw.get("variant_label"),
    )


def _coupon_record(row: Coupon) -> CouponRecord:
    return CouponRecord(
        id=row.id,
        code=row.code,
        kind=CouponKindV1(row.kind),
        value=from_minor_units(row.value_units),
        min_subtotal=from_minor_units(row.min_subtotal_cents),
        max_discount=from_minor_units(row.max_discount_cents),
        active=bool(row.active),
        valid_from=as_utc(row.valid_from),
        valid_until=as_utc(row.valid_until),
        max_redemptions=row.max_redemptions,
        redeemed_count=row.redeemed_count or 0,
        created_at=as_utc(row.created_at) or utcnow(),
    )


def _order_record(row: Order) -> OrderRecord:
    return OrderRecord(
        id=row.id,
        user_id=row.user_id,
        line_items=tuple(_line_from_json(it) for it in row.line_items_json or []),
        subtotal=from_minor_units(row.subtotal_cents),
        discount=from_minor_units(row.discount_cents),
        delivery_fee=from_minor_units(row.delivery_fee_cents),
        total=from_minor_units(row.total_cents),
        coupon_code=row.coupon_code,
        order_type=OrderTypeV1(row.order_type),
        payment_method=row.payment_method,
        payment_reference=row.payment_reference,
        status=OrderStatusV1(row.status),
        customer=CustomerInfo(
            customer_name=row.customer_name,
            phone=row.phone,
            address1=row.address1,
            address2=row.address2,
            landmark=row.landmark,
            pincode=row.pincode,
            notes=row.notes,
        ),
        idempotency_key=row.idempotency_key,
        created_at=as_utc(row.created_at) or utcnow(),
        updated_at=as_utc(row.updated_at) or utcnow(),
    )


def _storage_failure(db: Session, action: str, e: SQLAlchemyError) -> PersistenceError:
    db.rollback()
    log.error("Storage failure while trying to %s", action, exc_info=e)
    return PersistenceError(f"Storage failure while trying to {action}")


class SqlCouponRepository:
    def __init__(self, db: Session) -> None:
        self._db = db

    def find_by_code(self, code: str) -> CouponRecord | None:
        try:
            row = self._db.scalars(select(Coupon).where(Coupon.code == code)).first()
        except SQLAlchemyError as e:
            raise _storage_failure(self._db, "look up coupon", e) from e
        return _coupon_record(row) if row is not None else None

    def list_all(self) -> list[CouponRecord]:
        try:
            rows = self._db.scalars(select(Coupon).order_by(Coupon.created_at.desc())).all()
        except SQLAlchemyError as e:
            raise _storage_failure(self._db, "list coupons", e) from e
        return [_coupon_record(r) for r in rows]

    def create(self, fields: NewCoupon) -> CouponRecord:
        row = Coupon(
            id=uuid4().hex,
            code=fields.code,
            kind=fields.kind.value,
            value_units=to_minor_units(fields.value),
            min_subtotal_cents=to_minor_units(fields.min_subtotal),
            max_discount_cents=to_minor_units(fields.max_discount),
            active=fields.active,
            valid_from=fields.valid_from,
            valid_until=fields.valid_until,
            max_redemptions=fields.max_redemptions,
            redeemed_count=0,
        )
        try:
            self._db.add(row)
            self._db.commit()
        except IntegrityError as e:
            self._db.rollback()
            raise DuplicateCouponError(fields.code) from e
        except SQLAlchemyError as e:
            raise _storage_failure(self._db, "create coupon", e) from e

        self._db.refresh(row)
        return _coupon_record(row)

    def set_active(self, coupon_id: str, active: bool) -> CouponRecord:
        try:
            row = self._db.get(Coupon, coupon_id)
            if row is None:
                raise CouponNotFoundError(coupon_id)
            row.active = active
            row.updated_at = utcnow()
            self._db.commit()
            self._db.refresh(row)
        except SQLAlchemyError as e:
            raise _storage_failure(self._db, "update coupon", e) from e
        return _coupon_record(row)

    def redeem(self, coupon_id: str) -> bool:
        """Count one use of the coupon if it still has uses left.

        Not committed here: the order insert commits it, so a failed insert rolls it back.
        """

        stmt = (
            update(Coupon)
            .where(Coupon.id == coupon_id)
            .where(
                or_(
                    Coupon.max_redemptions.is_(None),
                    Coupon.redeemed_count < Coupon.max_redemptions,
                )
            )
            .values(redeemed_count=Coupon.redeemed_count + 1)
        )
        try:
            result = self._db.execute(stmt)
        except SQLAlchemyError as e:
            raise _storage_failure(self._db, "redeem coupon", e) from e
        return result.rowcount == 1


class SqlOrderRepository:
    def __init__(self, db: Session) -> None:
        self._db = db

    def insert(self, snapshot: OrderSnapshot) -> OrderRecord:
        order_id = uuid4().hex
        customer = snapshot.customer
        row = Order(
            id=order_id,
            user_id=snapshot.user_id,
            line_items_json=[_line_to_json(it) for it in snapshot.line_items],
            subtotal_cents=to_minor_units(snapshot.subtotal),
            discount_cents=to_minor_units(snapshot.discount),
            delivery_fee_cents=to_minor_units(snapshot.delivery_fee),
            total_cents=to_minor_units(snapshot.total),
            coupon_code=snapshot.coupon_code,
            order_type=snapshot.order_type.value,
            payment_method=snapshot.payment_method,
            payment_reference=snapshot.payment_reference,
            status=OrderStatusV1.PLACED.value,
            customer_name=customer.customer_name,
            phone=customer.phone,
            address1=customer.address1,
            address2=customer.address2,
            landmark=customer.landmark,
            pincode=customer.pincode,
            notes=customer.notes,
            idempotency_key=snapshot.idempotency_key,
        )
        try:
            self._db.add(row)
            self._log_event(
                user_id=snapshot.user_id,
                order_id=order_id,
                event_type="ORDER_PLACED",
                payload={
                    "total_cents": row.total_cents,
                    "coupon_code": snapshot.coupon_code,
                    "order_type": snapshot.order_type.value,
                },
            )
            self._db.commit()
        except IntegrityError as e:
            self._db.rollback()
            if snapshot.user_id and snapshot.idempotency_key:
                existing = self.find_by_idempotency_key(snapshot.user_id, snapshot.idempotency_key)
                if existing is not None:
                    return existing
            raise _storage_failure(self._db, "insert order", e) from e
        except SQLAlchemyError as e:
            raise _storage_failure(self._db, "insert order", e) from e

        self._db.refresh(row)
        return _order_record(row)

    def get(self, order_id: str) -> OrderRecord | None:
        try:
            row = self._db.get(Order, order_id)
        except SQLAlchemyError as e:
            raise _storage_failure(self._db, "load order", e) from e
        return _order_record(row) if row is not None else None

    def find_by_owner(self, user_id: str) -> list[OrderRecord]:
        stmt = select(Order).where(Order.user_id == user_id).order_by(Order.created_at.desc())
        try:
            rows = self._db.scalars(stmt).all()
        except SQLAlchemyError as e:
            raise _storage_failure(self._db, "list orders", e) from e
        return [_order_record(r) for r in rows]

    def find_by_idempotency_key(self, user_id: str, key: str) -> OrderRecord | None:
        stmt = select(Order).where(Order.user_id == user_id, Order.idempotency_key == key)
        try:
            row = self._db.scalars(stmt).first()
        except SQLAlchemyError as e:
            raise _storage_failure(self._db, "look up order", e) from e
        return _order_record(row) if row is not None else None

    def list_all(self) -> list[OrderRecord]:
        try:
            rows = self._db.scalars(select(Order).order_by(Order.created_at.desc()).limit(500)).all()
        except SQLAlchemyError as e:
            raise _storage_failure(self._db, "list orders", e) from e
        return [_order_record(r) for r in rows]

    def update_status(
        self, order_id: str, status: OrderStatusV1, *, actor_id: str | None = None
    ) -> OrderRecord:
        try:
            row = self._db.get(Order, order_id)
            if row is None:
                raise OrderNotFoundError(order_id)

            previous = row.status
            row.status = status.value
            row.updated_at = utcnow()
            self._log_event(
                user_id=actor_id,
                order_id=order_id,
                event_type="ORDER_STATUS_CHANGED",
                payload={"from": previous, "to": status.value},
            )
            self._db.commit()
            self._db.refresh(row)
        except SQLAlchemyError as e:
            raise _storage_failure(self._db, "update order status", e) from e
        return _order_record(row)

    def events(self, order_id: str) -> list[OrderEvent]:
        stmt = (
            select(EventLog)
            .where(EventLog.entity_type == "Order", EventLog.entity_id == order_id)
            .order_by(EventLog.created_at.asc())
        )
        try:
            rows = self._db.scalars(stmt).all()
        except SQLAlchemyError as e:
            raise _storage_failure(self._db, "load order events", e) from e

        return [
            OrderEvent(
                id=r.id,
                order_id=r.entity_id,
                user_id=r.user_id,
                event_type=r.event_type,
                payload=r.event_payload_json or {},
                created_at=as_utc(r.created_at) or utcnow(),
            )
            for r in rows
        ]

    def _log_event(
        self,
        *,
        user_id: str | None,
        order_id: str,
        event_type: str,
        payload: dict,
    ) -> None:
        self._db.add(
            EventLog(
                id=uuid4().hex,
                user_id=user_id,
                entity_type="Order",
                entity_id=order_id,
                event_type=event_type,
                event_payload_json=payload,
            )
        )
