from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from packages.shared.pricing.engine import (
    DEFAULT_MAX_DISCOUNT,
    InvalidInputError,
    to_decimal,
    validate_coupon_terms,
)
from packages.shared.schemas.order_v1 import CouponKindV1
from services.api.app.logger import get_logger
from services.api.app.services.coupon_validation import normalize_code
from services.api.app.services.repositories import (
    CouponRecord,
    CouponRepository,
    NewCoupon,
    as_utc,
)

log = get_logger("coupons.admin")


class CouponAdminService:
    def __init__(self, coupons: CouponRepository) -> None:
        self._coupons = coupons

    def create(
        self,
        *,
        code: str,
        kind: CouponKindV1,
        value: Decimal | int | str = 0,
        min_subtotal: Decimal | int | str = 0,
        max_discount: Decimal | int | str = DEFAULT_MAX_DISCOUNT,
        active: bool = True,
        valid_from: datetime | None = None,
        valid_until: datetime | None = None,
        max_redemptions: int | None = None,
    ) -> CouponRecord:
        kind = CouponKindV1(kind)
        value = to_decimal(value, field="value")
        min_subtotal = to_decimal(min_subtotal, field="min_subtotal")
        max_discount = to_decimal(max_discount, field="max_discount")

        validate_coupon_terms(kind, value, min_subtotal, max_discount)

        valid_from = as_utc(valid_from)
        valid_until = as_utc(valid_until)
        if valid_from is not None and valid_until is not None and valid_from > valid_until:
            raise InvalidInputError("valid_from must not be after valid_until")

        if max_redemptions is not None and max_redemptions < 1:
            raise InvalidInputError("max_redemptions must be at least 1")

        record = self._coupons.create(
            NewCoupon(
                code=normalize_code(code),
                kind=kind,
                # Free delivery ignores value entirely.
                value=Decimal("0") if kind == CouponKindV1.FREE_DELIVERY else value,
                min_subtotal=min_subtotal,
                max_discount=max_discount,
                active=active,
                valid_from=valid_from,
                valid_until=valid_until,
                max_redemptions=max_redemptions,
            )
        )
        log.info("Coupon %s created (%s)", record.code, record.kind.value)
        return record

    def list_all(self) -> list[CouponRecord]:
        return self._coupons.list_all()

    def set_active(self, coupon_id: str, active: bool) -> CouponRecord:
        record = self._coupons.set_active(coupon_id, active)
        log.info("Coupon %s %s", record.code, "enabled" if active else "disabled")
        return record
