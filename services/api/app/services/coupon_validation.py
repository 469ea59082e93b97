from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from packages.shared.pricing.engine import (
    DEFAULT_DELIVERY_FEE,
    InvalidInputError,
    Pricing,
    price_subtotal,
    to_decimal,
)
from packages.shared.schemas.order_v1 import CouponKindV1, OrderTypeV1
from services.api.app.logger import get_logger
from services.api.app.services.errors import (
    CouponInactiveError,
    CouponNotFoundError,
    PersistenceError,
)
from services.api.app.services.repositories import CouponRecord, CouponRepository, utcnow

log = get_logger("coupons")


def normalize_code(code: str | None) -> str:
    normalized = (code or "").strip().upper()
    if not normalized:
        raise InvalidInputError("Coupon code is required")
    return normalized


@dataclass(frozen=True, slots=True)
class CouponSummary:
    code: str
    kind: CouponKindV1
    value: Decimal


@dataclass(frozen=True, slots=True)
class CouponVerdict:
    valid: bool
    coupon: CouponSummary
    discount: Decimal
    free_delivery: bool
    pricing: Pricing


class CouponValidationService:
    """Advisory coupon check for the checkout screen.

    The numbers come from ``price_subtotal``, the same function the order service
    prices with, so a preview matches the order placed under the same coupon state.
    """

    def __init__(
        self,
        coupons: CouponRepository,
        *,
        delivery_fee: Decimal = DEFAULT_DELIVERY_FEE,
        clock: Callable[[], datetime] = utcnow,
        lookup_retries: int = 0,
    ) -> None:
        self._coupons = coupons
        self._delivery_fee = delivery_fee
        self._clock = clock
        self._lookup_retries = max(0, lookup_retries)

    def validate(
        self,
        code: str | None,
        subtotal: Decimal | int | float | str,
        order_type: OrderTypeV1 = OrderTypeV1.PICKUP,
    ) -> CouponVerdict:
        coupon = self.resolve(code)
        pricing = price_subtotal(
            to_decimal(subtotal, field="subtotal"),
            order_type,
            coupon.terms(),
            delivery_fee=self._delivery_fee,
        )

        return CouponVerdict(
            valid=True,
            coupon=CouponSummary(code=coupon.code, kind=coupon.kind, value=coupon.value),
            discount=pricing.discount,
            free_delivery=pricing.free_delivery,
            pricing=pricing,
        )

    def resolve(self, code: str | None, now: datetime | None = None) -> CouponRecord:
        """Look up ``code`` and check it is usable right now.

        Raises CouponNotFoundError or CouponInactiveError. Never cached: callers that
        need a fresh answer (order placement) get one.
        """

        normalized = normalize_code(code)
        coupon = self._find(normalized)
        if coupon is None:
            log.info("Coupon %s not found", normalized)
            raise CouponNotFoundError(normalized)

        reason = coupon.ineligibility_reason(now or self._clock())
        if reason is not None:
            log.info("Coupon %s rejected: %s", normalized, reason)
            raise CouponInactiveError(normalized, reason)

        return coupon

    def _find(self, code: str) -> CouponRecord | None:
        attempt = 0
        while True:
            try:
                return self._coupons.find_by_code(code)
            except PersistenceError:
                if attempt >= self._lookup_retries:
                    raise
                attempt += 1
                log.warning("Coupon lookup failed, retrying (%d/%d)", attempt, self._lookup_retries)
