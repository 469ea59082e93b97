from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from packages.shared.schemas.order_v1 import CouponKindV1, OrderTypeV1
from services.api.app.services.coupon_admin import CouponAdminService
from services.api.app.services.coupon_validation import CouponValidationService
from services.api.app.services.errors import (
    CouponInactiveError,
    CouponNotFoundError,
    DuplicateCouponError,
    InvalidInputError,
    PersistenceError,
)
from services.api.app.services.store import InMemoryCouponRepository

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def coupons() -> InMemoryCouponRepository:
    return InMemoryCouponRepository()


@pytest.fixture()
def admin(coupons: InMemoryCouponRepository) -> CouponAdminService:
    return CouponAdminService(coupons)


@pytest.fixture()
def service(coupons: InMemoryCouponRepository) -> CouponValidationService:
    return CouponValidationService(coupons, delivery_fee=Decimal("20"), clock=lambda: NOW)


def test_percent_coupon_preview(admin: CouponAdminService, service: CouponValidationService) -> None:
    admin.create(code="chai10", kind=CouponKindV1.PERCENT, value="10", max_discount="100")

    verdict = service.validate("  Chai10 ", Decimal("198"), OrderTypeV1.PICKUP)

    assert verdict.valid is True
    assert verdict.coupon.code == "CHAI10"
    assert verdict.coupon.kind == CouponKindV1.PERCENT
    assert verdict.discount == Decimal("19.80")
    assert verdict.free_delivery is False


def test_free_delivery_flag_depends_on_order_type(
    admin: CouponAdminService, service: CouponValidationService
) -> None:
    admin.create(code="FREEDEL", kind=CouponKindV1.FREE_DELIVERY)

    delivery = service.validate("FREEDEL", "150", OrderTypeV1.DELIVERY)
    pickup = service.validate("FREEDEL", "150", OrderTypeV1.PICKUP)

    assert delivery.free_delivery is True
    assert delivery.discount == Decimal("0")
    assert pickup.free_delivery is False


def test_flat_coupon_below_threshold_is_valid_with_zero_discount(
    admin: CouponAdminService, service: CouponValidationService
) -> None:
    admin.create(code="FLAT50", kind=CouponKindV1.FLAT, value="50", min_subtotal="500")

    assert service.validate("FLAT50", "400").discount == Decimal("0")
    assert service.validate("FLAT50", "500").discount == Decimal("50.00")


def test_unknown_code_is_not_found(service: CouponValidationService) -> None:
    with pytest.raises(CouponNotFoundError) as info:
        service.validate("NOPE", "100")
    assert str(info.value) == "Coupon not found"


def test_blank_code_is_invalid_input(service: CouponValidationService) -> None:
    with pytest.raises(InvalidInputError):
        service.validate("   ", "100")


def test_disabled_coupon_is_inactive(
    admin: CouponAdminService, service: CouponValidationService
) -> None:
    coupon = admin.create(code="CHAI10", kind=CouponKindV1.PERCENT, value="10")
    admin.set_active(coupon.id, False)

    with pytest.raises(CouponInactiveError) as info:
        service.validate("CHAI10", "100")
    assert str(info.value) == "Coupon is not active"
    assert info.value.reason == "disabled"


@pytest.mark.parametrize(
    ("valid_from", "valid_until", "reason"),
    [
        (NOW + timedelta(hours=1), None, "not_started"),
        (None, NOW - timedelta(seconds=1), "expired"),
    ],
)
def test_window_bounds_are_enforced(
    admin: CouponAdminService,
    service: CouponValidationService,
    valid_from: datetime | None,
    valid_until: datetime | None,
    reason: str,
) -> None:
    admin.create(
        code="WINDOW",
        kind=CouponKindV1.FLAT,
        value="10",
        valid_from=valid_from,
        valid_until=valid_until,
    )

    with pytest.raises(CouponInactiveError) as info:
        service.validate("WINDOW", "100")
    assert info.value.reason == reason


def test_window_bounds_are_inclusive(
    admin: CouponAdminService, service: CouponValidationService
) -> None:
    admin.create(code="EDGE", kind=CouponKindV1.FLAT, value="10", valid_from=NOW, valid_until=NOW)
    assert service.validate("EDGE", "100").discount == Decimal("10.00")


def test_exhausted_coupon_is_inactive(
    coupons: InMemoryCouponRepository,
    admin: CouponAdminService,
    service: CouponValidationService,
) -> None:
    coupon = admin.create(code="ONCE", kind=CouponKindV1.FLAT, value="10", max_redemptions=1)
    assert coupons.redeem(coupon.id) is True

    with pytest.raises(CouponInactiveError) as info:
        service.validate("ONCE", "100")
    assert info.value.reason == "exhausted"


def test_duplicate_codes_are_rejected_case_insensitively(admin: CouponAdminService) -> None:
    admin.create(code="CHAI10", kind=CouponKindV1.PERCENT, value="10")
    with pytest.raises(DuplicateCouponError):
        admin.create(code="chai10", kind=CouponKindV1.FLAT, value="10")


def test_inverted_window_is_rejected(admin: CouponAdminService) -> None:
    with pytest.raises(InvalidInputError):
        admin.create(
            code="BACKWARDS",
            kind=CouponKindV1.FLAT,
            value="10",
            valid_from=NOW,
            valid_until=NOW - timedelta(days=1),
        )


def test_sub_cent_values_are_rejected(
    coupons: InMemoryCouponRepository, admin: CouponAdminService
) -> None:
    with pytest.raises(InvalidInputError):
        admin.create(code="ODD", kind=CouponKindV1.PERCENT, value="12.345")
    assert coupons.find_by_code("ODD") is None


class _FlakyCoupons(InMemoryCouponRepository):
    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures
        self.calls = 0

    def find_by_code(self, code: str):
        self.calls += 1
        if self.calls <= self.failures:
            raise PersistenceError("store down")
        return super().find_by_code(code)


def test_lookup_is_retried_on_storage_failure() -> None:
    coupons = _FlakyCoupons(failures=0)
    CouponAdminService(coupons).create(code="CHAI10", kind=CouponKindV1.PERCENT, value="10")
    coupons.failures = 2
    coupons.calls = 0
    service = CouponValidationService(coupons, clock=lambda: NOW, lookup_retries=2)

    assert service.validate("CHAI10", "100").discount == Decimal("10.00")
    assert coupons.calls == 3


def test_lookup_gives_up_after_retries() -> None:
    coupons = _FlakyCoupons(failures=5)
    service = CouponValidationService(coupons, clock=lambda: NOW, lookup_retries=1)

    with pytest.raises(PersistenceError):
        service.validate("CHAI10", "100")
    assert coupons.calls == 2
