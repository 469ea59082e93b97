from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from packages.shared.schemas.order_v1 import CouponKindV1, OrderTypeV1
from pydantic import BaseModel, Field, StrictBool


class CouponValidateRequest(BaseModel):
    code: str = Field(..., min_length=1)
    subtotal: Decimal = Field(default=Decimal("0"), ge=0)
    order_type: OrderTypeV1 = OrderTypeV1.PICKUP


class CouponSummaryOut(BaseModel):
    code: str
    kind: CouponKindV1
    value: Decimal


class CouponValidateResponse(BaseModel):
    valid: bool
    coupon: CouponSummaryOut
    discount: Decimal
    free_delivery: bool


class CouponCreateRequest(BaseModel):
    code: str = Field(..., min_length=1)
    kind: CouponKindV1
    value: Decimal = Decimal("0")
    min_subtotal: Decimal = Decimal("0")
    max_discount: Decimal = Decimal("100000")
    active: bool = True
    valid_from: datetime | None = None
    valid_until: datetime | None = None

    # None means unlimited uses.
    max_redemptions: int | None = None


class CouponActiveRequest(BaseModel):
    active: StrictBool


class CouponOut(BaseModel):
    id: str
    code: str
    kind: CouponKindV1
    value: Decimal
    min_subtotal: Decimal
    max_discount: Decimal
    active: bool
    valid_from: str | None = None
    valid_until: str | None = None
    max_redemptions: int | None = None
    redeemed_count: int = 0
    created_at: str


class CouponResponse(BaseModel):
    coupon: CouponOut


class CouponListResponse(BaseModel):
    coupons: list[CouponOut] = Field(default_factory=list)
