from __future__ import annotations

from fastapi import APIRouter, Depends
from services.api.app.auth import Caller, require_admin
from services.api.app.db.deps import get_coupon_admin, get_coupon_validation
from services.api.app.models.coupon import (
    CouponActiveRequest,
    CouponCreateRequest,
    CouponListResponse,
    CouponOut,
    CouponResponse,
    CouponSummaryOut,
    CouponValidateRequest,
    CouponValidateResponse,
)
from services.api.app.routers.errors import raise_http_error
from services.api.app.services.coupon_admin import CouponAdminService
from services.api.app.services.coupon_validation import CouponValidationService
from services.api.app.services.repositories import CouponRecord

router = APIRouter()


def _coupon_out(record: CouponRecord) -> CouponOut:
    return CouponOut(
        id=record.id,
        code=record.code,
        kind=record.kind,
        value=record.value,
        min_subtotal=record.min_subtotal,
        max_discount=record.max_discount,
        active=record.active,
        valid_from=record.valid_from.isoformat() if record.valid_from else None,
        valid_until=record.valid_until.isoformat() if record.valid_until else None,
        max_redemptions=record.max_redemptions,
        redeemed_count=record.redeemed_count,
        created_at=record.created_at.isoformat(),
    )


@router.post("/v1/coupons/validate", response_model=CouponValidateResponse)
def validate_coupon(
    payload: CouponValidateRequest,
    service: CouponValidationService = Depends(get_coupon_validation),
) -> CouponValidateResponse:
    try:
        verdict = service.validate(payload.code, payload.subtotal, payload.order_type)
    except Exception as e:
        raise_http_error(e)

    return CouponValidateResponse(
        valid=verdict.valid,
        coupon=CouponSummaryOut(
            code=verdict.coupon.code,
            kind=verdict.coupon.kind,
            value=verdict.coupon.value,
        ),
        discount=verdict.discount,
        free_delivery=verdict.free_delivery,
    )


@router.post("/v1/coupons", response_model=CouponResponse, status_code=201)
def create_coupon(
    payload: CouponCreateRequest,
    _admin: Caller = Depends(require_admin),
    service: CouponAdminService = Depends(get_coupon_admin),
) -> CouponResponse:
    try:
        record = service.create(**payload.model_dump())
    except Exception as e:
        raise_http_error(e)

    return CouponResponse(coupon=_coupon_out(record))


@router.get("/v1/coupons", response_model=CouponListResponse)
def list_coupons(
    _admin: Caller = Depends(require_admin),
    service: CouponAdminService = Depends(get_coupon_admin),
) -> CouponListResponse:
    try:
        records = service.list_all()
    except Exception as e:
        raise_http_error(e)

    return CouponListResponse(coupons=[_coupon_out(r) for r in records])


@router.put("/v1/coupons/{coupon_id}/active", response_model=CouponResponse)
def set_coupon_active(
    coupon_id: str,
    payload: CouponActiveRequest,
    _admin: Caller = Depends(require_admin),
    service: CouponAdminService = Depends(get_coupon_admin),
) -> CouponResponse:
    try:
        record = service.set_active(coupon_id, payload.active)
    except Exception as e:
        raise_http_error(e)

    return CouponResponse(coupon=_coupon_out(record))
