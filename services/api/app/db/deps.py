from __future__ import annotations

from collections.abc import Generator

from fastapi import Depends
from services.api.app.db.database import db_session
from services.api.app.services.coupon_admin import CouponAdminService
from services.api.app.services.coupon_validation import CouponValidationService
from services.api.app.services.order_assembly import OrderAssemblyService
from services.api.app.services.repositories import SqlCouponRepository, SqlOrderRepository
from services.api.app.settings import coupon_lookup_retries, delivery_fee, strict_order_status
from sqlalchemy.orm import Session


def get_db() -> Generator[Session, None, None]:
    db = db_session()
    try:
        yield db
    finally:
        db.close()


def get_coupon_validation(db: Session = Depends(get_db)) -> CouponValidationService:
    return CouponValidationService(
        SqlCouponRepository(db),
        delivery_fee=delivery_fee(),
        lookup_retries=coupon_lookup_retries(),
    )


def get_coupon_admin(db: Session = Depends(get_db)) -> CouponAdminService:
    return CouponAdminService(SqlCouponRepository(db))


def get_order_service(db: Session = Depends(get_db)) -> OrderAssemblyService:
    return OrderAssemblyService(
        SqlCouponRepository(db),
        SqlOrderRepository(db),
        delivery_fee=delivery_fee(),
        strict_status=strict_order_status(),
        lookup_retries=coupon_lookup_retries(),
    )
