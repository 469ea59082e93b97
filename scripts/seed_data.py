from __future__ import annotations

import argparse
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from packages.shared.pricing.engine import to_minor_units
from packages.shared.schemas.order_v1 import CouponKindV1
from services.api.app.db.database import db_session
from services.api.app.db.init_db import init_db
from services.api.app.db.models import MenuItem
from services.api.app.services.coupon_admin import CouponAdminService
from services.api.app.services.repositories import SqlCouponRepository

_MENU = (
    ("Masala Chai", "25", ()),
    ("Veg Burger", "99", ()),
    ("Paneer Roll", "120", (("Half", "70"), ("Full", "120"))),
    ("Chicken Momos", "110", (("6 pcs", "110"), ("10 pcs", "170"))),
)


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed menu items and starter coupons")
    parser.add_argument("--skip-menu", action="store_true")
    parser.add_argument("--skip-coupons", action="store_true")
    parser.add_argument("--coupon-days", type=int, default=30, help="Validity window in days")
    args = parser.parse_args()

    init_db()

    db = db_session()
    try:
        if not args.skip_menu and db.query(MenuItem).limit(1).count() == 0:
            for name, price, variants in _MENU:
                db.add(
                    MenuItem(
                        id=uuid4().hex,
                        name=name,
                        price_cents=to_minor_units(Decimal(price)),
                        variants_json=[
                            {"name": label, "price_cents": to_minor_units(Decimal(amount))}
                            for label, amount in variants
                        ],
                    )
                )
            db.commit()

        if not args.skip_coupons:
            coupons = SqlCouponRepository(db)
            admin = CouponAdminService(coupons)
            now = datetime.now(timezone.utc)
            until = now + timedelta(days=args.coupon_days)

            starters = (
                dict(code="CHAI10", kind=CouponKindV1.PERCENT, value="10", max_discount="100"),
                dict(code="FLAT50", kind=CouponKindV1.FLAT, value="50", min_subtotal="500"),
                dict(code="FREEDEL", kind=CouponKindV1.FREE_DELIVERY),
            )
            for fields in starters:
                if coupons.find_by_code(fields["code"]) is None:
                    admin.create(valid_from=now, valid_until=until, **fields)
    finally:
        db.close()

    print("Seed complete")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
