from __future__ import annotations

import os
from decimal import Decimal, InvalidOperation

_TRUTHY = {"1", "true", "yes", "y"}


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


def database_url() -> str:
    # Local-only default. Production must provide DATABASE_URL explicitly.
    return os.getenv("DATABASE_URL", "sqlite+pysqlite:///.local/chai.db")


def db_auto_create() -> bool:
    return _flag("CHAI_DB_AUTO_CREATE", "true")


def delivery_fee() -> Decimal:
    raw = os.getenv("CHAI_DELIVERY_FEE", "20").strip()
    try:
        fee = Decimal(raw)
    except InvalidOperation as e:
        raise ValueError(f"Invalid CHAI_DELIVERY_FEE={raw!r}. Expected a decimal amount.") from e

    if not fee.is_finite() or fee < 0:
        raise ValueError(f"Invalid CHAI_DELIVERY_FEE={raw!r}. Must be zero or positive.")
    return fee


def coupon_lookup_retries() -> int:
    raw = os.getenv("CHAI_COUPON_LOOKUP_RETRIES", "2").strip()
    try:
        retries = int(raw)
    except ValueError as e:
        raise ValueError(f"Invalid CHAI_COUPON_LOOKUP_RETRIES={raw!r}. Expected an integer.") from e

    return max(0, retries)


def strict_order_status() -> bool:
    """Enforce the order status transition table instead of allowing any change."""

    return _flag("CHAI_STRICT_ORDER_STATUS", "false")


def log_level() -> str:
    return os.getenv("CHAI_LOG_LEVEL", "INFO").strip().upper() or "INFO"
