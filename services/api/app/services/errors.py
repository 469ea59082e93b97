"""Domain errors raised by the coupon and order services.

Routers translate these into HTTP responses; services never raise ``HTTPException``.
"""

from __future__ import annotations

from packages.shared.pricing.engine import InvalidInputError

__all__ = [
    "CouponInactiveError",
    "CouponNotFoundError",
    "DuplicateCouponError",
    "EmptyCartError",
    "InactiveError",
    "InvalidInputError",
    "InvalidTransitionError",
    "NotFoundError",
    "OrderNotFoundError",
    "OrderingError",
    "PersistenceError",
]


class OrderingError(Exception):
    """Base class for coupon and order service errors."""


class NotFoundError(OrderingError):
    pass


class CouponNotFoundError(NotFoundError):
    def __init__(self, code: str) -> None:
        super().__init__("Coupon not found")
        self.code = code


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: str) -> None:
        super().__init__("Order not found")
        self.order_id = order_id


class InactiveError(OrderingError):
    pass


class CouponInactiveError(InactiveError):
    def __init__(self, code: str, reason: str) -> None:
        super().__init__("Coupon is not active")
        self.code = code
        self.reason = reason


class EmptyCartError(OrderingError):
    def __init__(self) -> None:
        super().__init__("Order must contain at least one item")


class DuplicateCouponError(OrderingError):
    def __init__(self, code: str) -> None:
        super().__init__("Coupon code already exists")
        self.code = code


class InvalidTransitionError(OrderingError):
    def __init__(self, current: str, requested: str) -> None:
        super().__init__(f"Cannot move order from {current} to {requested}")
        self.current = current
        self.requested = requested


class PersistenceError(OrderingError):
    """The data store failed a read or write. Never retried for order inserts."""
