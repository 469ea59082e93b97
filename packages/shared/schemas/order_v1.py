"""Shared order vocabulary (v1).

These enums cross the wire between the API, the mobile clients and the admin console.
Values are stable once shipped.
"""

from __future__ import annotations

from enum import Enum


class OrderTypeV1(str, Enum):
    PICKUP = "PICKUP"
    DELIVERY = "DELIVERY"


class CouponKindV1(str, Enum):
    PERCENT = "PERCENT"
    FLAT = "FLAT"
    FREE_DELIVERY = "FREE_DELIVERY"


class OrderStatusV1(str, Enum):
    PLACED = "PLACED"
    PACKING = "PACKING"
    SHIPPED = "SHIPPED"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class PaymentMethodV1(str, Enum):
    COD = "COD"
    ONLINE = "ONLINE"
