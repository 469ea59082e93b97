from __future__ import annotations

from decimal import Decimal

from packages.shared.schemas.order_v1 import OrderStatusV1, OrderTypeV1, PaymentMethodV1
from pydantic import BaseModel, Field


class OrderItemInput(BaseModel):
    reference_id: str | None = None
    name: str = Field(..., min_length=1)
    unit_price: Decimal = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    variant_label: str | None = None


class AddressInput(BaseModel):
    address1: str | None = None
    address2: str | None = None
    landmark: str | None = None
    pincode: str | None = None


class OrderQuoteRequest(BaseModel):
    items: list[OrderItemInput] = Field(default_factory=list)
    order_type: OrderTypeV1 = OrderTypeV1.PICKUP
    coupon_code: str | None = None


class OrderCreateRequest(BaseModel):
    # Empty carts are rejected by the order service, not here, so the error is uniform.
    items: list[OrderItemInput] = Field(default_factory=list)
    order_type: OrderTypeV1 = OrderTypeV1.PICKUP
    coupon_code: str | None = None
    payment_method: str = PaymentMethodV1.COD.value
    payment_reference: str | None = None

    customer_name: str | None = None
    phone: str | None = None
    address: AddressInput | None = None
    notes: str | None = None

    # Clients still send their preview numbers. They are accepted and ignored.
    subtotal: Decimal | None = None
    discount: Decimal | None = None
    delivery_fee: Decimal | None = None
    total: Decimal | None = None


class OrderStatusUpdateRequest(BaseModel):
    status: OrderStatusV1


class PricingOut(BaseModel):
    subtotal: Decimal
    discount: Decimal
    delivery_fee: Decimal
    total: Decimal
    free_delivery: bool = False


class OrderQuoteResponse(BaseModel):
    pricing: PricingOut
    coupon_code: str | None = None
    coupon_message: str | None = None


class OrderLineOut(BaseModel):
    reference_id: str | None = None
    name: str
    unit_price: Decimal
    quantity: int
    variant_label: str | None = None
    line_total: Decimal


class OrderOut(BaseModel):
    id: str
    user_id: str | None = None
    items: list[OrderLineOut]

    subtotal: Decimal
    discount: Decimal
    delivery_fee: Decimal
    total: Decimal
    coupon_code: str | None = None

    order_type: OrderTypeV1
    payment_method: str
    payment_reference: str | None = None
    status: OrderStatusV1

    customer_name: str | None = None
    phone: str | None = None
    address1: str | None = None
    address2: str | None = None
    landmark: str | None = None
    pincode: str | None = None
    notes: str | None = None

    created_at: str
    updated_at: str


class OrderResponse(BaseModel):
    order: OrderOut


class OrderListResponse(BaseModel):
    orders: list[OrderOut] = Field(default_factory=list)


class OrderEventOut(BaseModel):
    id: str
    event_type: str
    user_id: str | None = None
    payload: dict = Field(default_factory=dict)
    created_at: str
