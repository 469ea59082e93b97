from __future__ import annotations

from fastapi import APIRouter, Depends, Header
from packages.shared.pricing.engine import LineItem
from services.api.app.auth import Caller, get_caller, require_admin
from services.api.app.db.deps import get_order_service
from services.api.app.models.order import (
    OrderCreateRequest,
    OrderEventOut,
    OrderItemInput,
    OrderLineOut,
    OrderListResponse,
    OrderOut,
    OrderQuoteRequest,
    OrderQuoteResponse,
    OrderResponse,
    OrderStatusUpdateRequest,
    PricingOut,
)
from services.api.app.routers.errors import raise_http_error
from services.api.app.services.order_assembly import OrderAssemblyService
from services.api.app.services.repositories import CustomerInfo, OrderRecord

router = APIRouter()


def _line_items(items: list[OrderItemInput]) -> list[LineItem]:
    return [
        LineItem(
            name=it.name,
            unit_price=it.unit_price,
            quantity=it.quantity,
            reference_id=it.reference_id,
            variant_label=it.variant_label,
        )
        for it in items
    ]


def _order_out(order: OrderRecord) -> OrderOut:
    customer = order.customer
    return OrderOut(
        id=order.id,
        user_id=order.user_id,
        items=[
            OrderLineOut(
                reference_id=it.reference_id,
                name=it.name,
                unit_price=it.unit_price,
                quantity=it.quantity,
                variant_label=it.variant_label,
                line_total=it.line_total,
            )
            for it in order.line_items
        ],
        subtotal=order.subtotal,
        discount=order.discount,
        delivery_fee=order.delivery_fee,
        total=order.total,
        coupon_code=order.coupon_code,
        order_type=order.order_type,
        payment_method=order.payment_method,
        payment_reference=order.payment_reference,
        status=order.status,
        customer_name=customer.customer_name,
        phone=customer.phone,
        address1=customer.address1,
        address2=customer.address2,
        landmark=customer.landmark,
        pincode=customer.pincode,
        notes=customer.notes,
        created_at=order.created_at.isoformat(),
        updated_at=order.updated_at.isoformat(),
    )


@router.post("/v1/orders/quote", response_model=OrderQuoteResponse)
def quote_order(
    payload: OrderQuoteRequest,
    service: OrderAssemblyService = Depends(get_order_service),
) -> OrderQuoteResponse:
    try:
        quote = service.quote(_line_items(payload.items), payload.coupon_code, payload.order_type)
    except Exception as e:
        raise_http_error(e)

    pricing = quote.pricing
    return OrderQuoteResponse(
        pricing=PricingOut(
            subtotal=pricing.subtotal,
            discount=pricing.discount,
            delivery_fee=pricing.delivery_fee,
            total=pricing.total,
            free_delivery=pricing.free_delivery,
        ),
        coupon_code=quote.coupon_code,
        coupon_message=quote.coupon_message,
    )


@router.post("/v1/orders", response_model=OrderResponse, status_code=201)
def create_order(
    payload: OrderCreateRequest,
    caller: Caller = Depends(get_caller),
    idempotency_key: str | None = Header(default=None),
    service: OrderAssemblyService = Depends(get_order_service),
) -> OrderResponse:
    address = payload.address
    customer = CustomerInfo(
        customer_name=payload.customer_name,
        phone=payload.phone,
        address1=address.address1 if address else None,
        address2=address.address2 if address else None,
        landmark=address.landmark if address else None,
        pincode=address.pincode if address else None,
        notes=payload.notes,
    )

    try:
        order = service.place_order(
            _line_items(payload.items),
            payload.coupon_code,
            payload.order_type,
            customer,
            payload.payment_method,
            owner_id=caller.user_id,
            payment_reference=payload.payment_reference,
            idempotency_key=(idempotency_key or "").strip() or None,
        )
    except Exception as e:
        raise_http_error(e)

    return OrderResponse(order=_order_out(order))


@router.get("/v1/orders", response_model=OrderListResponse)
def list_my_orders(
    caller: Caller = Depends(get_caller),
    service: OrderAssemblyService = Depends(get_order_service),
) -> OrderListResponse:
    try:
        orders = service.orders_for(caller.user_id)
    except Exception as e:
        raise_http_error(e)

    return OrderListResponse(orders=[_order_out(o) for o in orders])


@router.put("/v1/orders/{order_id}", response_model=OrderResponse)
def update_order_status(
    order_id: str,
    payload: OrderStatusUpdateRequest,
    admin: Caller = Depends(require_admin),
    service: OrderAssemblyService = Depends(get_order_service),
) -> OrderResponse:
    try:
        order = service.update_status(order_id, payload.status, actor_id=admin.user_id)
    except Exception as e:
        raise_http_error(e)

    return OrderResponse(order=_order_out(order))


@router.get("/v1/admin/orders", response_model=OrderListResponse)
def list_all_orders(
    _admin: Caller = Depends(require_admin),
    service: OrderAssemblyService = Depends(get_order_service),
) -> OrderListResponse:
    try:
        orders = service.all_orders()
    except Exception as e:
        raise_http_error(e)

    return OrderListResponse(orders=[_order_out(o) for o in orders])


@router.get("/v1/admin/orders/{order_id}/events", response_model=list[OrderEventOut])
def get_order_events(
    order_id: str,
    _admin: Caller = Depends(require_admin),
    service: OrderAssemblyService = Depends(get_order_service),
) -> list[OrderEventOut]:
    try:
        events = service.history(order_id)
    except Exception as e:
        raise_http_error(e)

    return [
        OrderEventOut(
            id=ev.id,
            event_type=ev.event_type,
            user_id=ev.user_id,
            payload=ev.payload,
            created_at=ev.created_at.isoformat(),
        )
        for ev in events
    ]
