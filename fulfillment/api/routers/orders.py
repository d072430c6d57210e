# fulfillment/api/routers/orders.py
from typing import List

from fastapi import APIRouter, Depends

from fulfillment.api.deps import get_admin, get_caller, get_checkout_service, get_order_service
from fulfillment.domain.caller import CallerContext
from fulfillment.domain.schemas import (
    AdminOrderOut,
    CheckoutIn,
    OrderCreatedOut,
    OrderDetailOut,
    OrderStatusIn,
    OrderStatusOut,
    OrderSummaryOut,
)
from fulfillment.services.checkout_service import CheckoutService
from fulfillment.services.order_service import OrderService

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post("", response_model=OrderCreatedOut, status_code=201)
def checkout(
    payload: CheckoutIn,
    caller: CallerContext = Depends(get_caller),
    svc: CheckoutService = Depends(get_checkout_service),
):
    """
    Checkout: turns the caller's cart into a pending order.
    """
    return svc.checkout(
        caller,
        address_id=payload.address_id,
        payment_method=payload.payment_method,
        shipping_cost=payload.shipping_cost,
        total_amount=payload.total_amount,
    )


@router.get("", response_model=List[OrderSummaryOut])
def get_order_history(
    caller: CallerContext = Depends(get_caller),
    svc: OrderService = Depends(get_order_service),
):
    return svc.get_history(caller)


# admin routes go first so "admin" is not parsed as an order id
@router.get("/admin", response_model=List[AdminOrderOut])
def list_all_orders(
    admin: CallerContext = Depends(get_admin),
    svc: OrderService = Depends(get_order_service),
):
    return svc.list_all(admin)


@router.put("/admin/{order_id}/status", response_model=OrderStatusOut)
def update_order_status(
    order_id: int,
    payload: OrderStatusIn,
    admin: CallerContext = Depends(get_admin),
    svc: OrderService = Depends(get_order_service),
):
    return svc.update_status(admin, order_id, payload.status)


@router.get("/{order_id}", response_model=OrderDetailOut)
def get_order_details(
    order_id: int,
    caller: CallerContext = Depends(get_caller),
    svc: OrderService = Depends(get_order_service),
):
    """
    Order with its lines; other customers' orders are reported as missing.
    """
    return svc.get_details(caller, order_id)
