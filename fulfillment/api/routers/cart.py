# fulfillment/api/routers/cart.py
from fastapi import APIRouter, Depends

from fulfillment.api.deps import get_caller, get_cart_service
from fulfillment.domain.caller import CallerContext
from fulfillment.domain.schemas import CartItemIn, CartOut, CartQuantityIn
from fulfillment.services.cart_service import CartService

router = APIRouter(prefix="/api/cart", tags=["cart"])


@router.get("", response_model=CartOut)
def get_cart(
    caller: CallerContext = Depends(get_caller),
    svc: CartService = Depends(get_cart_service),
):
    return svc.get_cart(caller)


@router.post("", response_model=CartOut)
def add_to_cart(
    payload: CartItemIn,
    caller: CallerContext = Depends(get_caller),
    svc: CartService = Depends(get_cart_service),
):
    return svc.add_to_cart(caller, payload.product_id, payload.quantity)


# declared before /{item_id} so "clear" is not parsed as an item id
@router.delete("/clear", response_model=CartOut)
def clear_cart(
    caller: CallerContext = Depends(get_caller),
    svc: CartService = Depends(get_cart_service),
):
    return svc.clear_cart(caller)


@router.put("/{item_id}", response_model=CartOut)
def set_cart_item_quantity(
    item_id: int,
    payload: CartQuantityIn,
    caller: CallerContext = Depends(get_caller),
    svc: CartService = Depends(get_cart_service),
):
    return svc.set_cart_item_quantity(caller, item_id, payload.quantity)


@router.delete("/{item_id}", response_model=CartOut)
def remove_cart_item(
    item_id: int,
    caller: CallerContext = Depends(get_caller),
    svc: CartService = Depends(get_cart_service),
):
    return svc.remove_cart_item(caller, item_id)
