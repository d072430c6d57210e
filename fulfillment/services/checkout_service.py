# fulfillment/services/checkout_service.py
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from fulfillment.data.database import transaction
from fulfillment.data.models.order import OrderModel
from fulfillment.data.models.order_item import OrderItemModel
from fulfillment.domain.caller import CallerContext
from fulfillment.domain.enums import OrderStatus
from fulfillment.domain.errors import (
    Conflict,
    EmptyCart,
    InsufficientStock,
    InvalidArgument,
    StorageFailure,
)
from fulfillment.repos.cart_repo import CartRepo
from fulfillment.repos.order_repo import OrderRepo
from fulfillment.services.catalog_gateway import CatalogGateway
from fulfillment.services.lock_service import LockService
from fulfillment.utils.logging import get_logger

logger = get_logger(__name__)


def _required_text(value: Any, field: str) -> str:
    if value is None or isinstance(value, bool):
        raise InvalidArgument(f"{field} is required", field=field)
    text = str(value).strip()
    if not text:
        raise InvalidArgument(f"{field} is required", field=field)
    return text


def _amount(value: Any, field: str) -> Decimal:
    if value is None or isinstance(value, bool):
        raise InvalidArgument(f"{field} is required", field=field)
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise InvalidArgument(f"{field} must be a number", field=field, value=str(value))
    if not amount.is_finite() or amount < 0:
        raise InvalidArgument(f"{field} must be a non-negative amount", field=field, value=str(value))
    return amount.quantize(Decimal("0.01"))


class CheckoutService:
    """
    Checkout Engine: turns the caller's active cart into an order.

    Everything happens in one transaction:

    1. lock the active cart row and read its lines joined with current stock
    2. fail EmptyCart when there are no lines
    3. fail InsufficientStock when a line asks for more than the stock read
    4. insert the order as pending
    5. insert one order line per cart line and decrement stock with a
       conditional update, re-checking the affected row count
    6. delete the cart's lines (the cart row stays active)
    7. commit

    The comparison in step 3 only fails fast. The conditional decrement in
    step 5 is what actually keeps stock from going negative under
    concurrent checkouts; when it changes no row the whole transaction is
    rolled back.
    """

    def __init__(self, db: Session, catalog: CatalogGateway, lock_service: Optional[LockService] = None):
        self.db = db
        self.carts = CartRepo(db)
        self.orders = OrderRepo(db)
        self.catalog = catalog
        self.lock_service = lock_service

    def checkout(
        self,
        caller: CallerContext,
        address_id: Any,
        payment_method: Any,
        shipping_cost: Any,
        total_amount: Any,
    ) -> Dict[str, Any]:
        address = _required_text(address_id, "address_id")
        method = _required_text(payment_method, "payment_method")
        shipping = _amount(shipping_cost, "shipping_cost")
        total = _amount(total_amount, "total_amount")

        customer_id = caller.customer_id
        token = self._acquire_guard(customer_id)
        try:
            return self._place_order(customer_id, address, method, shipping, total)
        finally:
            self._release_guard(customer_id, token)

    def _place_order(
        self,
        customer_id: int,
        address_id: str,
        payment_method: str,
        shipping_cost: Decimal,
        total_amount: Decimal,
    ) -> Dict[str, Any]:
        logger.info(f"Checkout started for customer {customer_id}")

        with transaction(self.db):
            cart = self.carts.lock_active_cart(customer_id)
            lines = self.carts.get_checkout_lines(cart.id) if cart else []

            if not lines:
                logger.info(f"Checkout rejected for customer {customer_id}: cart is empty")
                raise EmptyCart()

            for line in lines:
                if line.quantity > line.stock:
                    logger.warning(
                        f"Checkout rejected for customer {customer_id}: product {line.product_id} "
                        f"available {line.stock}, requested {line.quantity}"
                    )
                    raise InsufficientStock(line.product_id, line.stock, line.quantity)

            order = self.orders.add_order(
                OrderModel(
                    customer_id=customer_id,
                    total_amount=total_amount,
                    shipping_cost=shipping_cost,
                    payment_method=payment_method,
                    address_id=address_id,
                    status=OrderStatus.PENDING.value,
                )
            )

            for line in lines:
                self.orders.add_order_item(
                    OrderItemModel(
                        order_id=order.id,
                        product_id=line.product_id,
                        quantity=line.quantity,
                        captured_price=line.captured_price,
                    )
                )
                if not self.catalog.decrement_stock(line.product_id, line.quantity):
                    available = self.catalog.current_stock(line.product_id)
                    logger.warning(
                        f"Conditional decrement failed for product {line.product_id}: "
                        f"available {available}, requested {line.quantity}; rolling back"
                    )
                    raise InsufficientStock(line.product_id, available, line.quantity)

            cart_id = cart.id
            self.carts.clear_items(cart_id)

            result = {
                "id": order.id,
                "status": order.status,
                "total_amount": order.total_amount,
                "shipping_cost": order.shipping_cost,
                "payment_method": order.payment_method,
                "address_id": order.address_id,
                "created_at": order.created_at,
            }

        logger.info(f"Order {result['id']} created for customer {customer_id} from cart {cart_id}")
        return result

    def _acquire_guard(self, customer_id: int) -> Optional[str]:
        if self.lock_service is None:
            return None
        try:
            token = self.lock_service.acquire_checkout_lock(customer_id)
        except RedisError as e:
            logger.error(f"Checkout lock unavailable for customer {customer_id}: {e}")
            raise StorageFailure("Checkout lock unavailable") from e
        if token is None:
            raise Conflict(
                "A checkout for this customer is already in progress",
                customer_id=customer_id,
            )
        return token

    def _release_guard(self, customer_id: int, token: Optional[str]) -> None:
        if token is None:
            return
        try:
            self.lock_service.release_checkout_lock(customer_id, token)
        except RedisError as e:
            # the key expires on its own after the TTL
            logger.warning(f"Failed to release checkout lock for customer {customer_id}: {e}")
