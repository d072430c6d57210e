# fulfillment/services/order_service.py
from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from fulfillment.data.database import reading, transaction
from fulfillment.data.models.order import OrderModel
from fulfillment.domain.caller import CallerContext
from fulfillment.domain.enums import OrderStatus
from fulfillment.domain.errors import Forbidden, InvalidArgument, NotFound
from fulfillment.repos.order_repo import OrderRepo
from fulfillment.utils.logging import get_logger

logger = get_logger(__name__)


def _summary(order: OrderModel) -> Dict[str, Any]:
    return {
        "id": order.id,
        "total_amount": order.total_amount,
        "status": order.status,
        "created_at": order.created_at,
    }


class OrderService:
    """
    Order Store queries and the administrative status update.

    Orders are only ever created by CheckoutService.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = OrderRepo(db)

    def get_history(self, caller: CallerContext) -> List[Dict[str, Any]]:
        with reading(self.db):
            return [_summary(o) for o in self.repo.list_by_customer(caller.customer_id)]

    def get_details(self, caller: CallerContext, order_id: int) -> Dict[str, Any]:
        with reading(self.db):
            # ownership is part of the lookup, so foreign orders look missing
            order = self.repo.get_customer_order(order_id, caller.customer_id)
            if order is None:
                raise NotFound(f"Order {order_id} not found", order_id=order_id)

            lines = self.repo.get_order_lines(order.id)
            return {
                "id": order.id,
                "status": order.status,
                "total_amount": order.total_amount,
                "shipping_cost": order.shipping_cost,
                "payment_method": order.payment_method,
                "address_id": order.address_id,
                "created_at": order.created_at,
                "updated_at": order.updated_at,
                "items": [
                    {
                        "product_id": line.product_id,
                        "quantity": line.quantity,
                        "captured_price": line.captured_price,
                        "product_name": line.product_name,
                        "product_image": line.product_image,
                    }
                    for line in lines
                ],
            }

    def list_all(self, caller: CallerContext) -> List[Dict[str, Any]]:
        self._require_admin(caller)
        with reading(self.db):
            rows = self.repo.list_all()
        return [
            {
                "id": row.id,
                "customer_id": row.customer_id,
                "customer_email": row.customer_email,
                "total_amount": row.total_amount,
                "status": row.status,
                "created_at": row.created_at,
            }
            for row in rows
        ]

    def update_status(self, caller: CallerContext, order_id: int, new_status: Any) -> Dict[str, Any]:
        """
        Set an order's status. Any known status is accepted from any other;
        unknown values are rejected.
        """
        self._require_admin(caller)
        status = self.parse_status(new_status)

        with transaction(self.db):
            order = self.repo.get_order(order_id)
            if order is None:
                raise NotFound(f"Order {order_id} not found", order_id=order_id)

            previous = order.status
            order.status = status.value
            order.updated_at = datetime.now(timezone.utc)
            self.db.flush()

            result = {"id": order.id, "status": order.status, "updated_at": order.updated_at}

        logger.info(f"Order {order_id} status changed {previous} -> {status.value}")
        return result

    @staticmethod
    def parse_status(value: Any) -> OrderStatus:
        if isinstance(value, OrderStatus):
            return value
        if value is None:
            raise InvalidArgument("status is required", field="status")
        try:
            return OrderStatus(str(value).strip().lower())
        except ValueError:
            raise InvalidArgument(
                f"Unknown order status: {value!r}",
                field="status",
                allowed=[s.value for s in OrderStatus],
            )

    @staticmethod
    def _require_admin(caller: CallerContext) -> None:
        if not caller.is_admin:
            raise Forbidden("Administrator role required")
