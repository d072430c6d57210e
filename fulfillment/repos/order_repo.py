# fulfillment/repos/order_repo.py
from typing import List

from sqlalchemy import select
from sqlalchemy.engine import Row
from sqlalchemy.orm import Session

from fulfillment.data.models.customer import CustomerModel
from fulfillment.data.models.order import OrderModel
from fulfillment.data.models.order_item import OrderItemModel
from fulfillment.data.models.product import ProductModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def add_order_item(self, item: OrderItemModel) -> OrderItemModel:
        self.db.add(item)
        return item

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def get_customer_order(self, order_id: int, customer_id: int) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel).where(OrderModel.id == order_id, OrderModel.customer_id == customer_id)
        ).scalar_one_or_none()

    def list_by_customer(self, customer_id: int) -> List[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel)
                .where(OrderModel.customer_id == customer_id)
                .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            ).scalars()
        )

    def list_all(self) -> List[Row]:
        return list(
            self.db.execute(
                select(
                    OrderModel.id,
                    OrderModel.customer_id,
                    CustomerModel.email.label("customer_email"),
                    OrderModel.total_amount,
                    OrderModel.status,
                    OrderModel.created_at,
                )
                .join(CustomerModel, CustomerModel.id == OrderModel.customer_id)
                .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            )
        )

    def get_order_lines(self, order_id: int) -> List[Row]:
        return list(
            self.db.execute(
                select(
                    OrderItemModel.product_id,
                    OrderItemModel.quantity,
                    OrderItemModel.captured_price,
                    ProductModel.name.label("product_name"),
                    ProductModel.image.label("product_image"),
                )
                .join(ProductModel, ProductModel.id == OrderItemModel.product_id)
                .where(OrderItemModel.order_id == order_id)
                .order_by(OrderItemModel.id)
            )
        )
