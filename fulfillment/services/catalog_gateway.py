# fulfillment/services/catalog_gateway.py
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select, update, delete, func
from sqlalchemy.orm import Session

from fulfillment.data.models.cart_item import CartItemModel
from fulfillment.data.models.order_item import OrderItemModel
from fulfillment.data.models.product import ProductModel
from fulfillment.domain.errors import NotFound, Conflict
from fulfillment.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProductSnapshot:
    product_id: int
    price: Decimal
    stock: int


class CatalogGateway:
    """
    Price and stock lookups against the catalog tables.

    Nothing is cached between calls; every read hits the current row inside
    the caller's session, so it sees the caller's transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_price_and_stock(self, product_id: int) -> ProductSnapshot:
        row = self.db.execute(
            select(ProductModel.id, ProductModel.price, ProductModel.stock).where(ProductModel.id == product_id)
        ).one_or_none()
        if row is None:
            raise NotFound(f"Product {product_id} not found", product_id=product_id)
        return ProductSnapshot(product_id=row.id, price=Decimal(row.price), stock=row.stock)

    def current_stock(self, product_id: int) -> int:
        return self.get_price_and_stock(product_id).stock

    def decrement_stock(self, product_id: int, quantity: int) -> bool:
        """
        Conditional decrement: ``stock = stock - quantity WHERE stock >= quantity``.

        Returns False when no row was changed, i.e. the remaining stock could
        not cover the quantity at the moment of the write.
        """
        result = self.db.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id, ProductModel.stock >= quantity)
            .values(stock=ProductModel.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def count_order_references(self, product_id: int) -> int:
        return self.db.execute(
            select(func.count()).select_from(OrderItemModel).where(OrderItemModel.product_id == product_id)
        ).scalar_one()

    def delete_product(self, product_id: int) -> None:
        """
        Remove a product that no order has ever referenced.

        Raises Conflict when historical order lines point at it, decided by
        counting those lines rather than by reading a foreign-key error.
        """
        product = self.db.get(ProductModel, product_id)
        if product is None:
            raise NotFound(f"Product {product_id} not found", product_id=product_id)

        references = self.count_order_references(product_id)
        if references:
            raise Conflict(
                f"Product {product_id} is referenced by existing orders",
                product_id=product_id,
                order_lines=references,
            )

        self.db.execute(
            delete(CartItemModel)
            .where(CartItemModel.product_id == product_id)
            .execution_options(synchronize_session=False)
        )
        self.db.delete(product)
        self.db.flush()
        logger.info(f"Product {product_id} deleted from catalog")
