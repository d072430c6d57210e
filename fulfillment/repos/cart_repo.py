# fulfillment/repos/cart_repo.py
from typing import List, Optional

from sqlalchemy import select, delete
from sqlalchemy.engine import Row
from sqlalchemy.orm import Session

from fulfillment.data.models.cart import CartModel
from fulfillment.data.models.cart_item import CartItemModel
from fulfillment.data.models.product import ProductModel


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_cart(self, cart_id: int) -> CartModel | None:
        return self.db.get(CartModel, cart_id)

    def get_active_cart(self, customer_id: int) -> CartModel | None:
        return self.db.execute(
            select(CartModel).where(CartModel.customer_id == customer_id, CartModel.active.is_(True))
        ).scalar_one_or_none()

    def lock_active_cart(self, customer_id: int) -> CartModel | None:
        # row lock serialises checkouts of the same cart
        return self.db.execute(
            select(CartModel)
            .where(CartModel.customer_id == customer_id, CartModel.active.is_(True))
            .with_for_update()
        ).scalar_one_or_none()

    def create_cart(self, cart: CartModel) -> CartModel:
        self.db.add(cart)
        self.db.flush()
        return cart

    def get_cart_item(self, cart_id: int, product_id: int) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel).where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.product_id == product_id,
            )
        ).scalar_one_or_none()

    def get_item_in_cart(self, cart_id: int, item_id: int) -> Optional[CartItemModel]:
        return self.db.execute(
            select(CartItemModel).where(
                CartItemModel.id == item_id,
                CartItemModel.cart_id == cart_id,
            )
        ).scalar_one_or_none()

    def add_cart_item(self, item: CartItemModel) -> CartItemModel:
        self.db.add(item)
        self.db.flush()
        return item

    def delete_cart_item(self, item: CartItemModel) -> None:
        self.db.delete(item)
        self.db.flush()

    def clear_items(self, cart_id: int) -> int:
        result = self.db.execute(
            delete(CartItemModel)
            .where(CartItemModel.cart_id == cart_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def get_cart_lines(self, cart_id: int) -> List[Row]:
        """Line items joined with live catalog data, oldest first."""
        return list(
            self.db.execute(
                select(
                    CartItemModel.id.label("item_id"),
                    CartItemModel.product_id,
                    CartItemModel.quantity,
                    CartItemModel.captured_price,
                    ProductModel.name.label("product_name"),
                    ProductModel.image.label("product_image"),
                    ProductModel.price.label("current_price"),
                )
                .join(ProductModel, ProductModel.id == CartItemModel.product_id)
                .where(CartItemModel.cart_id == cart_id)
                .order_by(CartItemModel.created_at, CartItemModel.id)
            )
        )

    def get_checkout_lines(self, cart_id: int) -> List[Row]:
        return list(
            self.db.execute(
                select(
                    CartItemModel.product_id,
                    CartItemModel.quantity,
                    CartItemModel.captured_price,
                    ProductModel.stock,
                )
                .join(ProductModel, ProductModel.id == CartItemModel.product_id)
                .where(CartItemModel.cart_id == cart_id)
                .order_by(CartItemModel.product_id)
            )
        )
