# fulfillment/services/cart_service.py
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fulfillment.data.database import reading, transaction
from fulfillment.data.models.cart import CartModel
from fulfillment.data.models.cart_item import CartItemModel
from fulfillment.domain.caller import CallerContext
from fulfillment.domain.errors import InvalidArgument, NotFound, StorageFailure
from fulfillment.repos.cart_repo import CartRepo
from fulfillment.services.catalog_gateway import CatalogGateway
from fulfillment.utils.logging import get_logger

logger = get_logger(__name__)


def _validate_quantity(quantity: Any, minimum: int) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < minimum:
        raise InvalidArgument(
            f"Quantity must be an integer >= {minimum}",
            field="quantity",
            value=quantity,
        )
    return quantity


class CartService:
    """
    Cart Store: one active cart per customer and its line items.

    The cart-id operations (get_or_create_active_cart, add_item, set_quantity,
    remove_item, clear, get_cart_view) each run as their own unit of work.
    The caller-level operations resolve the caller's active cart first and
    are what the request layer invokes.
    """

    def __init__(self, db: Session, catalog: CatalogGateway):
        self.db = db
        self.repo = CartRepo(db)
        self.catalog = catalog

    # cart-id operations
    def get_or_create_active_cart(self, customer_id: int) -> int:
        existing = self._active_cart_id(customer_id)
        if existing is not None:
            return existing

        try:
            with transaction(self.db):
                created = self.repo.create_cart(CartModel(customer_id=customer_id, active=True))
                cart_id = created.id
        except StorageFailure as e:
            # lost the race against a concurrent creator; the unique index kept one row
            if not isinstance(e.__cause__, IntegrityError):
                raise
            existing = self._active_cart_id(customer_id)
            if existing is None:
                raise
            return existing

        logger.info(f"Created active cart {cart_id} for customer {customer_id}")
        return cart_id

    def add_item(self, cart_id: int, product_id: int, quantity: int) -> CartItemModel:
        _validate_quantity(quantity, minimum=1)

        with transaction(self.db):
            if self.repo.get_cart(cart_id) is None:
                raise NotFound(f"Cart {cart_id} not found", cart_id=cart_id)

            snapshot = self.catalog.get_price_and_stock(product_id)
            item = self.repo.get_cart_item(cart_id, product_id)

            if item:
                logger.info(f"Product {product_id} already in cart {cart_id}, adding {quantity}")
                item.quantity = CartItemModel.quantity + quantity
                item.captured_price = snapshot.price
                self.repo.add_cart_item(item)
            else:
                logger.info(f"Adding product {product_id} x{quantity} to cart {cart_id}")
                item = self.repo.add_cart_item(
                    CartItemModel(
                        cart_id=cart_id,
                        product_id=product_id,
                        quantity=quantity,
                        captured_price=snapshot.price,
                    )
                )
        return item

    def set_quantity(self, cart_id: int, item_id: int, quantity: int) -> CartItemModel | None:
        """Returns the updated item, or None when quantity 0 removed it."""
        _validate_quantity(quantity, minimum=0)

        if quantity == 0:
            self.remove_item(cart_id, item_id)
            return None

        with transaction(self.db):
            item = self._get_owned_item(cart_id, item_id)
            item.quantity = quantity
            self.repo.add_cart_item(item)

        logger.info(f"Cart {cart_id} item {item_id} quantity set to {quantity}")
        return item

    def remove_item(self, cart_id: int, item_id: int) -> None:
        with transaction(self.db):
            item = self._get_owned_item(cart_id, item_id)
            self.repo.delete_cart_item(item)

        logger.info(f"Removed item {item_id} from cart {cart_id}")

    def clear(self, cart_id: int) -> int:
        with transaction(self.db):
            removed = self.repo.clear_items(cart_id)

        logger.info(f"Cleared cart {cart_id} ({removed} items)")
        return removed

    def get_cart_view(self, cart_id: int) -> Dict[str, Any]:
        with reading(self.db):
            cart = self.repo.get_cart(cart_id)
            if cart is None:
                raise NotFound(f"Cart {cart_id} not found", cart_id=cart_id)
            lines = self.repo.get_cart_lines(cart_id)

        # subtotal uses the captured price; current_price is informational
        subtotal = sum((line.captured_price * line.quantity for line in lines), Decimal("0.00"))

        return {
            "cart_id": cart_id,
            "items": [
                {
                    "item_id": line.item_id,
                    "product_id": line.product_id,
                    "quantity": line.quantity,
                    "captured_price": line.captured_price,
                    "product_name": line.product_name,
                    "product_image": line.product_image,
                    "current_price": line.current_price,
                }
                for line in lines
            ],
            "subtotal": subtotal,
        }

    # caller-level operations
    def get_cart(self, caller: CallerContext) -> Dict[str, Any]:
        cart_id = self._active_cart_id(caller.customer_id)
        if cart_id is None:
            return {"cart_id": None, "items": [], "subtotal": Decimal("0.00")}
        return self.get_cart_view(cart_id)

    def add_to_cart(self, caller: CallerContext, product_id: int, quantity: int) -> Dict[str, Any]:
        _validate_quantity(quantity, minimum=1)
        cart_id = self.get_or_create_active_cart(caller.customer_id)
        self.add_item(cart_id, product_id, quantity)
        return self.get_cart_view(cart_id)

    def set_cart_item_quantity(self, caller: CallerContext, item_id: int, quantity: int) -> Dict[str, Any]:
        _validate_quantity(quantity, minimum=0)
        cart_id = self._require_active_cart(caller, item_id)
        self.set_quantity(cart_id, item_id, quantity)
        return self.get_cart_view(cart_id)

    def remove_cart_item(self, caller: CallerContext, item_id: int) -> Dict[str, Any]:
        cart_id = self._require_active_cart(caller, item_id)
        self.remove_item(cart_id, item_id)
        return self.get_cart_view(cart_id)

    def clear_cart(self, caller: CallerContext) -> Dict[str, Any]:
        cart_id = self._active_cart_id(caller.customer_id)
        if cart_id is None:
            return {"cart_id": None, "items": [], "subtotal": Decimal("0.00")}
        self.clear(cart_id)
        return self.get_cart_view(cart_id)

    def _require_active_cart(self, caller: CallerContext, item_id: int) -> int:
        cart_id = self._active_cart_id(caller.customer_id)
        if cart_id is None:
            raise NotFound(f"Cart item {item_id} not found", item_id=item_id)
        return cart_id

    def _active_cart_id(self, customer_id: int) -> Optional[int]:
        with reading(self.db):
            cart = self.repo.get_active_cart(customer_id)
            return cart.id if cart else None

    def _get_owned_item(self, cart_id: int, item_id: int) -> CartItemModel:
        item = self.repo.get_item_in_cart(cart_id, item_id)
        if item is None:
            raise NotFound(f"Cart item {item_id} not found", item_id=item_id)
        return item
