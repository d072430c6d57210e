# import all models so they are registered on Base.metadata

from fulfillment.data.models.customer import CustomerModel
from fulfillment.data.models.product import ProductModel
from fulfillment.data.models.cart import CartModel
from fulfillment.data.models.cart_item import CartItemModel
from fulfillment.data.models.order import OrderModel
from fulfillment.data.models.order_item import OrderItemModel

__all__ = [
    "CustomerModel",
    "ProductModel",
    "CartModel",
    "CartItemModel",
    "OrderModel",
    "OrderItemModel",
]
