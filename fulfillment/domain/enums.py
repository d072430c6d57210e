# fulfillment/domain/enums.py
from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"
