# fulfillment/data/models/order.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric, Index
from sqlalchemy.orm import relationship

from fulfillment.data.database import Base
from fulfillment.domain.enums import OrderStatus


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)

    total_amount = Column(Numeric(12, 2), nullable=False)
    shipping_cost = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(50), nullable=False)
    address_id = Column(String(64), nullable=False)

    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.id",
    )

    __table_args__ = (Index("ix_orders_customer_created", "customer_id", "created_at"),)
