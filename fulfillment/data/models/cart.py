# fulfillment/data/models/cart.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, Boolean, DateTime, Index, text
from sqlalchemy.orm import relationship

from fulfillment.data.database import Base


class CartModel(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    items = relationship(
        "CartItemModel",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItemModel.id",
    )

    # at most one active cart per customer
    __table_args__ = (
        Index(
            "uq_carts_customer_active",
            "customer_id",
            unique=True,
            postgresql_where=text("active"),
            sqlite_where=text("active = 1"),
        ),
    )
