# fulfillment/data/models/product.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, Numeric, CheckConstraint

from fulfillment.data.database import Base


class ProductModel(Base):
    """Catalog row; stock is only ever lowered by checkout."""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    image = Column(String(512), nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_products_price_nonneg"),
        CheckConstraint("stock >= 0", name="ck_products_stock_nonneg"),
    )
