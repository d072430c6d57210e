# fulfillment/data/models/customer.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime

from fulfillment.data.database import Base
from fulfillment.domain.enums import Role


class CustomerModel(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True)
    external_id = Column(String(128), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False, default=Role.USER.value)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
