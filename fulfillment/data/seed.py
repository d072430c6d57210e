# fulfillment/data/seed.py
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from fulfillment.data.database import SessionLocal, transaction
from fulfillment.data.models.product import ProductModel
from fulfillment.utils.logging import get_logger

logger = get_logger(__name__)

DEMO_PRODUCTS = [
    {"name": "Keyboard", "price": Decimal("199.99"), "stock": 25, "image": "/img/keyboard.png"},
    {"name": "Mouse", "price": Decimal("49.50"), "stock": 100, "image": "/img/mouse.png"},
    {"name": "Monitor", "price": Decimal("899.00"), "stock": 5, "image": "/img/monitor.png"},
]


def seed_catalog(db: Session) -> int:
    """Insert the demo catalog when the products table is empty."""
    if db.execute(select(ProductModel.id).limit(1)).first():
        return 0
    with transaction(db):
        db.add_all(ProductModel(**p) for p in DEMO_PRODUCTS)
    logger.info(f"Seeded {len(DEMO_PRODUCTS)} demo products")
    return len(DEMO_PRODUCTS)


def seed():
    db = SessionLocal()
    try:
        seed_catalog(db)
    finally:
        db.close()


if __name__ == "__main__":
    seed()
