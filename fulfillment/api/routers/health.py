# fulfillment/api/routers/health.py
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fulfillment.data.database import get_db
from fulfillment.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError as e:
        logger.warning(f"Health check could not reach the database: {e}")
        database = "unavailable"
    return {"status": "UP" if database == "connected" else "DEGRADED", "db": database}
