# fulfillment/main.py
import uvicorn

from fulfillment.api import create_app
from fulfillment.data.database import Base, engine
from fulfillment.data import models  # noqa: F401  registers every table on Base.metadata
from fulfillment.utils.logging import get_logger

logger = get_logger(__name__)

logger.info(f"Initializing database, tables: {list(Base.metadata.tables.keys())}")
try:
    Base.metadata.create_all(bind=engine)
except Exception as e:
    logger.error(f"Failed to create tables: {e}")
    raise

app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
