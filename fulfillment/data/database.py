# fulfillment/data/database.py
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from fulfillment.domain.errors import StorageFailure
from fulfillment.utils.settings import DATABASE_URL, DB_ECHO, DB_ISOLATION_LEVEL
from fulfillment.utils.logging import get_logger

logger = get_logger(__name__)

Base = declarative_base()


def build_engine(url: str = DATABASE_URL, **kwargs):
    # isolation levels other than SERIALIZABLE are not understood by sqlite
    if url.startswith("postgresql"):
        kwargs.setdefault("isolation_level", DB_ISOLATION_LEVEL)
    return create_engine(url, echo=DB_ECHO, pool_pre_ping=True, **kwargs)


engine = build_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    One unit of work: commit when the block finishes, roll back on any error.

    Driver and constraint errors surface as StorageFailure with the original
    exception chained; business errors are re-raised untouched.
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Transaction rolled back on storage error: {e}")
        raise StorageFailure("Storage transaction failed") from e
    except Exception:
        db.rollback()
        raise


@contextmanager
def reading(db: Session) -> Iterator[Session]:
    """
    Read-only counterpart of transaction(): nothing is committed, but storage
    errors still surface as StorageFailure.
    """
    try:
        yield db
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Read rolled back on storage error: {e}")
        raise StorageFailure("Storage read failed") from e
