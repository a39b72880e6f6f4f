"""Database engine, session factory, transaction unit and dependency injection."""

import logging
from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session

from fieldops.core.config import settings
from fieldops.core.exceptions import FieldOpsError, TransactionFailedError

logger = logging.getLogger("fieldops.db")


def build_engine(url: str):
    """Create an engine with pool settings suited to the backend."""
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False}, echo=False)
    return create_engine(
        url,
        pool_size=20,
        max_overflow=40,
        pool_timeout=30,
        pool_recycle=1800,
        pool_pre_ping=True,
        echo=False,
    )


engine = build_engine(settings.DATABASE_URL)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency that provides a DB session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """Run a block as one atomic unit against the store.

    Commits on success. Domain errors roll back and propagate unchanged;
    storage errors roll back and surface as TransactionFailedError.
    """
    try:
        yield db
        db.commit()
    except FieldOpsError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Transaction rolled back: %s", e)
        raise TransactionFailedError("The operation could not be completed, please retry") from e
