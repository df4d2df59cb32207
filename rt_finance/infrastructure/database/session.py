"""Database session management with connection pooling"""

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import sessionmaker, Session
from rt_finance.config import settings
from rt_finance.domain.exceptions import ConcurrentUpdate

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL SQLSTATEs that mean "retry the whole transaction"
RETRYABLE_SQLSTATES = {"40001", "40P01"}  # serialization_failure, deadlock_detected

# Connection pool: max 20 connections, recycle after 1 hour to avoid stale connections
engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    pool_size=10,
    max_overflow=10,
    pool_recycle=3600,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Session:
    """Dependency injection for database sessions"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """
    Run a unit of work as one transaction.

    Commits when the block exits cleanly; any exception rolls back every
    write made inside the block and is re-raised.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def is_retryable(exc: DBAPIError) -> bool:
    return getattr(exc.orig, "pgcode", None) in RETRYABLE_SQLSTATES


def run_serializable(db: Session, work: Callable[[], T], retries: Optional[int] = None) -> T:
    """
    Run ``work`` in its own SERIALIZABLE transaction and commit it.

    Read-then-write sequences (such as "latest balance, then the next entry")
    conflict instead of interleaving; the loser is rolled back and ``work``
    runs again from scratch. ``work`` must therefore be safe to repeat.

    Raises:
        ConcurrentUpdate: still conflicting after ``retries`` attempts
    """
    retries = retries or settings.ledger_serializable_retries

    for attempt in range(1, retries + 1):
        # Isolation can only be chosen before the transaction's first statement
        if db.in_transaction():
            db.commit()

        try:
            with atomic(db):
                db.connection(execution_options={"isolation_level": "SERIALIZABLE"})
                return work()
        except DBAPIError as e:
            if not is_retryable(e):
                raise
            logger.warning(
                "Serialization conflict, retrying transaction",
                extra={"attempt": attempt, "sqlstate": e.orig.pgcode},
            )

    raise ConcurrentUpdate(f"Transaction kept conflicting after {retries} attempts, try again")
