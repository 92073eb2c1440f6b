"""
Transaction helpers shared by the services.

Every write goes through unit_of_work so that a failure rolls the whole
transaction back and database errors surface as DependencyError.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from cargopay.services.errors import CargoPayError, ConflictError, ConflictReason, DependencyError

logger = logging.getLogger(__name__)


def apply_statement_timeout(db: Session, timeout_seconds: Optional[float]) -> None:
    """Bound the current transaction's statements (PostgreSQL only; SQLite uses its busy timeout)."""
    if not timeout_seconds or db.get_bind().dialect.name != "postgresql":
        return
    db.execute(text(f"SET LOCAL statement_timeout = {max(1, int(timeout_seconds * 1000))}"))


@contextmanager
def guarded(db: Session, operation: str, timeout_seconds: Optional[float] = None) -> Iterator[None]:
    """Read-side guard: map database failures to DependencyError."""
    try:
        apply_statement_timeout(db, timeout_seconds)
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"{operation} failed: {str(e)}")
        raise DependencyError(f"{operation} failed: database unavailable") from e


@contextmanager
def unit_of_work(db: Session, operation: str, timeout_seconds: Optional[float] = None) -> Iterator[None]:
    """Run a block of writes as one transaction and commit it."""
    try:
        apply_statement_timeout(db, timeout_seconds)
        yield
        db.commit()
    except CargoPayError:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        logger.info(f"{operation} rejected by a uniqueness constraint: {str(e.orig)}")
        raise ConflictError(f"{operation}: record already exists", ConflictReason.DUPLICATE) from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"{operation} failed: {str(e)}")
        raise DependencyError(f"{operation} failed: database unavailable") from e
