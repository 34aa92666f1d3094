"""
Transaction boundary shared by every mutating operation.

``atomic()`` wraps one unit of work: it bounds lock waits, commits on success,
rolls back on any failure and turns driver errors into service errors so that
callers only ever see the taxonomy in ``dropstock.core.exceptions``.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dropstock.core.config import get_settings
from dropstock.core.exceptions import (
    BaseServiceError,
    InvariantViolation,
    StateConflictError,
    TransientDbError,
)

logger = logging.getLogger(__name__)

# lock_not_available, deadlock_detected, serialization_failure
RETRYABLE_SQLSTATES = {"55P03", "40P01", "40001"}

STOCK_CONSTRAINTS = ("ck_drops_stock_non_negative", "ck_drops_stock_within_initial")


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    for candidate in (orig, getattr(orig, "__cause__", None)):
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code:
            return code
    return None


def translate_db_error(exc: DBAPIError, operation: str) -> BaseServiceError:
    """Map a driver error onto the service taxonomy without leaking driver text."""
    sqlstate = _sqlstate(exc)
    detail = str(getattr(exc, "orig", exc)).lower()

    if sqlstate in RETRYABLE_SQLSTATES or "database is locked" in detail:
        return TransientDbError(
            f"{operation} could not acquire its locks in time, please retry",
            details={"sqlstate": sqlstate},
        )

    if isinstance(exc, IntegrityError):
        if any(name in detail for name in STOCK_CONSTRAINTS):
            return InvariantViolation(
                f"{operation} would move stock outside its allowed range",
                details={"sqlstate": sqlstate},
            )
        if "reservation_id" in detail or "purchases" in detail:
            return StateConflictError(f"{operation} conflicts with an existing purchase")

    return BaseServiceError(f"{operation} failed due to a database error", details={"sqlstate": sqlstate})


async def apply_lock_timeout(db: AsyncSession, timeout_ms: Optional[int] = None) -> None:
    """Bound row-lock waits for the current transaction (PostgreSQL only)."""
    if db.bind.dialect.name != "postgresql":
        return
    timeout_ms = int(timeout_ms or get_settings().LOCK_TIMEOUT_MS)
    await db.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))


@asynccontextmanager
async def atomic(db: AsyncSession, operation: str, lock_timeout_ms: Optional[int] = None):
    """
    Run the enclosed block as a single transaction.

    Commits when the block exits normally. On any exception the whole
    transaction is rolled back; service errors propagate unchanged and
    database errors are translated.
    """
    try:
        await apply_lock_timeout(db, lock_timeout_ms)
        yield db
        await db.commit()
    except BaseServiceError:
        await db.rollback()
        raise
    except DBAPIError as e:
        await db.rollback()
        translated = translate_db_error(e, operation)
        if isinstance(translated, TransientDbError):
            logger.warning(f"{operation}: transient database error ({_sqlstate(e) or 'locked'}), rolled back")
        else:
            logger.error(f"{operation}: database error, rolled back: {e}")
        raise translated from e
    except Exception:
        await db.rollback()
        raise
