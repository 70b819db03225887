"""
Transaction boundary for every mutating core operation.

One process-wide write lock linearizes check-then-act sequences in this
process. Writers in other processes are caught by the version columns
(StaleDataError) or by the database itself (deadlock / serialization /
locked), and the whole unit of work is replayed with exponential backoff.
"""
import functools
import logging
import random
import threading
import time
from typing import Callable, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from triad.config import settings
from triad.errors import TransactionConflict

logger = logging.getLogger(__name__)

T = TypeVar("T")

_write_lock = threading.RLock()

_TXN_DEPTH = "triad_txn_depth"

RETRY_ERROR_CODES = {
    "40001",  # postgres serialization_failure
    "40P01",  # postgres deadlock_detected
    "55P03",  # postgres lock_not_available
    "1205",   # mysql lock wait timeout
    "1213",   # mysql deadlock
}


def is_retryable_error(error: Exception) -> bool:
    if isinstance(error, StaleDataError):
        return True
    if isinstance(error, (OperationalError, DBAPIError)):
        text = str(error).lower()
        if any(word in text for word in ("deadlock", "serializ", "database is locked")):
            return True
        orig = getattr(error, "orig", None)
        pgcode = getattr(orig, "pgcode", None)
        if pgcode:
            return pgcode in RETRY_ERROR_CODES
        args = getattr(orig, "args", None)
        if args:
            return str(args[0]) in RETRY_ERROR_CODES
    return False


def _backoff(attempt: int) -> float:
    base = settings.TXN_BASE_DELAY_MS / 1000.0
    cap = settings.TXN_MAX_DELAY_MS / 1000.0
    jitter = random.uniform(0, settings.TXN_JITTER_MS / 1000.0)
    return min(base * (2 ** (attempt - 1)), cap) + jitter


def run_in_transaction(db: Session, work: Callable[[], T], *, name: str = "txn",
                       max_retries: int | None = None) -> T:
    """Run ``work`` as one atomic unit on ``db`` and commit it.

    Nested calls on the same session join the outer unit: they neither
    commit nor retry on their own.
    """
    if db.info.get(_TXN_DEPTH):
        return work()

    attempts = max_retries or settings.TXN_MAX_RETRIES
    for attempt in range(1, attempts + 1):
        with _write_lock:
            db.expire_all()
            db.info[_TXN_DEPTH] = 1
            try:
                result = work()
                db.commit()
                return result
            except Exception as e:
                db.rollback()
                if not is_retryable_error(e):
                    raise
                last_error = e
            finally:
                db.info.pop(_TXN_DEPTH, None)

        if attempt == attempts:
            logger.error("%s: conflict unresolved after %d attempts: %s", name, attempts, last_error)
            raise TransactionConflict(
                f"{name} could not commit after {attempts} attempts",
                attempts=attempts,
            ) from last_error
        delay = _backoff(attempt)
        logger.warning("%s: write conflict on attempt %d/%d, retrying in %.3fs",
                       name, attempt, attempts, delay)
        time.sleep(delay)


def transactional(func: Callable[..., T]) -> Callable[..., T]:
    """Decorator for service functions whose first argument is the Session."""
    @functools.wraps(func)
    def wrapper(db: Session, *args, **kwargs) -> T:
        return run_in_transaction(db, lambda: func(db, *args, **kwargs), name=func.__name__)
    return wrapper
