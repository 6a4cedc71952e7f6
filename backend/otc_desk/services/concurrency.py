# Overview: Transaction helpers shared by every mutating service: row locks, retry, result envelope.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import LedgerError, OperationResult, StoreError, ValidationError
from ..extensions import db

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the version_id columns
    on Order and InventoryState turn a lost race into StaleDataError.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.05):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Each retry re-reads state, so the loser
    of a race sees the winner's commit.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            logger.info("retrying after %s (attempt %d/%d)", type(exc).__name__, attempt + 1, attempts)
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def run_operation(func, *, name: str, attempts: int = 3, backoff_base: float = 0.05) -> OperationResult:
    """
    Run `func` as one atomic operation and wrap the outcome.

    - LedgerError raised by `func` -> rollback, failure result carrying it
    - numeric overflow (OverflowError, decimal signals) -> rollback, ValidationError result
    - store failure that survives the retries -> rollback, StoreError result
    - otherwise success result with func's return value
    """
    try:
        value = run_with_retry(func, attempts=attempts, backoff_base=backoff_base)
    except LedgerError as exc:
        db.session.rollback()
        logger.warning("%s rejected: %s", name, exc)
        return OperationResult.failure(exc)
    except ArithmeticError:
        db.session.rollback()
        logger.exception("%s rejected: value outside the storable range", name)
        return OperationResult.failure(ValidationError("value is outside the storable range"))
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("%s failed in the data store", name)
        return OperationResult.failure(StoreError(f"{name} failed; nothing was applied"))
    return OperationResult.success(value)
