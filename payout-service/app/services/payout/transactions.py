"""Optimistic unit-of-work helper for ledger writes."""
import logging
from typing import Callable, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.errors import ConcurrencyConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_in_transaction(
    db: Session,
    work: Callable[[], T],
    *,
    label: str,
    max_attempts: int = None,
) -> T:
    """
    Run `work` and commit, retrying the whole unit on a version conflict.

    `work` must re-read everything it depends on, since a retry starts
    from a rolled-back session. Domain errors raised by `work` roll back
    and propagate unchanged.
    """
    attempts = max_attempts or settings.LEDGER_MAX_RETRIES
    for attempt in range(1, attempts + 1):
        try:
            result = work()
            db.commit()
            return result
        except (StaleDataError, IntegrityError) as e:
            db.rollback()
            logger.warning(
                f"{label}: concurrent update detected (attempt {attempt}/{attempts}): {e}"
            )
        except Exception:
            db.rollback()
            raise
    logger.error(f"{label}: gave up after {attempts} conflicting attempts")
    raise ConcurrencyConflictError(
        "The balance was updated concurrently, please retry",
    )
