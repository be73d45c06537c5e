# app/background_tasks/settlement_tasks.py
"""
Background task for settlement readiness.

Settlement status is derived on every read; this sweep keeps the cached
column current for events nobody has looked at since their hold ended.
"""
import logging
from app.db.session import SessionLocal
from app.services.payout.earnings_ledger import earnings_ledger

logger = logging.getLogger(__name__)


def refresh_settlement_statuses():
    """
    Background task: move cached settlement statuses from pending to ready.

    Returns: Number of events that became ready
    """
    db = SessionLocal()
    try:
        count = earnings_ledger.refresh_pending_settlements(db)

        if count > 0:
            logger.info(f"Marked {count} events ready for settlement")

        return count

    except Exception as e:
        db.rollback()
        logger.error(f"Error in refresh_settlement_statuses task: {str(e)}", exc_info=True)
        return 0

    finally:
        db.close()
