"""Settlement readiness policy."""
from datetime import datetime, timedelta
from typing import Optional

from app.schemas.payout import SettlementStatus
from app.utils.datetime_utils import ensure_utc


def settlement_ready_date(event_end: Optional[datetime], hold_days: int) -> Optional[datetime]:
    if event_end is None:
        return None
    return ensure_utc(event_end) + timedelta(days=hold_days)


def settlement_status(
    now: datetime,
    event_end: Optional[datetime],
    hold_days: int = 7,
    admin_locked: bool = False,
) -> SettlementStatus:
    """
    Derive the settlement status of an event.

    An administrative lock wins over everything. Without a known end date
    the event can never become ready.
    """
    if admin_locked:
        return SettlementStatus.locked
    ready_at = settlement_ready_date(event_end, hold_days)
    if ready_at is not None and ensure_utc(now) >= ready_at:
        return SettlementStatus.ready
    return SettlementStatus.pending
