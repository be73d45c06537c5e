# app/api/v1/endpoints/admin.py
"""
Administrative settlement controls, called by the admin console through
the internal API key. The acting admin is passed in X-Admin-Id for the
audit fields on the earnings record.
"""
from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from app.api import deps
from app.schemas.payout import EventEarningsResponse, SettlementLockRequest
from app.services.payout.earnings_ledger import earnings_ledger

router = APIRouter(prefix="/admin/events", tags=["Admin"])


@router.post("/{event_id}/settlement/lock", response_model=EventEarningsResponse)
def lock_event_settlement(
    event_id: str,
    body: SettlementLockRequest,
    admin_id: str = Header(..., alias="X-Admin-Id"),
    db: Session = Depends(deps.get_db),
    api_key: str = Depends(deps.get_internal_api_key),
):
    """**[ADMIN]** Freeze withdrawals for an event until explicitly unlocked."""
    return earnings_ledger.lock_settlement(db, event_id, body.reason, admin_id)


@router.post("/{event_id}/settlement/unlock", response_model=EventEarningsResponse)
def unlock_event_settlement(
    event_id: str,
    admin_id: str = Header(..., alias="X-Admin-Id"),
    db: Session = Depends(deps.get_db),
    api_key: str = Depends(deps.get_internal_api_key),
):
    """**[ADMIN]** Lift a settlement lock; the status is re-derived from the event end."""
    return earnings_ledger.unlock_settlement(db, event_id, admin_id)


@router.post("/{event_id}/earnings/recompute", response_model=EventEarningsResponse)
def recompute_event_earnings(
    event_id: str,
    db: Session = Depends(deps.get_db),
    api_key: str = Depends(deps.get_internal_api_key),
):
    """**[ADMIN]** Rebuild the earnings aggregate from confirmed ticket sales."""
    return earnings_ledger.recompute(db, event_id)
