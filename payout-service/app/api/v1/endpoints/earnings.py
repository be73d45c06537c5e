# app/api/v1/endpoints/earnings.py
from typing import Callable

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app import crud
from app.api import deps
from app.core.errors import AuthorizationError, NotFoundError
from app.models.event import Event
from app.schemas.payout import EventEarningsResponse, OrganizerEarningsSummary
from app.schemas.token import TokenPayload
from app.services.payout.audit_export import audit_exporter, export_filename
from app.services.payout.earnings_ledger import earnings_currency, earnings_ledger

router = APIRouter(prefix="/organizer", tags=["Earnings"])


def _owned_event(db: Session, event_id: str, organizer_id: str) -> Event:
    event = crud.event.get(db, event_id)
    if event is None:
        raise NotFoundError("Event not found")
    if event.organizer_id != organizer_id:
        raise AuthorizationError("Not authorized for this event")
    return event


@router.get("/earnings", response_model=OrganizerEarningsSummary)
def get_my_earnings(
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """
    Earnings across all of the organizer's events.

    Totals are grouped by currency; balances of events still inside the
    settlement hold are reported as `pendingBalance`.
    """
    summary = earnings_ledger.get_organizer_summary(db, current_user.sub)
    return OrganizerEarningsSummary.model_validate(summary)


@router.get("/events/{event_id}/earnings", response_model=EventEarningsResponse)
def get_event_earnings(
    event_id: str,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    _owned_event(db, event_id, current_user.sub)
    return earnings_ledger.get_event_earnings(db, event_id)


@router.get("/events/{event_id}/earnings/audit")
def export_event_earnings_audit(
    event_id: str,
    db: Session = Depends(deps.get_db),
    session_factory: Callable[[], Session] = Depends(deps.get_session_factory),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """
    Per-ticket CSV audit of an event's confirmed sales.

    Rows are streamed newest purchase first and followed by a price
    breakdown by tier and listed price.
    """
    event = _owned_event(db, event_id, current_user.sub)
    filename = export_filename(event)
    return StreamingResponse(
        audit_exporter.iter_csv(session_factory, event.id, earnings_currency(event)),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
