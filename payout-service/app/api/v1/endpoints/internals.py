# app/api/v1/endpoints/internals.py
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app import crud
from app.api import deps
from app.core.errors import NotFoundError
from app.models.event import Event
from app.models.organizer import Organizer
from app.schemas.internal import EventSync, OrganizerSync, TicketConfirmationAck
from app.schemas.payout import PublishEligibility
from app.schemas.ticket_event import TicketConfirmationEvent
from app.services.payout.earnings_ledger import earnings_ledger
from app.services.payout.profile_resolver import check_publish_eligibility

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal", tags=["Internal"])


@router.post(
    "/ticket-confirmations",
    response_model=TicketConfirmationAck,
    status_code=status.HTTP_202_ACCEPTED,
)
def record_ticket_confirmation(
    payload: TicketConfirmationEvent,
    db: Session = Depends(deps.get_db),
    api_key: str = Depends(deps.get_internal_api_key),
):
    """
    HTTP twin of the tickets.confirmations.v1 consumer, used by services
    that cannot publish to Kafka. Replaying the same ticket is harmless.
    """
    earnings = earnings_ledger.record_ticket_event(db, payload)
    return TicketConfirmationAck(
        event_id=earnings.event_id,
        net_amount=earnings.net_amount,
        available_to_withdraw=earnings.available_to_withdraw,
    )


@router.put("/events/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
def sync_event(
    event_id: str,
    body: EventSync,
    db: Session = Depends(deps.get_db),
    api_key: str = Depends(deps.get_internal_api_key),
):
    """Create or update the local copy of an event."""
    event = crud.event.get(db, event_id)
    if event is None:
        event = Event(id=event_id)
        db.add(event)
    event.organizer_id = body.organizer_id
    event.title = body.title
    event.country = body.country
    if body.currency is not None:
        event.currency = body.currency.value
    event.start_datetime = body.start_datetime
    event.end_datetime = body.end_datetime
    event.is_paid = body.is_paid
    db.commit()
    logger.info(f"Synced event {event_id} for organizer {body.organizer_id}")

    # The event end drives settlement; tickets may also have arrived first
    if crud.event_earnings.get_by_event(db, event_id=event_id) is not None or (
        crud.ticket_sale.get_confirmed_prices(db, event_id=event_id)
    ):
        earnings_ledger.recompute(db, event_id)


@router.put("/organizers/{organizer_id}", status_code=status.HTTP_204_NO_CONTENT)
def sync_organizer(
    organizer_id: str,
    body: OrganizerSync,
    db: Session = Depends(deps.get_db),
    api_key: str = Depends(deps.get_internal_api_key),
):
    """Create or update the local copy of an organizer's identity fields."""
    organizer = db.get(Organizer, organizer_id)
    if organizer is None:
        organizer = Organizer(id=organizer_id)
        db.add(organizer)
    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(organizer, field, value)
    db.commit()


@router.post("/events/{event_id}/publish-check", response_model=PublishEligibility)
async def publish_check(
    event_id: str,
    db: Session = Depends(deps.get_db),
    api_key: str = Depends(deps.get_internal_api_key),
):
    """
    Server-side publish gate for paid events, called by the event service
    before it flips an event to published.
    """
    event = crud.event.get(db, event_id)
    if event is None:
        raise NotFoundError("Event not found")
    result = await check_publish_eligibility(db, event.organizer_id, event)
    return PublishEligibility(eligible=result.eligible, rail=result.rail, reasons=result.reasons)
