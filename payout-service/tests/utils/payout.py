from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional
import uuid

from sqlalchemy.orm import Session

from app.models.event import Event
from app.models.organizer import Organizer
from app.models.payout_profile import PayoutProfile
from app.models.ticket_sale import TicketSale
from app.models.verification_document import VerificationDocument
from app.services.payout.earnings_ledger import earnings_ledger

ORGANIZER_ID = "user_owner"
OTHER_ORGANIZER_ID = "user_other"


def create_organizer(
    db: Session,
    organizer_id: str = ORGANIZER_ID,
    legal_name: str = "Jean Baptiste",
    organization_name: Optional[str] = "Konpa Live",
    identity_status: Optional[str] = "verified",
    email: str = "owner@example.com",
) -> Organizer:
    organizer = Organizer(
        id=organizer_id,
        email=email,
        display_name=legal_name,
        legal_name=legal_name,
        organization_name=organization_name,
        identity_status=identity_status,
    )
    db.add(organizer)
    db.commit()
    return organizer


def create_event(
    db: Session,
    organizer_id: str = ORGANIZER_ID,
    country: Optional[str] = "HT",
    currency: str = "HTG",
    ended_days_ago: Optional[int] = 10,
    title: str = "Test Event",
    is_paid: bool = True,
) -> Event:
    """
    Creates an event that ended `ended_days_ago` days ago (negative for
    future events, None for no dates at all).
    """
    end = None
    if ended_days_ago is not None:
        end = datetime.now(timezone.utc) - timedelta(days=ended_days_ago)
    event = Event(
        id=f"evt_{uuid.uuid4().hex[:12]}",
        organizer_id=organizer_id,
        title=title,
        country=country,
        currency=currency,
        start_datetime=end - timedelta(hours=4) if end else None,
        end_datetime=end,
        is_paid=is_paid,
    )
    db.add(event)
    db.commit()
    return event


def add_tickets(
    db: Session,
    event: Event,
    prices: Iterable[int],
    status: str = "confirmed",
    tier_id: Optional[str] = "tier_ga",
    tier_name: Optional[str] = "General Admission",
    start: Optional[datetime] = None,
):
    """Adds one confirmed ticket per price, one minute apart, and recomputes."""
    start = start or datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)
    for i, price in enumerate(prices):
        db.add(
            TicketSale(
                id=f"tkt_{uuid.uuid4().hex[:12]}",
                event_id=event.id,
                tier_id=tier_id,
                tier_name=tier_name,
                price_cents=price,
                currency=event.currency,
                status=status,
                purchased_at=start + timedelta(minutes=i),
                payment_method="moncash",
                payment_id=f"pay_{i}",
            )
        )
    db.commit()
    return earnings_ledger.recompute(db, event.id)


def set_document(db: Session, organizer_id: str, doc_type: str, status: str) -> None:
    """Records a review outcome, replacing any earlier one for the same check."""
    document = (
        db.query(VerificationDocument)
        .filter_by(organizer_id=organizer_id, doc_type=doc_type)
        .first()
    )
    if document is None:
        document = VerificationDocument(organizer_id=organizer_id, doc_type=doc_type)
        db.add(document)
    document.status = status
    db.commit()


def create_haiti_bank_profile(
    db: Session,
    organizer_id: str = ORGANIZER_ID,
    bank_verified: bool = True,
    allow_instant_moncash: bool = False,
    on_hold: bool = False,
) -> PayoutProfile:
    profile = PayoutProfile(
        organizer_id=organizer_id,
        rail="haiti",
        method="bank_transfer",
        bank_details={
            "bank_name": "Unibank",
            "account_holder": "Jean Baptiste",
            "account_number_last4": "6789",
        },
        allow_instant_moncash=allow_instant_moncash,
        on_hold=on_hold,
    )
    db.add(profile)
    db.commit()
    if bank_verified:
        set_document(db, organizer_id, "bank", "verified")
    return profile


def create_haiti_moncash_profile(
    db: Session,
    organizer_id: str = ORGANIZER_ID,
    phone_verified: bool = True,
    allow_instant_moncash: bool = True,
) -> PayoutProfile:
    profile = PayoutProfile(
        organizer_id=organizer_id,
        rail="haiti",
        method="mobile_money",
        mobile_money_details={"provider": "moncash", "phone_number": "50937001234"},
        allow_instant_moncash=allow_instant_moncash,
    )
    db.add(profile)
    db.commit()
    if phone_verified:
        set_document(db, organizer_id, "phone", "verified")
    return profile


def create_card_gateway_profile(
    db: Session,
    organizer_id: str = ORGANIZER_ID,
    connected_account_id: Optional[str] = "acct_test123",
    onboarded: bool = True,
) -> PayoutProfile:
    profile = PayoutProfile(
        organizer_id=organizer_id,
        rail="card_gateway_connect",
        connected_account_id=connected_account_id,
        details_submitted=onboarded,
        charges_enabled=onboarded,
        payouts_enabled=onboarded,
    )
    db.add(profile)
    db.commit()
    return profile
