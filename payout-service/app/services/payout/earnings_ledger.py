"""
Per-event earnings ledger.

The aggregate is rebuilt from confirmed ticket sales, so recompute can be
replayed any number of times. Withdrawals move money from
available_to_withdraw to withdrawn_amount inside the caller's transaction;
every write is version-checked and retried by run_in_transaction.
"""
import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app import crud
from app.core.config import settings
from app.core.errors import (
    InsufficientBalanceError,
    NotFoundError,
    ValidationError,
)
from app.models.event import Event
from app.models.event_earnings import EventEarnings
from app.schemas.payout import Currency, SettlementStatus
from app.schemas.ticket_event import TicketConfirmationEvent
from app.services.payout.fee_calculator import FeeCalculator, fee_calculator
from app.services.payout.settlement import settlement_ready_date, settlement_status
from app.services.payout.transactions import run_in_transaction
from app.utils.datetime_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

USD_COUNTRIES = {"US", "CA"}


def earnings_currency(event: Event) -> str:
    currency = (event.currency or "").upper()
    if currency in (Currency.HTG.value, Currency.USD.value):
        return currency
    if (event.country or "").upper() in USD_COUNTRIES:
        return Currency.USD.value
    return Currency.HTG.value


class EarningsLedger:
    def __init__(
        self,
        calculator: FeeCalculator = fee_calculator,
        hold_days: int = settings.SETTLEMENT_HOLD_DAYS,
    ):
        self.calculator = calculator
        self.hold_days = hold_days

    # ------------------------------------------------------------------ #
    # Settlement
    # ------------------------------------------------------------------ #

    @staticmethod
    def event_end(event: Event) -> Optional[datetime]:
        return ensure_utc(event.end_datetime or event.start_datetime)

    def refresh_settlement(
        self, earnings: EventEarnings, event: Event, now: datetime
    ) -> SettlementStatus:
        """Re-derive the cached settlement fields. Returns the status."""
        end = self.event_end(event)
        status = settlement_status(now, end, self.hold_days, earnings.admin_locked)
        ready_date = settlement_ready_date(end, self.hold_days)
        if earnings.settlement_status != status.value:
            earnings.settlement_status = status.value
        if ensure_utc(earnings.settlement_ready_date) != ready_date:
            earnings.settlement_ready_date = ready_date
        return status

    def _load_event(self, db: Session, event_id: str) -> Event:
        event = crud.event.get(db, event_id)
        if event is None:
            raise NotFoundError(f"Event {event_id} not found")
        return event

    # ------------------------------------------------------------------ #
    # Recompute
    # ------------------------------------------------------------------ #

    def recompute(self, db: Session, event_id: str, now: Optional[datetime] = None) -> EventEarnings:
        """Rebuild the aggregate for an event from its confirmed ticket sales."""
        event = self._load_event(db, event_id)

        def work() -> EventEarnings:
            current = now or utcnow()
            prices = crud.ticket_sale.get_confirmed_prices(db, event_id=event_id)
            totals = self.calculator.calculate_many(prices)

            earnings = crud.event_earnings.get_by_event_for_update(db, event_id=event_id)
            if earnings is None:
                earnings = EventEarnings(
                    event_id=event_id,
                    organizer_id=event.organizer_id,
                    currency=earnings_currency(event),
                    withdrawn_amount=0,
                    admin_locked=False,
                )
                db.add(earnings)

            withdrawn = earnings.withdrawn_amount or 0
            if withdrawn > totals.net:
                logger.warning(
                    f"Event {event_id}: withdrawn {withdrawn} exceeds recomputed net "
                    f"{totals.net}; availability clamped to 0"
                )

            earnings.gross_sales = totals.gross
            earnings.tickets_sold = len(prices)
            earnings.platform_fee = totals.platform_fee
            earnings.processing_fees = totals.processing_fee
            earnings.net_amount = totals.net
            earnings.available_to_withdraw = max(0, totals.net - withdrawn)
            earnings.last_calculated_at = current
            self.refresh_settlement(earnings, event, current)
            db.flush()
            return earnings

        earnings = run_in_transaction(db, work, label=f"recompute[{event_id}]")
        logger.info(
            f"Recomputed earnings for event {event_id}: gross={earnings.gross_sales} "
            f"net={earnings.net_amount} available={earnings.available_to_withdraw}"
        )
        return earnings

    def record_ticket_event(self, db: Session, payload: TicketConfirmationEvent) -> EventEarnings:
        """Store a ticket state change and rebuild the event's aggregate."""
        values = {
            "event_id": payload.event_id,
            "tier_id": payload.tier_id,
            "tier_name": payload.tier_name,
            "price_cents": payload.price_cents,
            "currency": (payload.currency or "HTG").upper(),
            "status": payload.status.lower(),
            "purchased_at": ensure_utc(payload.purchased_at),
            "payment_method": payload.payment_method,
            "payment_id": payload.payment_id,
        }
        try:
            crud.ticket_sale.upsert(db, ticket_id=payload.ticket_id, values=values)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return self.recompute(db, payload.event_id)

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def get_event_earnings(
        self, db: Session, event_id: str, now: Optional[datetime] = None
    ) -> EventEarnings:
        """Load an event's earnings with a freshly derived settlement status."""
        event = self._load_event(db, event_id)

        def work() -> EventEarnings:
            earnings = crud.event_earnings.get_by_event(db, event_id=event_id)
            if earnings is None:
                raise NotFoundError(f"No earnings recorded for event {event_id}")
            self.refresh_settlement(earnings, event, now or utcnow())
            db.flush()
            return earnings

        return run_in_transaction(db, work, label=f"settlement-refresh[{event_id}]")

    def get_organizer_summary(
        self, db: Session, organizer_id: str, now: Optional[datetime] = None
    ) -> Dict:
        current = now or utcnow()
        rows = crud.event_earnings.get_multi_by_organizer(db, organizer_id=organizer_id)
        events: List[EventEarnings] = []
        totals: Dict[str, Dict[str, int]] = defaultdict(
            lambda: {
                "gross_sales": 0,
                "net_amount": 0,
                "available_to_withdraw": 0,
                "withdrawn_amount": 0,
                "pending_balance": 0,
            }
        )
        for earnings in rows:
            event = crud.event.get(db, earnings.event_id)
            if event is not None:
                self.refresh_settlement(earnings, event, current)
            bucket = totals[earnings.currency]
            bucket["gross_sales"] += earnings.gross_sales
            bucket["net_amount"] += earnings.net_amount
            bucket["withdrawn_amount"] += earnings.withdrawn_amount
            if earnings.settlement_status == SettlementStatus.ready.value:
                bucket["available_to_withdraw"] += earnings.available_to_withdraw
            else:
                bucket["pending_balance"] += earnings.available_to_withdraw
            events.append(earnings)
        db.commit()

        return {
            "organizer_id": organizer_id,
            "totals": [
                {"currency": currency, **values}
                for currency, values in sorted(totals.items())
            ],
            "events": events,
        }

    # ------------------------------------------------------------------ #
    # Administrative lock
    # ------------------------------------------------------------------ #

    def lock_settlement(
        self, db: Session, event_id: str, reason: str, admin_id: str
    ) -> EventEarnings:
        event = self._load_event(db, event_id)

        def work() -> EventEarnings:
            earnings = crud.event_earnings.get_by_event_for_update(db, event_id=event_id)
            if earnings is None:
                raise NotFoundError(f"No earnings recorded for event {event_id}")
            earnings.admin_locked = True
            earnings.locked_reason = reason
            earnings.locked_by = admin_id
            earnings.locked_at = utcnow()
            self.refresh_settlement(earnings, event, utcnow())
            db.flush()
            return earnings

        earnings = run_in_transaction(db, work, label=f"lock[{event_id}]")
        logger.warning(f"Settlement locked for event {event_id} by {admin_id}: {reason}")
        return earnings

    def unlock_settlement(self, db: Session, event_id: str, admin_id: str) -> EventEarnings:
        event = self._load_event(db, event_id)

        def work() -> EventEarnings:
            earnings = crud.event_earnings.get_by_event_for_update(db, event_id=event_id)
            if earnings is None:
                raise NotFoundError(f"No earnings recorded for event {event_id}")
            if not earnings.admin_locked:
                raise ValidationError("Settlement is not locked", code="NOT_LOCKED")
            earnings.admin_locked = False
            earnings.locked_reason = None
            earnings.locked_by = None
            earnings.locked_at = None
            self.refresh_settlement(earnings, event, utcnow())
            db.flush()
            return earnings

        earnings = run_in_transaction(db, work, label=f"unlock[{event_id}]")
        logger.info(f"Settlement unlocked for event {event_id} by {admin_id}")
        return earnings

    def refresh_pending_settlements(self, db: Session, now: Optional[datetime] = None) -> int:
        """Move cached statuses from pending to ready. Returns rows updated."""
        current = now or utcnow()
        updated = 0
        after_id = None
        while True:
            batch = crud.event_earnings.get_unsettled_batch(db, after_id=after_id)
            if not batch:
                break
            after_id = batch[-1].id
            for earnings in batch:
                event = crud.event.get(db, earnings.event_id)
                if event is None:
                    continue
                if self.refresh_settlement(earnings, event, current) == SettlementStatus.ready:
                    updated += 1
            db.commit()
        return updated

    # ------------------------------------------------------------------ #
    # Balance movements (caller owns the transaction)
    # ------------------------------------------------------------------ #

    @staticmethod
    def deduct(earnings: EventEarnings, amount: int, held: int = 0) -> None:
        """Move `amount` from available to withdrawn, keeping `held` cents in reserve."""
        available = earnings.available_to_withdraw - held
        if amount > available:
            raise InsufficientBalanceError(max(0, available), amount)
        earnings.available_to_withdraw -= amount
        earnings.withdrawn_amount += amount

    @staticmethod
    def restore(earnings: EventEarnings, amount: int) -> None:
        """Compensate a deduction whose withdrawal did not go through."""
        earnings.available_to_withdraw += amount
        earnings.withdrawn_amount = max(0, earnings.withdrawn_amount - amount)
        if earnings.available_to_withdraw + earnings.withdrawn_amount > earnings.net_amount:
            logger.error(
                f"Event {earnings.event_id}: restore of {amount} exceeds net "
                f"{earnings.net_amount}; clamping available"
            )
            earnings.available_to_withdraw = max(
                0, earnings.net_amount - earnings.withdrawn_amount
            )


earnings_ledger = EarningsLedger()
