"""
Tests for the per-event earnings ledger.

Verifies that EarningsLedger correctly:
- Rebuilds the aggregate from confirmed tickets only
- Produces the same aggregate on every replay
- Preserves withdrawn amounts across recomputes
- Derives and caches settlement status, including admin locks
- Summarizes an organizer's earnings per currency
"""

from datetime import datetime, timedelta, timezone

import pytest

from app.core.errors import InsufficientBalanceError, NotFoundError, ValidationError
from app.models.event_earnings import EventEarnings
from app.schemas.payout import SettlementStatus
from app.schemas.ticket_event import TicketConfirmationEvent
from app.services.payout.earnings_ledger import EarningsLedger, earnings_currency, earnings_ledger

from tests.utils.payout import ORGANIZER_ID, add_tickets, create_event


def _ticket(event_id, ticket_id="tkt_1", price=10000, status="confirmed"):
    return TicketConfirmationEvent.model_validate(
        {
            "ticketId": ticket_id,
            "eventId": event_id,
            "priceCents": price,
            "currency": "HTG",
            "status": status,
            "tierId": "tier_ga",
            "tierName": "General Admission",
            "purchasedAt": "2026-01-10T12:00:00Z",
        }
    )


class TestRecompute:
    def test_aggregate_from_confirmed_tickets(self, db):
        event = create_event(db)
        add_tickets(db, event, [10000, 10000])
        earnings = add_tickets(db, event, [5000], status="refunded")

        assert earnings.gross_sales == 20000
        assert earnings.tickets_sold == 2
        assert earnings.platform_fee == 2000
        assert earnings.processing_fees == 640
        assert earnings.net_amount == 17360
        assert earnings.available_to_withdraw == 17360
        assert earnings.withdrawn_amount == 0
        assert earnings.currency == "HTG"
        assert earnings.organizer_id == ORGANIZER_ID

    def test_valid_status_counts_as_confirmed(self, db):
        event = create_event(db)
        earnings = add_tickets(db, event, [10000], status="valid")

        assert earnings.tickets_sold == 1
        assert earnings.net_amount == 8680

    def test_free_tickets_add_nothing(self, db):
        event = create_event(db)
        earnings = add_tickets(db, event, [0, 0, 10000])

        assert earnings.tickets_sold == 3
        assert earnings.gross_sales == 10000
        assert earnings.net_amount == 8680

    def test_recompute_is_idempotent(self, db):
        event = create_event(db)
        first = add_tickets(db, event, [10000, 2500])
        snapshot = (first.gross_sales, first.net_amount, first.available_to_withdraw)

        again = earnings_ledger.recompute(db, event.id)
        again = earnings_ledger.recompute(db, event.id)

        assert (again.gross_sales, again.net_amount, again.available_to_withdraw) == snapshot
        assert db.query(EventEarnings).filter_by(event_id=event.id).count() == 1

    def test_withdrawn_survives_recompute(self, db):
        event = create_event(db)
        earnings = add_tickets(db, event, [10000, 10000])
        EarningsLedger.deduct(earnings, 5000)
        db.commit()

        earnings = earnings_ledger.recompute(db, event.id)

        assert earnings.withdrawn_amount == 5000
        assert earnings.available_to_withdraw == 17360 - 5000
        assert earnings.available_to_withdraw + earnings.withdrawn_amount == earnings.net_amount

    def test_available_clamped_when_withdrawn_exceeds_net(self, db):
        event = create_event(db)
        earnings = add_tickets(db, event, [10000])
        EarningsLedger.deduct(earnings, 8000)
        db.commit()

        # Refund the only ticket
        from app.models.ticket_sale import TicketSale

        db.query(TicketSale).filter_by(event_id=event.id).update({"status": "refunded"})
        db.commit()
        earnings = earnings_ledger.recompute(db, event.id)

        assert earnings.net_amount == 0
        assert earnings.withdrawn_amount == 8000
        assert earnings.available_to_withdraw == 0

    def test_unknown_event(self, db):
        with pytest.raises(NotFoundError):
            earnings_ledger.recompute(db, "evt_missing")

    def test_usd_event_currency(self, db):
        event = create_event(db, country="US", currency="USD")
        earnings = add_tickets(db, event, [10000])

        assert earnings.currency == "USD"


class TestRecordTicketEvent:
    def test_replay_does_not_double_count(self, db):
        event = create_event(db)

        earnings_ledger.record_ticket_event(db, _ticket(event.id))
        earnings = earnings_ledger.record_ticket_event(db, _ticket(event.id))

        assert earnings.tickets_sold == 1
        assert earnings.gross_sales == 10000

    def test_refund_removes_ticket(self, db):
        event = create_event(db)
        earnings_ledger.record_ticket_event(db, _ticket(event.id))

        earnings = earnings_ledger.record_ticket_event(db, _ticket(event.id, status="REFUNDED"))

        assert earnings.tickets_sold == 0
        assert earnings.net_amount == 0

    def test_ticket_for_unknown_event_is_kept(self, db):
        from app.models.ticket_sale import TicketSale

        with pytest.raises(NotFoundError):
            earnings_ledger.record_ticket_event(db, _ticket("evt_later"))

        assert db.get(TicketSale, "tkt_1") is not None


class TestSettlement:
    def test_ready_after_hold(self, db):
        event = create_event(db, ended_days_ago=10)
        earnings = add_tickets(db, event, [10000])

        assert earnings.settlement_status == SettlementStatus.ready.value
        assert earnings.settlement_ready_date is not None

    def test_pending_inside_hold(self, db):
        event = create_event(db, ended_days_ago=2)
        earnings = add_tickets(db, event, [10000])

        assert earnings.settlement_status == SettlementStatus.pending.value

    def test_start_date_used_without_end(self, db):
        event = create_event(db, ended_days_ago=10)
        event.end_datetime = None
        db.commit()

        earnings = add_tickets(db, event, [10000])

        assert earnings.settlement_status == SettlementStatus.ready.value

    def test_no_dates_never_ready(self, db):
        event = create_event(db, ended_days_ago=None)
        earnings = add_tickets(db, event, [10000])

        assert earnings.settlement_status == SettlementStatus.pending.value
        assert earnings.settlement_ready_date is None

    def test_lock_and_unlock(self, db):
        event = create_event(db)
        add_tickets(db, event, [10000])

        locked = earnings_ledger.lock_settlement(db, event.id, "Chargeback review", "admin_1")
        assert locked.settlement_status == SettlementStatus.locked.value
        assert locked.locked_reason == "Chargeback review"
        assert locked.locked_by == "admin_1"

        # Recompute keeps the lock
        assert earnings_ledger.recompute(db, event.id).settlement_status == "locked"

        unlocked = earnings_ledger.unlock_settlement(db, event.id, "admin_1")
        assert unlocked.settlement_status == SettlementStatus.ready.value
        assert unlocked.locked_reason is None

    def test_unlock_when_not_locked(self, db):
        event = create_event(db)
        add_tickets(db, event, [10000])

        with pytest.raises(ValidationError) as exc_info:
            earnings_ledger.unlock_settlement(db, event.id, "admin_1")
        assert exc_info.value.code == "NOT_LOCKED"

    def test_get_event_earnings_refreshes_status(self, db):
        event = create_event(db, ended_days_ago=2)
        add_tickets(db, event, [10000])

        later = datetime.now(timezone.utc) + timedelta(days=6)
        earnings = earnings_ledger.get_event_earnings(db, event.id, now=later)

        assert earnings.settlement_status == SettlementStatus.ready.value

    def test_refresh_pending_settlements(self, db):
        ready_soon = create_event(db, ended_days_ago=2)
        far_future = create_event(db, ended_days_ago=-30)
        add_tickets(db, ready_soon, [10000])
        add_tickets(db, far_future, [10000])

        later = datetime.now(timezone.utc) + timedelta(days=6)
        count = earnings_ledger.refresh_pending_settlements(db, now=later)

        assert count == 1
        db.expire_all()
        statuses = {
            e.event_id: e.settlement_status for e in db.query(EventEarnings).all()
        }
        assert statuses[ready_soon.id] == "ready"
        assert statuses[far_future.id] == "pending"


class TestBalanceMovements:
    def test_deduct_respects_holds(self, db):
        event = create_event(db)
        earnings = add_tickets(db, event, [10000])

        with pytest.raises(InsufficientBalanceError) as exc_info:
            EarningsLedger.deduct(earnings, 5000, held=5000)
        assert exc_info.value.available_cents == 8680 - 5000

    def test_restore_never_exceeds_net(self, db):
        event = create_event(db)
        earnings = add_tickets(db, event, [10000])

        EarningsLedger.restore(earnings, 1000)

        assert earnings.available_to_withdraw == 8680
        assert earnings.withdrawn_amount == 0


class TestOrganizerSummary:
    def test_totals_per_currency(self, db):
        htg_ready = create_event(db, ended_days_ago=10)
        htg_pending = create_event(db, ended_days_ago=1)
        usd_event = create_event(db, country="CA", currency="USD")
        add_tickets(db, htg_ready, [10000])
        add_tickets(db, htg_pending, [10000])
        add_tickets(db, usd_event, [10000, 10000])

        summary = earnings_ledger.get_organizer_summary(db, ORGANIZER_ID)

        totals = {t["currency"]: t for t in summary["totals"]}
        assert set(totals) == {"HTG", "USD"}
        assert totals["HTG"]["net_amount"] == 17360
        assert totals["HTG"]["available_to_withdraw"] == 8680
        assert totals["HTG"]["pending_balance"] == 8680
        assert totals["USD"]["gross_sales"] == 20000
        assert len(summary["events"]) == 3

    def test_other_organizers_excluded(self, db):
        mine = create_event(db)
        theirs = create_event(db, organizer_id="user_other")
        add_tickets(db, mine, [10000])
        add_tickets(db, theirs, [10000])

        summary = earnings_ledger.get_organizer_summary(db, ORGANIZER_ID)

        assert [e.event_id for e in summary["events"]] == [mine.id]


def test_earnings_currency_fallbacks():
    from app.models.event import Event

    assert earnings_currency(Event(currency="usd", country="HT")) == "USD"
    assert earnings_currency(Event(currency="EUR", country="US")) == "USD"
    assert earnings_currency(Event(currency=None, country="HT")) == "HTG"
