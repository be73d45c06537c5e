"""
Withdrawal processing for the Haiti rail.

Two paths:

- Manual (bank transfer, or MonCash without prefunding): the request is
  created and the ledger deducted in one transaction, then the request is
  handed to the finance disbursement queue. "completed" means handed off.
  If the hand-off fails, a compensating transaction restores the balance
  and marks the request failed.

- Instant MonCash (prefunding enabled and available, organizer opted in,
  HTG only): the request is created as an in-flight hold that reduces
  what other withdrawals can take, the transfer runs outside any
  transaction, and only a successful transfer deducts the gross amount.
  A failed transfer leaves the ledger untouched.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from app import crud
from app.core.config import settings
from app.core.errors import (
    AuthorizationError,
    ExternalRailError,
    InsufficientBalanceError,
    NotFoundError,
    RailMismatchError,
    SettlementNotReadyError,
    ValidationError,
)
from app.models.event import Event
from app.models.event_earnings import EventEarnings
from app.models.withdrawal_request import WithdrawalRequest
from app.schemas.payout import (
    BankWithdrawalRequest,
    Currency,
    MoncashWithdrawalRequest,
    PayoutMethod,
    PayoutProfileStatus,
    PayoutRail,
    SettlementStatus,
    VerificationState,
    WithdrawalMethod,
    WithdrawalStatus,
)
from app.services.payout.bank_destinations import (
    BankDestinationRegistry,
    bank_destination_registry,
)
from app.services.payout.disbursement import DisbursementQueue, disbursement_queue
from app.services.payout.earnings_ledger import EarningsLedger, earnings_ledger
from app.services.payout.fee_calculator import FeeCalculator, fee_calculator
from app.services.payout.moncash_client import MoncashClient, get_moncash_client
from app.services.payout.profile_resolver import HaitiProfile, get_profile, resolve_rail
from app.services.payout.step_up import StepUpService, step_up_service
from app.services.payout.transactions import run_in_transaction
from app.services.payout.withdrawal_state import transition
from app.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class WithdrawalOutcome:
    withdrawal: WithdrawalRequest
    instant: bool = False


class WithdrawalProcessor:
    def __init__(
        self,
        ledger: EarningsLedger = earnings_ledger,
        calculator: FeeCalculator = fee_calculator,
        registry: BankDestinationRegistry = bank_destination_registry,
        step_up: StepUpService = step_up_service,
        disbursements: DisbursementQueue = disbursement_queue,
        moncash_factory: Callable[[], MoncashClient] = get_moncash_client,
        prefunding_enabled: Optional[bool] = None,
        prefunding_available: Optional[bool] = None,
    ):
        self.ledger = ledger
        self.calculator = calculator
        self.registry = registry
        self.step_up = step_up
        self.disbursements = disbursements
        self.moncash_factory = moncash_factory
        self.prefunding_enabled = (
            settings.PREFUNDING_ENABLED if prefunding_enabled is None else prefunding_enabled
        )
        self.prefunding_available = (
            settings.PREFUNDING_AVAILABLE if prefunding_available is None else prefunding_available
        )

    # ------------------------------------------------------------------ #
    # Validation
    # ------------------------------------------------------------------ #

    def _preflight(
        self,
        db: Session,
        organizer_id: str,
        event_id: str,
        amount: int,
        required_method: Optional[PayoutMethod],
    ) -> Tuple[Event, HaitiProfile, EventEarnings]:
        """
        Checks in order: rail, minimum amount, ownership, settlement, balance.

        The balance and settlement checks are repeated against the locked
        row when the deduction is written.
        """
        event = crud.event.get(db, event_id)
        if event is None:
            raise NotFoundError("Event not found")

        # 1. Rail
        if resolve_rail(db, organizer_id, event) is PayoutRail.card_gateway_connect:
            raise RailMismatchError(
                "Events in the US and Canada are paid out through the card gateway. "
                "Manual bank and MonCash withdrawals are not available for this event."
            )
        profile = get_profile(db, organizer_id, PayoutRail.haiti)
        if profile is None or profile.status is not PayoutProfileStatus.active:
            raise ValidationError(
                "Please complete payout verification before requesting withdrawals.",
                code="PAYOUT_PROFILE_NOT_ACTIVE",
            )
        if required_method is not None and profile.method is not required_method:
            raise ValidationError(
                "Configure bank transfer as your payout method to withdraw to a bank account.",
                code="PAYOUT_METHOD_MISMATCH",
            )

        # 2. Minimum
        if not self.calculator.meets_minimum_payout(amount):
            raise ValidationError(
                f"Minimum withdrawal amount is {self.calculator.minimum_payout_cents} cents",
                code="BELOW_MINIMUM_PAYOUT",
                extra={"minimumCents": self.calculator.minimum_payout_cents},
            )

        # 3. Ownership
        if event.organizer_id != organizer_id:
            raise AuthorizationError("Not authorized for this event")

        # 4-5. Settlement and balance
        earnings = crud.event_earnings.get_by_event(db, event_id=event_id)
        if earnings is None:
            raise InsufficientBalanceError(0, amount)
        self.ledger.refresh_settlement(earnings, event, utcnow())
        held = crud.withdrawal_request.in_flight_hold_total(db, event_id=event_id)
        self._check_withdrawable(earnings, amount, held)
        return event, profile, earnings

    @staticmethod
    def _check_withdrawable(earnings: EventEarnings, amount: int, held: int) -> None:
        if earnings.settlement_status != SettlementStatus.ready.value:
            if earnings.settlement_status == SettlementStatus.locked.value:
                raise SettlementNotReadyError(
                    "Earnings for this event are on hold pending review",
                    code="SETTLEMENT_LOCKED",
                )
            raise SettlementNotReadyError("Earnings are not yet available for withdrawal")
        available = earnings.available_to_withdraw - held
        if amount > available:
            raise InsufficientBalanceError(max(0, available), amount)

    def _lock_earnings(self, db: Session, event: Event) -> Tuple[EventEarnings, int]:
        """Reload the aggregate with a lock and re-derive its settlement status."""
        earnings = crud.event_earnings.get_by_event_for_update(db, event_id=event.id)
        if earnings is None:
            raise NotFoundError("No earnings found for this event")
        self.ledger.refresh_settlement(earnings, event, utcnow())
        held = crud.withdrawal_request.in_flight_hold_total(db, event_id=event.id)
        return earnings, held

    # ------------------------------------------------------------------ #
    # Manual path
    # ------------------------------------------------------------------ #

    def _create_and_deduct(
        self,
        db: Session,
        event: Event,
        earnings_currency: str,
        organizer_id: str,
        amount: int,
        method: WithdrawalMethod,
        before_insert: Optional[Callable[[], Dict]] = None,
        **fields,
    ) -> WithdrawalRequest:
        def work() -> WithdrawalRequest:
            earnings, held = self._lock_earnings(db, event)
            self._check_withdrawable(earnings, amount, held)
            extra = before_insert() if before_insert else {}
            withdrawal = WithdrawalRequest(
                organizer_id=organizer_id,
                event_id=event.id,
                amount=amount,
                currency=earnings_currency,
                method=method.value,
                status=WithdrawalStatus.pending.value,
                ledger_deducted=True,
                **fields,
                **extra,
            )
            db.add(withdrawal)
            self.ledger.deduct(earnings, amount, held)
            db.flush()
            return withdrawal

        return run_in_transaction(db, work, label=f"withdraw[{event.id}]")

    def _hand_off(
        self,
        db: Session,
        withdrawal: WithdrawalRequest,
        event: Event,
        bank_details: Optional[Dict] = None,
    ) -> WithdrawalOutcome:
        try:
            queued = self.disbursements.hand_off(withdrawal, bank_details)
        except Exception:
            logger.exception(f"Disbursement hand-off raised for withdrawal {withdrawal.id}")
            queued = False

        if queued:
            def mark_handed_off() -> WithdrawalRequest:
                db.refresh(withdrawal)
                now = utcnow()
                withdrawal.handed_off_at = now
                transition(withdrawal, WithdrawalStatus.completed, now=now)
                db.flush()
                return withdrawal

            run_in_transaction(db, mark_handed_off, label=f"handoff[{withdrawal.id}]")
            logger.info(
                f"Withdrawal {withdrawal.id} handed off for manual disbursement "
                f"({withdrawal.amount} {withdrawal.currency})"
            )
            return WithdrawalOutcome(withdrawal=withdrawal)

        self.compensate(db, withdrawal, event, "Could not queue withdrawal for disbursement")
        raise ExternalRailError(
            "Withdrawal could not be queued for disbursement; your balance was restored",
            extra={"withdrawalId": withdrawal.id},
        )

    def compensate(
        self, db: Session, withdrawal: WithdrawalRequest, event: Event, reason: str
    ) -> None:
        """Restore a deducted amount and fail the request in one transaction."""
        def work() -> None:
            db.refresh(withdrawal)
            earnings, _ = self._lock_earnings(db, event)
            if withdrawal.ledger_deducted:
                self.ledger.restore(earnings, withdrawal.amount)
                withdrawal.ledger_deducted = False
            transition(withdrawal, WithdrawalStatus.failed, failure_reason=reason)
            db.flush()

        run_in_transaction(db, work, label=f"compensate[{withdrawal.id}]")
        logger.error(f"Withdrawal {withdrawal.id} failed and was compensated: {reason}")

    # ------------------------------------------------------------------ #
    # Bank
    # ------------------------------------------------------------------ #

    def withdraw_bank(
        self, db: Session, organizer_id: str, request: BankWithdrawalRequest
    ) -> WithdrawalOutcome:
        if bool(request.bank_details) == bool(request.bank_destination_id):
            raise ValidationError(
                "Provide either bankDetails or bankDestinationId", code="MISSING_FIELDS"
            )

        event, _profile, earnings = self._preflight(
            db, organizer_id, request.event_id, request.amount, PayoutMethod.bank_transfer
        )

        details = request.bank_details
        if request.bank_destination_id:
            view = self.registry.get_destination(db, organizer_id, request.bank_destination_id)
            if view.verification_status is not VerificationState.verified:
                raise AuthorizationError(
                    "This bank account must be verified before it can be used for withdrawals",
                    code="DESTINATION_NOT_VERIFIED",
                )
            dispatch_details = self.registry.get_decrypted(
                db, organizer_id, request.bank_destination_id
            )
            masked = {
                "bank_name": view.destination.bank_name,
                "account_holder": view.destination.account_holder,
                "account_number_last4": view.destination.account_number_last4,
            }
            before_insert = None
        else:
            self.step_up.require_recent_step_up(db, organizer_id)
            if request.save_destination:
                self.registry.assert_can_add(db, organizer_id, details)
            dispatch_details = {
                "bank_name": details.bank_name,
                "account_holder": details.account_holder,
                "account_number": details.account_number,
                "routing_number": details.routing_number,
                "swift_code": details.swift_code,
                "iban": details.iban,
            }
            masked = {
                "bank_name": details.bank_name,
                "account_holder": details.account_holder,
                "account_number_last4": details.account_number[-4:],
            }

            def before_insert() -> Dict:
                self.step_up.consume_step_up(db, organizer_id)
                if request.save_destination:
                    destination = self.registry.insert_secondary(db, organizer_id, details)
                    return {"bank_destination_id": destination.id}
                return {}

        fields = {"bank_details": masked}
        if request.bank_destination_id:
            fields["bank_destination_id"] = request.bank_destination_id

        withdrawal = self._create_and_deduct(
            db,
            event,
            earnings.currency,
            organizer_id,
            request.amount,
            WithdrawalMethod.bank,
            before_insert=before_insert,
            **fields,
        )
        return self._hand_off(db, withdrawal, event, dispatch_details)

    # ------------------------------------------------------------------ #
    # MonCash
    # ------------------------------------------------------------------ #

    def instant_moncash_allowed(self, profile: HaitiProfile) -> bool:
        return bool(
            self.prefunding_enabled and self.prefunding_available and profile.allow_instant_moncash
        )

    async def withdraw_moncash(
        self, db: Session, organizer_id: str, request: MoncashWithdrawalRequest
    ) -> WithdrawalOutcome:
        event, profile, earnings = self._preflight(
            db, organizer_id, request.event_id, request.amount, None
        )
        currency = earnings.currency

        if not self.instant_moncash_allowed(profile):
            withdrawal = self._create_and_deduct(
                db,
                event,
                currency,
                organizer_id,
                request.amount,
                WithdrawalMethod.moncash,
                moncash_number=request.moncash_number,
            )
            return self._hand_off(db, withdrawal, event)

        if currency != Currency.HTG.value:
            raise ValidationError(
                "Instant MonCash is only available for HTG withdrawals",
                code="INSTANT_CURRENCY_UNSUPPORTED",
            )
        return await self._withdraw_instant(db, event, organizer_id, request, currency)

    async def _withdraw_instant(
        self,
        db: Session,
        event: Event,
        organizer_id: str,
        request: MoncashWithdrawalRequest,
        currency: str,
    ) -> WithdrawalOutcome:
        split = self.calculator.instant_transfer_fee(request.amount)

        def reserve() -> WithdrawalRequest:
            earnings, held = self._lock_earnings(db, event)
            self._check_withdrawable(earnings, request.amount, held)
            withdrawal = WithdrawalRequest(
                organizer_id=organizer_id,
                event_id=event.id,
                amount=request.amount,
                currency=currency,
                method=WithdrawalMethod.moncash.value,
                status=WithdrawalStatus.pending.value,
                moncash_number=request.moncash_number,
                fee_cents=split.fee,
                payout_amount_cents=split.payout,
                prefunding_used=True,
                prefunding_fee_percent=split.fee_percent,
                ledger_deducted=False,
            )
            db.add(withdrawal)
            transition(withdrawal, WithdrawalStatus.processing)
            # Bump the version so a concurrent reservation sees this hold
            earnings.updated_at = utcnow()
            db.flush()
            return withdrawal

        withdrawal = run_in_transaction(db, reserve, label=f"reserve[{event.id}]")
        withdrawal_id = withdrawal.id

        try:
            result = await self.moncash_factory().transfer(
                amount_cents=split.payout,
                receiver=request.moncash_number,
                reference=withdrawal_id,
                description=f"Instant withdrawal ({event.id})",
            )
        except Exception as e:
            reason = str(e) or e.__class__.__name__
            logger.exception(f"Instant MonCash transfer failed for withdrawal {withdrawal_id}")
            self._fail_instant(db, withdrawal, reason)
            raise ExternalRailError(
                f"Instant MonCash transfer failed: {reason}",
                extra={"withdrawalId": withdrawal_id},
            )

        def settle() -> WithdrawalRequest:
            db.refresh(withdrawal)
            earnings, _ = self._lock_earnings(db, event)
            amount = withdrawal.amount
            if amount > earnings.available_to_withdraw:
                logger.error(
                    f"Withdrawal {withdrawal_id}: transferred {amount} but only "
                    f"{earnings.available_to_withdraw} available; clamping to 0"
                )
            earnings.available_to_withdraw = max(0, earnings.available_to_withdraw - amount)
            earnings.withdrawn_amount += amount
            withdrawal.ledger_deducted = True
            withdrawal.provider_transaction_id = result.transaction_id
            transition(withdrawal, WithdrawalStatus.completed)
            db.flush()
            return withdrawal

        withdrawal = run_in_transaction(db, settle, label=f"settle[{withdrawal_id}]")
        logger.info(
            f"Instant MonCash withdrawal {withdrawal_id} completed: gross={withdrawal.amount} "
            f"fee={withdrawal.fee_cents} payout={withdrawal.payout_amount_cents}"
        )
        return WithdrawalOutcome(withdrawal=withdrawal, instant=True)

    def _fail_instant(self, db: Session, withdrawal: WithdrawalRequest, reason: str) -> None:
        def work() -> None:
            db.refresh(withdrawal)
            transition(withdrawal, WithdrawalStatus.failed, failure_reason=reason)
            db.flush()

        run_in_transaction(db, work, label=f"fail[{withdrawal.id}]")


withdrawal_processor = WithdrawalProcessor()
