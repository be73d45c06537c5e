# app/services/payout/withdrawal_state.py
from datetime import datetime
from typing import Optional

from app.core.errors import PayoutError
from app.models.withdrawal_request import WithdrawalRequest
from app.schemas.payout import WithdrawalStatus
from app.utils.datetime_utils import utcnow


class InvalidTransition(PayoutError):
    status_code = 409
    code = "INVALID_WITHDRAWAL_TRANSITION"


ALLOWED = {
    WithdrawalStatus.pending: {
        WithdrawalStatus.processing,
        WithdrawalStatus.completed,
        WithdrawalStatus.failed,
    },
    WithdrawalStatus.processing: {WithdrawalStatus.completed, WithdrawalStatus.failed},
    WithdrawalStatus.completed: set(),
    WithdrawalStatus.failed: set(),
}


def assert_transition(old: WithdrawalStatus, new: WithdrawalStatus) -> None:
    if new not in ALLOWED.get(old, set()):
        raise InvalidTransition(f"Illegal withdrawal transition: {old.value} -> {new.value}")


def transition(
    withdrawal: WithdrawalRequest,
    new: WithdrawalStatus,
    *,
    failure_reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> None:
    assert_transition(WithdrawalStatus(withdrawal.status), new)
    now = now or utcnow()
    withdrawal.status = new.value
    withdrawal.updated_at = now
    if new is WithdrawalStatus.completed:
        withdrawal.completed_at = now
    elif new is WithdrawalStatus.failed:
        withdrawal.failure_reason = failure_reason or "Unknown failure"
