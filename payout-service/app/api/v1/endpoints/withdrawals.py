# app/api/v1/endpoints/withdrawals.py
"""
Organizer withdrawals on the Haiti rail.

Both endpoints are rail-exclusive: organizers whose events settle through
the card gateway get a 400 and are paid out by the gateway instead.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app import crud
from app.api import deps
from app.schemas.payout import (
    BankWithdrawalRequest,
    MoncashWithdrawalRequest,
    WithdrawalResponse,
    WithdrawalResult,
)
from app.schemas.token import TokenPayload
from app.services.payout.withdrawal_processor import WithdrawalOutcome, withdrawal_processor

router = APIRouter(prefix="/organizer", tags=["Withdrawals"])


def _result(outcome: WithdrawalOutcome) -> WithdrawalResult:
    withdrawal = outcome.withdrawal
    return WithdrawalResult(
        withdrawal_id=withdrawal.id,
        status=withdrawal.status,
        instant=outcome.instant,
        fee_cents=withdrawal.fee_cents,
        payout_amount_cents=withdrawal.payout_amount_cents,
    )


@router.post("/withdraw-bank", response_model=WithdrawalResult)
def withdraw_to_bank(
    request: BankWithdrawalRequest,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """
    Withdraw available earnings to a bank account.

    Pass either a saved, verified `bankDestinationId`, or new `bankDetails`
    (requires a recent payout-change verification). The request is handed
    to finance for manual disbursement.
    """
    outcome = withdrawal_processor.withdraw_bank(db, current_user.sub, request)
    return _result(outcome)


@router.post("/withdraw-moncash", response_model=WithdrawalResult)
async def withdraw_to_moncash(
    request: MoncashWithdrawalRequest,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """
    Withdraw available earnings to a MonCash wallet.

    Runs instantly (with a prefunding fee) when the platform float is
    available and the organizer opted in, otherwise queues a manual payout.
    """
    outcome = await withdrawal_processor.withdraw_moncash(db, current_user.sub, request)
    return _result(outcome)


@router.get("/withdrawals", response_model=List[WithdrawalResponse])
def list_withdrawals(
    event_id: Optional[str] = Query(default=None, alias="eventId"),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """List the organizer's withdrawal requests, newest first."""
    return crud.withdrawal_request.get_multi_by_organizer(
        db, organizer_id=current_user.sub, event_id=event_id, skip=skip, limit=limit
    )
