# app/api/v1/endpoints/payout_destinations.py
"""
Saved bank accounts for Haiti-rail withdrawals.

Every mutation requires a recent payout-change verification (see
/organizer/payout-details-change) and spends it.
"""
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api import deps
from app.schemas.payout_destination import BankDestinationCreate, BankDestinationResponse
from app.schemas.payout import VerificationState
from app.schemas.token import TokenPayload
from app.services.payout.bank_destinations import DestinationView, bank_destination_registry

router = APIRouter(prefix="/organizer/payout-destinations/bank", tags=["Payout Destinations"])


def _to_response(view: DestinationView) -> BankDestinationResponse:
    destination = view.destination
    return BankDestinationResponse(
        id=destination.id,
        bank_name=destination.bank_name,
        account_holder=destination.account_holder,
        account_number_last4=destination.account_number_last4,
        account_type=destination.account_type,
        is_primary=destination.is_primary,
        verification_status=view.verification_status,
        created_at=destination.created_at,
    )


@router.get("", response_model=List[BankDestinationResponse])
def list_bank_destinations(
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """Saved bank accounts, primary first. Account numbers are masked."""
    views = bank_destination_registry.list_destinations(db, current_user.sub)
    return [_to_response(v) for v in views]


@router.post("", response_model=BankDestinationResponse, status_code=status.HTTP_201_CREATED)
def add_bank_destination(
    details: BankDestinationCreate,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """
    Save an additional bank account.

    The account holder must match the organizer's legal or organization
    name. New accounts start unverified until their document is reviewed.
    """
    destination = bank_destination_registry.add_destination(db, current_user.sub, details)
    return _to_response(
        bank_destination_registry.get_destination(db, current_user.sub, destination.id)
    )


@router.put("/primary", response_model=BankDestinationResponse)
def update_primary_bank_details(
    details: BankDestinationCreate,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """Replace the payout profile's bank account; the new account needs re-verification."""
    destination = bank_destination_registry.upsert_primary(db, current_user.sub, details)
    return _to_response(
        bank_destination_registry.get_destination(db, current_user.sub, destination.id)
    )


@router.post("/{destination_id}/primary", response_model=BankDestinationResponse)
def make_primary(
    destination_id: str,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """Use a verified saved account as the default withdrawal destination."""
    destination = bank_destination_registry.set_primary(db, current_user.sub, destination_id)
    return _to_response(DestinationView(destination, VerificationState.verified))


@router.delete("/{destination_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_bank_destination(
    destination_id: str,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    bank_destination_registry.remove_destination(db, current_user.sub, destination_id)
