# app/api/v1/endpoints/payout_profiles.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app import crud
from app.api import deps
from app.core.encryption import mask_last4
from app.core.errors import AuthorizationError, NotFoundError
from app.models.organizer import Organizer
from app.schemas.payout import (
    PayoutProfileResponse,
    PayoutProfileStatus,
    PayoutRail,
    PublishEligibility,
    VerificationTriad as VerificationTriadSchema,
)
from app.schemas.token import TokenPayload
from app.services.payout.profile_resolver import (
    HaitiProfile,
    PayoutProfileView,
    check_publish_eligibility,
    compute_verification,
    get_profile,
)

router = APIRouter(prefix="/organizer", tags=["Payout Profiles"])


def _triad(verification) -> VerificationTriadSchema:
    return VerificationTriadSchema(
        identity=verification.identity,
        bank=verification.bank,
        phone=verification.phone,
    )


def _to_response(profile: PayoutProfileView) -> PayoutProfileResponse:
    if isinstance(profile, HaitiProfile):
        return PayoutProfileResponse(
            rail=profile.rail,
            status=profile.status,
            method=profile.method,
            verification=_triad(profile.verification),
            bank_account_last4=profile.bank_account_last4,
            mobile_number_last4=mask_last4(profile.mobile_number) if profile.mobile_number else None,
            allow_instant_moncash=profile.allow_instant_moncash,
        )
    return PayoutProfileResponse(
        rail=profile.rail,
        status=profile.status,
        verification=_triad(profile.verification),
        details_submitted=profile.details_submitted,
        charges_enabled=profile.charges_enabled,
        payouts_enabled=profile.payouts_enabled,
    )


@router.get("/payout-profiles/{rail}", response_model=PayoutProfileResponse)
def get_payout_profile(
    rail: PayoutRail,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """
    The organizer's payout profile on one rail.

    Status is derived on every read from the stored method, details, hold
    flag and verification documents.
    """
    profile = get_profile(db, current_user.sub, rail)
    if profile is not None:
        return _to_response(profile)

    documents = crud.verification_document.get_status_map(db, organizer_id=current_user.sub)
    organizer = db.get(Organizer, current_user.sub)
    return PayoutProfileResponse(
        rail=rail,
        status=PayoutProfileStatus.not_setup,
        verification=_triad(compute_verification(documents, organizer, None)),
    )


@router.get("/events/{event_id}/publish-eligibility", response_model=PublishEligibility)
async def get_publish_eligibility(
    event_id: str,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """Whether the event could be published now, with blocking reasons."""
    event = crud.event.get(db, event_id)
    if event is None:
        raise NotFoundError("Event not found")
    if event.organizer_id != current_user.sub:
        raise AuthorizationError("Not authorized for this event")
    result = await check_publish_eligibility(db, current_user.sub, event)
    return PublishEligibility(eligible=result.eligible, rail=result.rail, reasons=result.reasons)
