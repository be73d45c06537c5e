"""
Payout profile resolution.

An organizer's payout rail follows from the country of the event being
paid out: US/CA events settle through the card gateway's connected
accounts, everything else through the Haiti rail (manual bank transfer or
MonCash). Profiles are loaded per rail, falling back to the legacy single
payout record. Status is always derived here, never read from storage.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from sqlalchemy.orm import Session

from app import crud
from app.core.errors import VerificationRequiredError
from app.models.event import Event
from app.models.organizer import Organizer
from app.schemas.payout import (
    PayoutMethod,
    PayoutProfileStatus,
    PayoutRail,
    VerificationState,
)

logger = logging.getLogger(__name__)

CARD_GATEWAY_COUNTRIES = {"US", "CA"}

_COUNTRY_ALIASES = {
    "USA": "US",
    "UNITED STATES": "US",
    "UNITED STATES OF AMERICA": "US",
    "UNITED_STATES": "US",
    "CANADA": "CA",
    "HAITI": "HT",
    "HAÏTI": "HT",
    "AYITI": "HT",
}

_CARD_GATEWAY_PROVIDERS = {"stripe_connect", "card_gateway_connect"}
_CARD_GATEWAY_LOCATIONS = {"united_states", "canada", "us", "ca"}


@dataclass(frozen=True)
class VerificationTriad:
    identity: VerificationState
    bank: VerificationState
    phone: VerificationState


@dataclass(frozen=True)
class HaitiProfile:
    organizer_id: str
    method: Optional[PayoutMethod]
    verification: VerificationTriad
    status: PayoutProfileStatus
    bank_name: Optional[str] = None
    account_holder: Optional[str] = None
    bank_account_last4: Optional[str] = None
    encrypted_bank_details: Optional[str] = None
    mobile_number: Optional[str] = None
    allow_instant_moncash: bool = False
    on_hold: bool = False
    from_legacy: bool = False
    rail: PayoutRail = field(default=PayoutRail.haiti, init=False)


@dataclass(frozen=True)
class CardGatewayProfile:
    organizer_id: str
    connected_account_id: Optional[str]
    verification: VerificationTriad
    status: PayoutProfileStatus
    details_submitted: bool = False
    charges_enabled: bool = False
    payouts_enabled: bool = False
    from_legacy: bool = False
    rail: PayoutRail = field(default=PayoutRail.card_gateway_connect, init=False)


PayoutProfileView = Union[HaitiProfile, CardGatewayProfile]


def normalize_country(country: Optional[str]) -> Optional[str]:
    if not country:
        return None
    value = country.strip().upper()
    return _COUNTRY_ALIASES.get(value, value)


def required_rail_for_country(country: Optional[str]) -> PayoutRail:
    if normalize_country(country) in CARD_GATEWAY_COUNTRIES:
        return PayoutRail.card_gateway_connect
    return PayoutRail.haiti


def legacy_rail(legacy) -> PayoutRail:
    provider = (legacy.payout_provider or "").lower()
    location = (legacy.account_location or "").lower()
    if provider in _CARD_GATEWAY_PROVIDERS or location in _CARD_GATEWAY_LOCATIONS:
        return PayoutRail.card_gateway_connect
    return PayoutRail.haiti


def parse_state(value: Optional[str]) -> VerificationState:
    """Map a stored status string onto the tri-state; unknown means absent."""
    if not value:
        return VerificationState.absent
    value = str(value).lower()
    if value in ("verified", "approved"):
        return VerificationState.verified
    if value in ("failed", "rejected"):
        return VerificationState.failed
    if value in ("pending", "in_review", "submitted"):
        return VerificationState.pending
    return VerificationState.absent


def _most_specific(*candidates: Optional[str]) -> VerificationState:
    for candidate in candidates:
        state = parse_state(candidate)
        if state is not VerificationState.absent:
            return state
    return VerificationState.absent


def compute_verification(
    documents: Dict[str, str],
    organizer: Optional[Organizer],
    stored: Optional[Dict[str, str]],
) -> VerificationTriad:
    """
    Build the identity/bank/phone triad.

    Each field takes the first record that exists, in order: review
    document, organizer identity status (identity only), stored profile
    value. With no record at all the field is `absent`, not `pending`.
    """
    stored = stored or {}
    identity_status = organizer.identity_status if organizer else None
    return VerificationTriad(
        identity=_most_specific(
            documents.get("identity"), identity_status, stored.get("identity")
        ),
        bank=_most_specific(documents.get("bank"), stored.get("bank")),
        phone=_most_specific(documents.get("phone"), stored.get("phone")),
    )


def derive_haiti_status(
    method: Optional[PayoutMethod],
    has_details: bool,
    on_hold: bool,
    verification: VerificationTriad,
) -> PayoutProfileStatus:
    if method is None or not has_details:
        return PayoutProfileStatus.not_setup
    if on_hold:
        return PayoutProfileStatus.on_hold
    if verification.identity is not VerificationState.verified:
        return PayoutProfileStatus.pending_verification
    if method is PayoutMethod.bank_transfer and verification.bank is not VerificationState.verified:
        return PayoutProfileStatus.pending_verification
    if method is PayoutMethod.mobile_money and verification.phone is not VerificationState.verified:
        return PayoutProfileStatus.pending_verification
    return PayoutProfileStatus.active


def derive_card_gateway_status(
    connected_account_id: Optional[str],
    on_hold: bool,
    details_submitted: bool,
    charges_enabled: bool,
    payouts_enabled: bool,
) -> PayoutProfileStatus:
    if not connected_account_id:
        return PayoutProfileStatus.not_setup
    if on_hold:
        return PayoutProfileStatus.on_hold
    if details_submitted and charges_enabled and payouts_enabled:
        return PayoutProfileStatus.active
    return PayoutProfileStatus.pending_verification


def _parse_method(value: Optional[str]) -> Optional[PayoutMethod]:
    try:
        return PayoutMethod(value) if value else None
    except ValueError:
        logger.warning(f"Ignoring unknown payout method {value!r}")
        return None


def _build_profile(
    rail: PayoutRail,
    record,
    organizer_id: str,
    verification: VerificationTriad,
    from_legacy: bool,
) -> PayoutProfileView:
    if rail is PayoutRail.haiti:
        method = _parse_method(record.method)
        bank = record.bank_details or {}
        mobile = record.mobile_money_details or {}
        if method is PayoutMethod.bank_transfer:
            has_details = bool(bank)
        elif method is PayoutMethod.mobile_money:
            has_details = bool(mobile.get("phone_number"))
        else:
            has_details = False
        return HaitiProfile(
            organizer_id=organizer_id,
            method=method,
            verification=verification,
            status=derive_haiti_status(method, has_details, record.on_hold, verification),
            bank_name=bank.get("bank_name"),
            account_holder=bank.get("account_holder"),
            bank_account_last4=bank.get("account_number_last4"),
            encrypted_bank_details=record.encrypted_bank_details,
            mobile_number=mobile.get("phone_number"),
            allow_instant_moncash=bool(record.allow_instant_moncash),
            on_hold=bool(record.on_hold),
            from_legacy=from_legacy,
        )
    elif rail is PayoutRail.card_gateway_connect:
        details_submitted = bool(getattr(record, "details_submitted", False))
        charges_enabled = bool(getattr(record, "charges_enabled", False))
        payouts_enabled = bool(getattr(record, "payouts_enabled", False))
        return CardGatewayProfile(
            organizer_id=organizer_id,
            connected_account_id=record.connected_account_id,
            verification=verification,
            status=derive_card_gateway_status(
                record.connected_account_id,
                bool(record.on_hold),
                details_submitted,
                charges_enabled,
                payouts_enabled,
            ),
            details_submitted=details_submitted,
            charges_enabled=charges_enabled,
            payouts_enabled=payouts_enabled,
            from_legacy=from_legacy,
        )
    raise ValueError(f"Unknown payout rail {rail!r}")


def get_profile(db: Session, organizer_id: str, rail: PayoutRail) -> Optional[PayoutProfileView]:
    """Load the organizer's profile for `rail`, or None when nothing is configured."""
    record = crud.payout_profile.get_by_rail(db, organizer_id=organizer_id, rail=rail.value)
    from_legacy = False
    if record is None:
        legacy = crud.payout_profile.get_legacy(db, organizer_id=organizer_id)
        if legacy is None or legacy_rail(legacy) is not rail:
            return None
        record = legacy
        from_legacy = True

    documents = crud.verification_document.get_status_map(db, organizer_id=organizer_id)
    organizer = db.get(Organizer, organizer_id)
    verification = compute_verification(documents, organizer, record.verification_status)
    return _build_profile(rail, record, organizer_id, verification, from_legacy)


def resolve_rail(db: Session, organizer_id: str, event: Optional[Event] = None) -> PayoutRail:
    """
    The organizer's rail for a payout.

    The event's country decides when it is known. Without a country the
    configured profiles decide, preferring a card-gateway setup only when
    no Haiti profile exists.
    """
    if event is not None and event.country:
        return required_rail_for_country(event.country)
    if get_profile(db, organizer_id, PayoutRail.haiti) is not None:
        return PayoutRail.haiti
    if get_profile(db, organizer_id, PayoutRail.card_gateway_connect) is not None:
        return PayoutRail.card_gateway_connect
    return PayoutRail.haiti


@dataclass
class PublishEligibilityResult:
    eligible: bool
    rail: PayoutRail
    reasons: List[str] = field(default_factory=list)


async def check_publish_eligibility(
    db: Session,
    organizer_id: str,
    event: Event,
    connect_service=None,
) -> PublishEligibilityResult:
    """
    Server-side gate run when a paid event is published.

    Requires verified identity plus either an active Haiti bank profile or
    a fully onboarded card-gateway account (live status from the gateway).
    """
    rail = required_rail_for_country(event.country)
    result = PublishEligibilityResult(eligible=True, rail=rail)
    if not event.is_paid:
        return result

    profile = get_profile(db, organizer_id, rail)
    if profile is None:
        documents = crud.verification_document.get_status_map(db, organizer_id=organizer_id)
        organizer = db.get(Organizer, organizer_id)
        verification = compute_verification(documents, organizer, None)
    else:
        verification = profile.verification

    if verification.identity is not VerificationState.verified:
        result.reasons.append("IDENTITY_NOT_VERIFIED")

    if rail is PayoutRail.haiti:
        if profile is None:
            result.reasons.append("PAYOUT_PROFILE_MISSING")
        elif profile.method is not PayoutMethod.bank_transfer:
            result.reasons.append("BANK_PROFILE_REQUIRED")
        elif profile.status is not PayoutProfileStatus.active:
            result.reasons.append("BANK_PROFILE_NOT_ACTIVE")
    elif rail is PayoutRail.card_gateway_connect:
        if profile is None or not profile.connected_account_id:
            result.reasons.append("CONNECTED_ACCOUNT_MISSING")
        else:
            if connect_service is None:
                from app.services.payout.stripe_connect_service import StripeConnectService

                connect_service = StripeConnectService()
            status = await connect_service.get_account_status(organizer_id, db)
            if not status["details_submitted"]:
                result.reasons.append("CONNECTED_ACCOUNT_DETAILS_MISSING")
            if not status["charges_enabled"]:
                result.reasons.append("CONNECTED_ACCOUNT_CHARGES_DISABLED")
            if not status["payouts_enabled"]:
                result.reasons.append("CONNECTED_ACCOUNT_PAYOUTS_DISABLED")

    result.eligible = not result.reasons
    if not result.eligible:
        logger.info(
            f"Publish blocked for organizer {organizer_id} event {event.id}: {result.reasons}"
        )
    return result


async def assert_can_publish(
    db: Session,
    organizer_id: str,
    event: Event,
    connect_service=None,
) -> PublishEligibilityResult:
    """Raise VerificationRequiredError naming the first blocker, if any."""
    result = await check_publish_eligibility(db, organizer_id, event, connect_service)
    if not result.eligible:
        error = VerificationRequiredError(
            "Payout setup is incomplete for publishing a paid event",
            code=result.reasons[0],
        )
        error.extra["reasons"] = result.reasons
        raise error
    return result
