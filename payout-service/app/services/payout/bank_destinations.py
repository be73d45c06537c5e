"""
Bank destinations for Haiti-rail payouts.

One primary destination mirrors the bank details on the organizer's Haiti
profile; any number of secondaries can be added after an email step-up.
Account holders must match one of the organizer's own names so a
compromised session cannot redirect payouts to a third party.
"""
import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from app import crud
from app.core.encryption import EncryptedBlob, get_encryption_key, mask_last4
from app.core.errors import AuthorizationError, NotFoundError, ValidationError
from app.models.organizer import Organizer
from app.models.payout_destination import PayoutDestination
from app.models.payout_profile import PayoutProfile
from app.models.verification_document import VerificationDocument
from app.schemas.payout import (
    BankDetailsIn,
    PayoutMethod,
    PayoutProfileStatus,
    PayoutRail,
    VerificationState,
)
from app.services.payout.profile_resolver import get_profile, parse_state
from app.services.payout.step_up import StepUpService, step_up_service

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def primary_destination_id(organizer_id: str) -> str:
    return f"bank_primary_{organizer_id}"


def normalize_name(value: Optional[str]) -> str:
    value = _NON_ALNUM.sub(" ", (value or "").lower())
    return _WHITESPACE.sub(" ", value).strip()


def name_matches_organizer(account_holder: str, organizer_names: Iterable[Optional[str]]) -> bool:
    holder = normalize_name(account_holder)
    if not holder:
        return False
    for candidate in (normalize_name(n) for n in organizer_names):
        if not candidate:
            continue
        if holder == candidate or candidate in holder or holder in candidate:
            return True
    return False


def organizer_names(organizer: Optional[Organizer]) -> List[str]:
    if organizer is None:
        return []
    return [
        n for n in (organizer.legal_name, organizer.display_name, organizer.organization_name) if n
    ]


def sealed_details(details: BankDetailsIn, key: bytes) -> EncryptedBlob:
    return EncryptedBlob.seal(
        {
            "account_number": details.account_number,
            "routing_number": details.routing_number,
            "swift_code": details.swift_code,
            "iban": details.iban,
        },
        key,
    )


def masked_details(details: BankDetailsIn) -> Dict[str, Optional[str]]:
    return {
        "bank_name": details.bank_name,
        "account_holder": details.account_holder,
        "account_number_last4": mask_last4(details.account_number),
        "account_type": details.account_type,
    }


@dataclass(frozen=True)
class DestinationView:
    destination: PayoutDestination
    verification_status: VerificationState


class BankDestinationRegistry:
    def __init__(
        self,
        step_up: StepUpService = step_up_service,
        key_provider: Callable[[], bytes] = get_encryption_key,
    ):
        self.step_up = step_up
        self.key_provider = key_provider

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    @staticmethod
    def verification_for(
        documents: Dict[str, str], destination: PayoutDestination
    ) -> VerificationState:
        """
        Each destination has its own document. Only the profile-mirrored
        primary falls back to the organizer's `bank` review; a promoted
        secondary keeps its own.
        """
        status = documents.get(f"bank_{destination.id}")
        if status is None and destination.id == primary_destination_id(destination.organizer_id):
            status = documents.get("bank")
        return parse_state(status)

    def list_destinations(self, db: Session, organizer_id: str) -> List[DestinationView]:
        documents = crud.verification_document.get_status_map(db, organizer_id=organizer_id)
        return [
            DestinationView(d, self.verification_for(documents, d))
            for d in crud.payout_destination.get_multi_by_organizer(db, organizer_id=organizer_id)
        ]

    def get_destination(
        self, db: Session, organizer_id: str, destination_id: str
    ) -> DestinationView:
        destination = crud.payout_destination.get_for_organizer(
            db, organizer_id=organizer_id, destination_id=destination_id
        )
        if destination is None:
            raise NotFoundError("Bank destination not found")
        documents = crud.verification_document.get_status_map(db, organizer_id=organizer_id)
        return DestinationView(destination, self.verification_for(documents, destination))

    def get_decrypted(
        self,
        db: Session,
        organizer_id: str,
        destination_id: str,
        key: Optional[bytes] = None,
    ) -> Dict[str, Optional[str]]:
        """Full bank details for dispatch. Never returned to clients."""
        view = self.get_destination(db, organizer_id, destination_id)
        secret = EncryptedBlob(view.destination.encrypted_details).decrypt(
            key or self.key_provider()
        )
        return {
            "bank_name": view.destination.bank_name,
            "account_holder": view.destination.account_holder,
            **secret,
        }

    # ------------------------------------------------------------------ #
    # Validation shared with the withdrawal processor
    # ------------------------------------------------------------------ #

    def assert_can_add(self, db: Session, organizer_id: str, details: BankDetailsIn) -> None:
        profile = get_profile(db, organizer_id, PayoutRail.haiti)
        if profile is None or profile.status is not PayoutProfileStatus.active:
            raise AuthorizationError(
                "An active Haiti payout profile is required to add bank accounts",
                code="PAYOUT_PROFILE_NOT_ACTIVE",
            )
        organizer = db.get(Organizer, organizer_id)
        if not name_matches_organizer(details.account_holder, organizer_names(organizer)):
            logger.warning(f"Account holder name mismatch for organizer {organizer_id}")
            raise ValidationError(
                "The bank account holder name must match your organizer legal "
                "or organization name",
                code="ACCOUNT_HOLDER_MISMATCH",
            )

    def insert_secondary(
        self, db: Session, organizer_id: str, details: BankDetailsIn
    ) -> PayoutDestination:
        """
        Insert inside the caller's transaction (step-up already consumed).

        New accounts are never primary and start unreviewed.
        """
        destination = PayoutDestination(
            organizer_id=organizer_id,
            bank_name=details.bank_name,
            account_holder=details.account_holder,
            account_number_last4=mask_last4(details.account_number),
            account_type=details.account_type,
            encrypted_details=sealed_details(details, self.key_provider()).token,
            is_primary=False,
        )
        db.add(destination)
        db.flush()
        return destination

    # ------------------------------------------------------------------ #
    # Step-up gated mutations
    # ------------------------------------------------------------------ #

    def add_destination(
        self, db: Session, organizer_id: str, details: BankDetailsIn
    ) -> PayoutDestination:
        self.step_up.require_recent_step_up(db, organizer_id)
        self.assert_can_add(db, organizer_id, details)
        try:
            self.step_up.consume_step_up(db, organizer_id)
            destination = self.insert_secondary(db, organizer_id, details)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info(f"Added bank destination {destination.id} for organizer {organizer_id}")
        return destination

    def upsert_primary(
        self, db: Session, organizer_id: str, details: BankDetailsIn
    ) -> PayoutDestination:
        """
        Set the Haiti profile's bank details and mirror them as the primary destination.

        Changing the account number puts the organizer's `bank` review back
        to pending, so the new account is reviewed before it receives money.
        """
        self.step_up.require_recent_step_up(db, organizer_id)
        organizer = db.get(Organizer, organizer_id)
        if not name_matches_organizer(details.account_holder, organizer_names(organizer)):
            raise ValidationError(
                "The bank account holder name must match your organizer legal "
                "or organization name",
                code="ACCOUNT_HOLDER_MISMATCH",
            )

        key = self.key_provider()
        sealed = sealed_details(details, key).token
        try:
            self.step_up.consume_step_up(db, organizer_id)

            profile = crud.payout_profile.get_by_rail(
                db, organizer_id=organizer_id, rail=PayoutRail.haiti.value
            )
            previous = self._current_primary_account(db, organizer_id, profile, key)
            if previous != details.account_number:
                self._reopen_bank_review(db, organizer_id)
            if profile is None:
                profile = PayoutProfile(organizer_id=organizer_id, rail=PayoutRail.haiti.value)
                db.add(profile)
            profile.method = PayoutMethod.bank_transfer.value
            profile.bank_details = masked_details(details)
            profile.encrypted_bank_details = sealed

            for current in crud.payout_destination.get_multi_by_organizer(
                db, organizer_id=organizer_id
            ):
                if current.is_primary and current.id != primary_destination_id(organizer_id):
                    current.is_primary = False

            destination = db.get(PayoutDestination, primary_destination_id(organizer_id))
            if destination is None:
                destination = PayoutDestination(
                    id=primary_destination_id(organizer_id), organizer_id=organizer_id
                )
                db.add(destination)
            destination.bank_name = details.bank_name
            destination.account_holder = details.account_holder
            destination.account_number_last4 = mask_last4(details.account_number)
            destination.account_type = details.account_type
            destination.encrypted_details = sealed
            destination.is_primary = True
            db.flush()
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info(f"Updated primary bank destination for organizer {organizer_id}")
        return destination

    @staticmethod
    def _current_primary_account(
        db: Session, organizer_id: str, profile: Optional[PayoutProfile], key: bytes
    ) -> Optional[str]:
        token = profile.encrypted_bank_details if profile is not None else None
        if token is None:
            destination = db.get(PayoutDestination, primary_destination_id(organizer_id))
            token = destination.encrypted_details if destination is not None else None
        if not token:
            return None
        return EncryptedBlob(token).decrypt(key).get("account_number")

    @staticmethod
    def _reopen_bank_review(db: Session, organizer_id: str) -> None:
        document = crud.verification_document.get_by_type(
            db, organizer_id=organizer_id, doc_type="bank"
        )
        if document is None:
            document = VerificationDocument(organizer_id=organizer_id, doc_type="bank")
            db.add(document)
        document.status = VerificationState.pending.value
        document.reviewed_at = None
        logger.info(f"Primary bank account changed for {organizer_id}; review reopened")

    def set_primary(self, db: Session, organizer_id: str, destination_id: str) -> PayoutDestination:
        self.step_up.require_recent_step_up(db, organizer_id)
        view = self.get_destination(db, organizer_id, destination_id)
        if view.verification_status is not VerificationState.verified:
            raise AuthorizationError(
                "Only verified bank accounts can become primary",
                code="DESTINATION_NOT_VERIFIED",
            )
        try:
            self.step_up.consume_step_up(db, organizer_id)
            for current in crud.payout_destination.get_multi_by_organizer(
                db, organizer_id=organizer_id
            ):
                current.is_primary = current.id == destination_id
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info(f"Primary bank destination for {organizer_id} is now {destination_id}")
        return view.destination

    def remove_destination(self, db: Session, organizer_id: str, destination_id: str) -> None:
        self.step_up.require_recent_step_up(db, organizer_id)
        view = self.get_destination(db, organizer_id, destination_id)
        if view.destination.is_primary:
            raise ValidationError(
                "The primary bank account cannot be removed", code="PRIMARY_DESTINATION"
            )
        try:
            self.step_up.consume_step_up(db, organizer_id)
            crud.payout_destination.remove(db, db_obj=view.destination)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info(f"Removed bank destination {destination_id} for organizer {organizer_id}")


bank_destination_registry = BankDestinationRegistry()
