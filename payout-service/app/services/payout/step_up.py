"""
Email OTP step-up for payout destination changes.

A verified code opens a short window during which exactly one sensitive
change may be made. Consumption is a conditional UPDATE executed inside
the caller's transaction, so a token cannot be spent twice and is left
intact when the surrounding change rolls back.
"""
import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ValidationError, VerificationRequiredError
from app.models.payout_change_verification import PayoutChangeVerification
from app.utils.datetime_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


def hash_code(salt: str, code: str) -> str:
    return hashlib.sha256(f"{salt}:{code}".encode("utf-8")).hexdigest()


def generate_code() -> str:
    return f"{secrets.randbelow(10 ** 6):06d}"


class StepUpService:
    def __init__(
        self,
        code_ttl: timedelta = timedelta(minutes=settings.STEP_UP_CODE_TTL_MINUTES),
        resend_cooldown: timedelta = timedelta(seconds=settings.STEP_UP_RESEND_COOLDOWN_SECONDS),
        verified_window: timedelta = timedelta(minutes=settings.STEP_UP_VERIFIED_WINDOW_MINUTES),
        max_attempts: int = settings.STEP_UP_MAX_ATTEMPTS,
    ):
        self.code_ttl = code_ttl
        self.resend_cooldown = resend_cooldown
        self.verified_window = verified_window
        self.max_attempts = max_attempts

    def issue_code(
        self,
        db: Session,
        organizer_id: str,
        sent_to: str,
        now: Optional[datetime] = None,
    ) -> Tuple[str, datetime]:
        """Create a fresh code. Returns (plaintext code, expiry)."""
        now = now or utcnow()
        row = db.get(PayoutChangeVerification, organizer_id)
        if row is None:
            row = PayoutChangeVerification(organizer_id=organizer_id, attempts=0)
            db.add(row)
        elif row.sent_at and now - ensure_utc(row.sent_at) < self.resend_cooldown:
            retry_after = self.resend_cooldown - (now - ensure_utc(row.sent_at))
            raise ValidationError(
                "Please wait before requesting another code",
                code="RESEND_COOLDOWN",
                extra={"retryAfterSeconds": max(1, int(retry_after.total_seconds()))},
            )

        code = generate_code()
        salt = secrets.token_hex(16)
        row.code_hash = hash_code(salt, code)
        row.salt = salt
        row.sent_to = sent_to
        row.sent_at = now
        expires_at = now + self.code_ttl
        row.expires_at = expires_at
        row.attempts = 0
        row.verified_until = None
        row.consumed_at = None
        db.commit()
        logger.info(f"Issued payout change verification code for organizer {organizer_id}")
        return code, expires_at

    def cancel_code(self, db: Session, organizer_id: str) -> None:
        """Drop an undelivered code so the organizer can request another at once."""
        row = db.get(PayoutChangeVerification, organizer_id)
        if row is None:
            return
        row.code_hash = None
        row.salt = None
        row.sent_at = None
        db.commit()

    def verify_code(
        self, db: Session, organizer_id: str, code: str, now: Optional[datetime] = None
    ) -> datetime:
        """Check a submitted code and open the step-up window."""
        now = now or utcnow()
        row = db.get(PayoutChangeVerification, organizer_id)
        if row is None or not row.code_hash:
            raise ValidationError("No verification code was requested", code="CODE_NOT_FOUND")
        if ensure_utc(row.expires_at) <= now:
            raise ValidationError("Verification code has expired", code="CODE_EXPIRED")
        if row.attempts >= self.max_attempts:
            raise ValidationError(
                "Too many incorrect attempts, request a new code", code="TOO_MANY_ATTEMPTS"
            )

        row.attempts += 1
        if not hmac.compare_digest(hash_code(row.salt, code), row.code_hash):
            db.commit()
            logger.warning(
                f"Incorrect verification code for organizer {organizer_id} "
                f"(attempt {row.attempts}/{self.max_attempts})"
            )
            raise ValidationError("Invalid verification code", code="INVALID_CODE")

        # Codes are single use; the window replaces them
        row.code_hash = None
        row.salt = None
        verified_until = now + self.verified_window
        row.verified_until = verified_until
        row.consumed_at = None
        db.commit()
        return verified_until

    def require_recent_step_up(
        self, db: Session, organizer_id: str, now: Optional[datetime] = None
    ) -> None:
        now = now or utcnow()
        row = db.get(PayoutChangeVerification, organizer_id)
        verified_until = ensure_utc(row.verified_until) if row else None
        if verified_until is None or verified_until <= now or row.consumed_at is not None:
            raise VerificationRequiredError(
                "Verify the code sent to your email before changing payout details"
            )

    def consume_step_up(
        self, db: Session, organizer_id: str, now: Optional[datetime] = None
    ) -> None:
        """
        Spend the step-up window inside the caller's transaction.

        Raises VerificationRequiredError if no unspent window exists.
        """
        now = now or utcnow()
        result = db.execute(
            update(PayoutChangeVerification)
            .where(
                PayoutChangeVerification.organizer_id == organizer_id,
                PayoutChangeVerification.verified_until > now,
                PayoutChangeVerification.consumed_at.is_(None),
            )
            .values(verified_until=None, consumed_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise VerificationRequiredError(
                "Verify the code sent to your email before changing payout details"
            )


step_up_service = StepUpService()
