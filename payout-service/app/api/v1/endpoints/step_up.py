# app/api/v1/endpoints/step_up.py
"""
Email OTP step-up before payout detail changes.

A verified code opens a 15 minute window in which one bank destination
change or new-account withdrawal may be made.
"""
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.api import deps
from app.core.errors import ExternalRailError, ValidationError
from app.core.limiter import limiter
from app.models.organizer import Organizer
from app.schemas.step_up import SendCodeResponse, VerifyCodeRequest, VerifyCodeResponse
from app.schemas.token import TokenPayload
from app.services.payout.step_up import step_up_service
from app.utils.kafka_helpers import publish_step_up_code_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizer/payout-details-change", tags=["Payout Verification"])


@router.post("/send-code", response_model=SendCodeResponse)
@limiter.limit("5/minute")
def send_code(
    request: Request,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """Email a 6-digit code to the organizer's address on file."""
    organizer = db.get(Organizer, current_user.sub)
    email = (organizer.email if organizer else None) or current_user.email
    if not email:
        raise ValidationError("No email address on file", code="EMAIL_REQUIRED")

    code, expires_at = step_up_service.issue_code(db, current_user.sub, email)
    if not publish_step_up_code_email(current_user.sub, email, code, expires_at.isoformat()):
        step_up_service.cancel_code(db, current_user.sub)
        raise ExternalRailError(
            "Could not send the verification code, please try again",
            code="EMAIL_DELIVERY_FAILED",
        )
    return SendCodeResponse(expires_at=expires_at)


@router.post("/verify-code", response_model=VerifyCodeResponse)
def verify_code(
    body: VerifyCodeRequest,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    verified_until = step_up_service.verify_code(db, current_user.sub, body.code)
    logger.info(f"Payout change verified for organizer {current_user.sub}")
    return VerifyCodeResponse(verified_until=verified_until)
