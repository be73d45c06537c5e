# app/models/payout_change_verification.py
from sqlalchemy import Column, String, Integer, DateTime, func
from app.db.base_class import Base


class PayoutChangeVerification(Base):
    """Email OTP state for step-up before payout destination changes."""

    __tablename__ = "payout_change_verifications"

    organizer_id = Column(String, primary_key=True)
    code_hash = Column(String(64), nullable=True)
    salt = Column(String(64), nullable=True)
    sent_to = Column(String(255), nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    verified_until = Column(DateTime(timezone=True), nullable=True)
    consumed_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
