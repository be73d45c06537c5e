# app/models/withdrawal_request.py
from sqlalchemy import (
    Column, String, Integer, Boolean, Text, DateTime, JSON, Numeric, Index, CheckConstraint, func,
)
from sqlalchemy.orm import validates
from app.db.base_class import Base
import uuid


class WithdrawalRequest(Base):
    __tablename__ = "withdrawal_requests"

    id = Column(String, primary_key=True, default=lambda: f"wdr_{uuid.uuid4().hex[:12]}")
    organizer_id = Column(String, nullable=False, index=True)
    event_id = Column(String, nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)
    method = Column(String(16), nullable=False)
    status = Column(String(16), nullable=False, default="pending")

    # Instant rail split
    fee_cents = Column(Integer, nullable=True)
    payout_amount_cents = Column(Integer, nullable=True)
    prefunding_used = Column(Boolean, nullable=False, default=False)
    prefunding_fee_percent = Column(Numeric(6, 4), nullable=True)

    bank_destination_id = Column(String, nullable=True)
    bank_details = Column(JSON, nullable=True)  # masked copy for display
    moncash_number = Column(String(32), nullable=True)
    provider_transaction_id = Column(String(255), nullable=True)
    failure_reason = Column(Text, nullable=True)

    # True while this request's amount is subtracted from the ledger
    ledger_deducted = Column(Boolean, nullable=False, default=False)
    handed_off_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_withdrawal_requests_event_status", "event_id", "status"),
        CheckConstraint("amount > 0", name="check_withdrawal_amount_positive"),
    )

    @validates("amount")
    def _amount_is_immutable(self, key, value):
        if self.amount is not None and value != self.amount:
            raise ValueError("Withdrawal amount cannot change once created")
        return value
