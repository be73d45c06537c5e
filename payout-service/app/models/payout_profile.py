# app/models/payout_profile.py
from sqlalchemy import (
    Column, String, Boolean, Text, DateTime, JSON, UniqueConstraint, func,
)
from app.db.base_class import Base
import uuid


class PayoutProfile(Base):
    """
    Rail-specific payout configuration for an organizer.

    `status` is never stored: it is derived by the profile resolver on
    every read. `verification_status` only holds fallback values used when
    no verification document exists.
    """

    __tablename__ = "payout_profiles"

    id = Column(String, primary_key=True, default=lambda: f"ppf_{uuid.uuid4().hex[:12]}")
    organizer_id = Column(String, nullable=False, index=True)
    rail = Column(String(32), nullable=False)

    # haiti rail
    method = Column(String(32), nullable=True)
    bank_details = Column(JSON, nullable=True)  # masked: bank_name, account_holder, last4
    encrypted_bank_details = Column(Text, nullable=True)
    mobile_money_details = Column(JSON, nullable=True)  # provider, phone_number, account_name
    allow_instant_moncash = Column(Boolean, nullable=False, default=False)
    on_hold = Column(Boolean, nullable=False, default=False)
    hold_reason = Column(Text, nullable=True)

    # card_gateway_connect rail
    connected_account_id = Column(String(255), nullable=True)
    details_submitted = Column(Boolean, nullable=False, default=False)
    charges_enabled = Column(Boolean, nullable=False, default=False)
    payouts_enabled = Column(Boolean, nullable=False, default=False)

    verification_status = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("organizer_id", "rail", name="uq_payout_profile_organizer_rail"),
    )


class LegacyPayoutConfig(Base):
    """Single pre-rail payout record, read only when no rail profile exists."""

    __tablename__ = "legacy_payout_configs"

    id = Column(String, primary_key=True, default=lambda: f"lpc_{uuid.uuid4().hex[:12]}")
    organizer_id = Column(String, nullable=False, unique=True, index=True)
    payout_provider = Column(String(64), nullable=True)
    account_location = Column(String(64), nullable=True)
    method = Column(String(32), nullable=True)
    bank_details = Column(JSON, nullable=True)
    encrypted_bank_details = Column(Text, nullable=True)
    mobile_money_details = Column(JSON, nullable=True)
    allow_instant_moncash = Column(Boolean, nullable=False, default=False)
    on_hold = Column(Boolean, nullable=False, default=False)
    connected_account_id = Column(String(255), nullable=True)
    verification_status = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
