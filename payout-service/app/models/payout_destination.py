# app/models/payout_destination.py
from sqlalchemy import Column, String, Boolean, Text, DateTime, func
from app.db.base_class import Base
import uuid


class PayoutDestination(Base):
    __tablename__ = "payout_destinations"

    id = Column(String, primary_key=True, default=lambda: f"dst_{uuid.uuid4().hex[:12]}")
    organizer_id = Column(String, nullable=False, index=True)
    bank_name = Column(String(200), nullable=False)
    account_holder = Column(String(200), nullable=False)
    account_number_last4 = Column(String(4), nullable=False)
    account_type = Column(String(32), nullable=True)
    # Fernet token holding account/routing/swift/iban
    encrypted_details = Column(Text, nullable=False)
    is_primary = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
