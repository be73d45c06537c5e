# app/models/event_earnings.py
from sqlalchemy import Column, String, Integer, Boolean, Text, DateTime, CheckConstraint, func
from app.db.base_class import Base
import uuid


class EventEarnings(Base):
    """
    Per-event earnings aggregate.

    `version` is checked on every UPDATE; a concurrent writer that loaded
    an older version gets StaleDataError and must retry its unit of work.
    """

    __tablename__ = "event_earnings"

    id = Column(String, primary_key=True, default=lambda: f"ern_{uuid.uuid4().hex[:12]}")
    event_id = Column(String, nullable=False, unique=True, index=True)
    organizer_id = Column(String, nullable=False, index=True)

    gross_sales = Column(Integer, nullable=False, default=0)
    tickets_sold = Column(Integer, nullable=False, default=0)
    platform_fee = Column(Integer, nullable=False, default=0)
    processing_fees = Column(Integer, nullable=False, default=0)
    net_amount = Column(Integer, nullable=False, default=0)
    available_to_withdraw = Column(Integer, nullable=False, default=0)
    withdrawn_amount = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="HTG")

    # Cached value of the derived settlement status
    settlement_status = Column(String(16), nullable=False, default="pending")
    settlement_ready_date = Column(DateTime(timezone=True), nullable=True)
    admin_locked = Column(Boolean, nullable=False, default=False)
    locked_reason = Column(Text, nullable=True)
    locked_by = Column(String, nullable=True)
    locked_at = Column(DateTime(timezone=True), nullable=True)

    last_calculated_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint("available_to_withdraw >= 0", name="check_available_non_negative"),
        CheckConstraint("withdrawn_amount >= 0", name="check_withdrawn_non_negative"),
    )

    __mapper_args__ = {"version_id_col": version}
