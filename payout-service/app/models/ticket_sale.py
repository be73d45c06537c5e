# app/models/ticket_sale.py
from sqlalchemy import Column, String, Integer, DateTime, Index, func
from app.db.base_class import Base


class TicketSale(Base):
    """
    Local projection of ticket confirmation events.

    The primary key is the ticket id from the ticketing service so replays
    of the same event overwrite instead of duplicating.
    """

    __tablename__ = "ticket_sales"

    id = Column(String, primary_key=True)
    event_id = Column(String, nullable=False, index=True)
    tier_id = Column(String, nullable=True)
    tier_name = Column(String(255), nullable=True)
    price_cents = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="HTG")
    status = Column(String(32), nullable=False)
    purchased_at = Column(DateTime(timezone=True), nullable=True)
    payment_method = Column(String(64), nullable=True)
    payment_id = Column(String(255), nullable=True)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_ticket_sales_event_purchased", "event_id", "purchased_at", "id"),
    )
