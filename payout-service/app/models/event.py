# app/models/event.py
from sqlalchemy import Column, String, Boolean, DateTime, func
from app.db.base_class import Base
import uuid


class Event(Base):
    """Read model of an event, synced from the event service."""

    __tablename__ = "events"

    id = Column(String, primary_key=True, default=lambda: f"evt_{uuid.uuid4().hex[:12]}")
    organizer_id = Column(String, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    country = Column(String(64), nullable=True)
    currency = Column(String(3), nullable=False, default="HTG")
    start_datetime = Column(DateTime(timezone=True), nullable=True)
    end_datetime = Column(DateTime(timezone=True), nullable=True)
    is_paid = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
