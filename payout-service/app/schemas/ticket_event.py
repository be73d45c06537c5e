# app/schemas/ticket_event.py
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class TicketConfirmationEvent(BaseModel):
    """Payload published by the ticketing service when a ticket changes state."""

    ticket_id: str = Field(..., alias="ticketId")
    event_id: str = Field(..., alias="eventId")
    price_cents: int = Field(..., alias="priceCents", ge=0)
    currency: str = Field(default="HTG", max_length=3)
    status: str
    tier_id: Optional[str] = Field(default=None, alias="tierId")
    tier_name: Optional[str] = Field(default=None, alias="tierName")
    purchased_at: Optional[datetime] = Field(default=None, alias="purchasedAt")
    payment_method: Optional[str] = Field(default=None, alias="paymentMethod")
    payment_id: Optional[str] = Field(default=None, alias="paymentId")

    model_config = {"populate_by_name": True}
