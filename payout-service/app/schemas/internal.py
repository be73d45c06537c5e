from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from app.schemas.payout import Currency


# --- Read-model sync from the event and user services ---
class EventSync(BaseModel):
    organizer_id: str = Field(..., alias="organizerId")
    title: str = Field(..., min_length=1, max_length=255)
    country: Optional[str] = Field(default=None, max_length=64)
    currency: Optional[Currency] = None
    start_datetime: Optional[datetime] = Field(default=None, alias="startDatetime")
    end_datetime: Optional[datetime] = Field(default=None, alias="endDatetime")
    is_paid: bool = Field(default=True, alias="isPaid")

    model_config = {"populate_by_name": True}


class OrganizerSync(BaseModel):
    email: Optional[str] = Field(default=None, max_length=255)
    display_name: Optional[str] = Field(default=None, alias="displayName")
    legal_name: Optional[str] = Field(default=None, alias="legalName")
    organization_name: Optional[str] = Field(default=None, alias="organizationName")
    identity_status: Optional[str] = Field(default=None, alias="identityStatus")

    model_config = {"populate_by_name": True}


class TicketConfirmationAck(BaseModel):
    event_id: str = Field(alias="eventId")
    net_amount: int = Field(alias="netAmount")
    available_to_withdraw: int = Field(alias="availableToWithdraw")

    model_config = {"populate_by_name": True}
