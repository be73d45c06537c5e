# app/schemas/payout_destination.py
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from app.schemas.payout import BankDetailsIn, VerificationState


class BankDestinationCreate(BankDetailsIn):
    pass


class BankDestinationResponse(BaseModel):
    id: str
    bank_name: str = Field(alias="bankName")
    account_holder: str = Field(alias="accountHolder")
    account_number_last4: str = Field(alias="accountNumberLast4")
    account_type: Optional[str] = Field(default=None, alias="accountType")
    is_primary: bool = Field(alias="isPrimary")
    verification_status: VerificationState = Field(alias="verificationStatus")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    model_config = {"populate_by_name": True, "from_attributes": True}
