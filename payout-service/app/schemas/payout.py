# app/schemas/payout.py
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
from enum import Enum


# ============================================
# Enums
# ============================================

class SettlementStatus(str, Enum):
    pending = "pending"
    ready = "ready"
    locked = "locked"


class Currency(str, Enum):
    HTG = "HTG"
    USD = "USD"


class PayoutRail(str, Enum):
    haiti = "haiti"
    card_gateway_connect = "card_gateway_connect"


class PayoutMethod(str, Enum):
    bank_transfer = "bank_transfer"
    mobile_money = "mobile_money"


class PayoutProfileStatus(str, Enum):
    not_setup = "not_setup"
    pending_verification = "pending_verification"
    active = "active"
    on_hold = "on_hold"


class VerificationState(str, Enum):
    absent = "absent"
    pending = "pending"
    verified = "verified"
    failed = "failed"


class WithdrawalMethod(str, Enum):
    bank = "bank"
    moncash = "moncash"
    stripe = "stripe"


class WithdrawalStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"


# Ticket statuses that count toward earnings
CONFIRMED_TICKET_STATUSES = ("valid", "confirmed")


class _CamelModel(BaseModel):
    model_config = {"populate_by_name": True, "from_attributes": True}


# ============================================
# Earnings
# ============================================

class EventEarningsResponse(_CamelModel):
    event_id: str = Field(alias="eventId")
    organizer_id: str = Field(alias="organizerId")
    gross_sales: int = Field(alias="grossSales")
    tickets_sold: int = Field(alias="ticketsSold")
    platform_fee: int = Field(alias="platformFee")
    processing_fees: int = Field(alias="processingFees")
    net_amount: int = Field(alias="netAmount")
    available_to_withdraw: int = Field(alias="availableToWithdraw")
    withdrawn_amount: int = Field(alias="withdrawnAmount")
    settlement_status: SettlementStatus = Field(alias="settlementStatus")
    settlement_ready_date: Optional[datetime] = Field(default=None, alias="settlementReadyDate")
    currency: Currency
    locked_reason: Optional[str] = Field(default=None, alias="lockedReason")
    last_calculated_at: Optional[datetime] = Field(default=None, alias="lastCalculatedAt")


class CurrencyTotals(_CamelModel):
    currency: Currency
    gross_sales: int = Field(alias="grossSales")
    net_amount: int = Field(alias="netAmount")
    available_to_withdraw: int = Field(alias="availableToWithdraw")
    withdrawn_amount: int = Field(alias="withdrawnAmount")
    pending_balance: int = Field(alias="pendingBalance")


class OrganizerEarningsSummary(_CamelModel):
    organizer_id: str = Field(alias="organizerId")
    totals: List[CurrencyTotals]
    events: List[EventEarningsResponse]


class SettlementLockRequest(_CamelModel):
    reason: str = Field(..., min_length=1, max_length=500)


# ============================================
# Withdrawals
# ============================================

class BankDetailsIn(_CamelModel):
    bank_name: str = Field(..., alias="bankName", min_length=1, max_length=200)
    account_holder: str = Field(..., alias="accountHolder", min_length=1, max_length=200)
    account_number: str = Field(..., alias="accountNumber", min_length=4, max_length=64)
    routing_number: Optional[str] = Field(default=None, alias="routingNumber", max_length=64)
    swift_code: Optional[str] = Field(default=None, alias="swiftCode", max_length=32)
    iban: Optional[str] = Field(default=None, max_length=64)
    account_type: Optional[str] = Field(default=None, alias="accountType", max_length=32)

    @field_validator("account_number")
    @classmethod
    def strip_account_number(cls, v: str) -> str:
        v = v.replace(" ", "").replace("-", "")
        if not v.isalnum():
            raise ValueError("Account number must be alphanumeric")
        return v


class BankWithdrawalRequest(_CamelModel):
    event_id: str = Field(..., alias="eventId")
    amount: int = Field(..., gt=0, description="Amount in cents")
    bank_details: Optional[BankDetailsIn] = Field(default=None, alias="bankDetails")
    bank_destination_id: Optional[str] = Field(default=None, alias="bankDestinationId")
    save_destination: bool = Field(default=False, alias="saveDestination")


class MoncashWithdrawalRequest(_CamelModel):
    event_id: str = Field(..., alias="eventId")
    amount: int = Field(..., gt=0, description="Amount in cents")
    moncash_number: str = Field(..., alias="moncashNumber", min_length=6, max_length=20)


class WithdrawalResult(_CamelModel):
    withdrawal_id: str = Field(alias="withdrawalId")
    status: WithdrawalStatus
    instant: bool = False
    fee_cents: Optional[int] = Field(default=None, alias="feeCents")
    payout_amount_cents: Optional[int] = Field(default=None, alias="payoutAmountCents")


class WithdrawalResponse(_CamelModel):
    id: str
    event_id: str = Field(alias="eventId")
    amount: int
    currency: Currency
    method: WithdrawalMethod
    status: WithdrawalStatus
    fee_cents: Optional[int] = Field(default=None, alias="feeCents")
    payout_amount_cents: Optional[int] = Field(default=None, alias="payoutAmountCents")
    prefunding_used: bool = Field(default=False, alias="prefundingUsed")
    bank_destination_id: Optional[str] = Field(default=None, alias="bankDestinationId")
    moncash_number: Optional[str] = Field(default=None, alias="moncashNumber")
    failure_reason: Optional[str] = Field(default=None, alias="failureReason")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    completed_at: Optional[datetime] = Field(default=None, alias="completedAt")


# ============================================
# Profiles
# ============================================

class VerificationTriad(_CamelModel):
    identity: VerificationState
    bank: VerificationState
    phone: VerificationState


class PayoutProfileResponse(_CamelModel):
    rail: PayoutRail
    status: PayoutProfileStatus
    method: Optional[PayoutMethod] = None
    verification: VerificationTriad
    bank_account_last4: Optional[str] = Field(default=None, alias="bankAccountLast4")
    mobile_number_last4: Optional[str] = Field(default=None, alias="mobileNumberLast4")
    allow_instant_moncash: bool = Field(default=False, alias="allowInstantMoncash")
    details_submitted: Optional[bool] = Field(default=None, alias="detailsSubmitted")
    charges_enabled: Optional[bool] = Field(default=None, alias="chargesEnabled")
    payouts_enabled: Optional[bool] = Field(default=None, alias="payoutsEnabled")


class PublishEligibility(_CamelModel):
    eligible: bool
    rail: PayoutRail
    reasons: List[str] = []
