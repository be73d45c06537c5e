# app/models/__init__.py
# Import all models so Base.metadata knows every table

from app.db.base_class import Base
from app.models.event import Event
from app.models.organizer import Organizer
from app.models.ticket_sale import TicketSale
from app.models.event_earnings import EventEarnings
from app.models.payout_profile import PayoutProfile, LegacyPayoutConfig
from app.models.verification_document import VerificationDocument
from app.models.payout_destination import PayoutDestination
from app.models.withdrawal_request import WithdrawalRequest
from app.models.payout_change_verification import PayoutChangeVerification
