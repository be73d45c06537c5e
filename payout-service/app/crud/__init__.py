# payout-service/app/crud/__init__.py

from .crud_event import event
from .crud_event_earnings import event_earnings
from .crud_payout_destination import payout_destination
from .crud_payout_profile import payout_profile
from .crud_ticket_sale import ticket_sale
from .crud_verification_document import verification_document
from .crud_withdrawal_request import withdrawal_request
