"""Hand-off of manual withdrawals to the finance disbursement queue."""
import logging
from typing import Callable, Dict, Optional

from app.models.withdrawal_request import WithdrawalRequest
from app.utils.kafka_helpers import publish_manual_disbursement

logger = logging.getLogger(__name__)


class DisbursementQueue:
    def __init__(self, publisher: Callable[[dict], bool] = publish_manual_disbursement):
        self.publisher = publisher

    def hand_off(
        self,
        withdrawal: WithdrawalRequest,
        bank_details: Optional[Dict[str, Optional[str]]] = None,
    ) -> bool:
        """Publish a withdrawal for manual execution. Returns False if not queued."""
        payload = {
            "withdrawalId": withdrawal.id,
            "organizerId": withdrawal.organizer_id,
            "eventId": withdrawal.event_id,
            "amountCents": withdrawal.amount,
            "currency": withdrawal.currency,
            "method": withdrawal.method,
            "bankDestinationId": withdrawal.bank_destination_id,
            "moncashNumber": withdrawal.moncash_number,
        }
        if bank_details:
            payload["bankDetails"] = bank_details
        return self.publisher(payload)


disbursement_queue = DisbursementQueue()
