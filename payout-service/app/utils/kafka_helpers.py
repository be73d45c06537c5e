# app/utils/kafka_helpers.py
"""
Kafka helper functions for publishing payout events.
Uses the singleton producer from app.core.kafka_producer.
"""
import logging
from app.core.kafka_producer import get_kafka_singleton

logger = logging.getLogger(__name__)

# Kafka Topics
TOPIC_TICKET_CONFIRMATIONS = "tickets.confirmations.v1"
TOPIC_MANUAL_DISBURSEMENTS = "payouts.manual-disbursements.v1"
TOPIC_PAYOUT_EMAILS = "payout.emails.v1"


def _publish(topic: str, event_data: dict, key: str = None) -> bool:
    try:
        producer = get_kafka_singleton()

        if producer is None:
            logger.warning(f"Kafka producer unavailable, cannot publish to {topic}")
            return False

        future = producer.send(
            topic,
            value=event_data,
            key=key.encode("utf-8") if key else None,
        )
        # Wait for the broker acknowledgement
        future.get(timeout=10)
        return True

    except Exception as e:
        logger.error(f"Failed to publish to {topic}: {e}", exc_info=True)
        return False


def publish_step_up_code_email(
    organizer_id: str,
    recipient_email: str,
    code: str,
    expires_at: str,
) -> bool:
    """
    Ask the email service to deliver a payout-change verification code.

    Returns:
        bool: True if published successfully, False otherwise
    """
    published = _publish(
        TOPIC_PAYOUT_EMAILS,
        {
            "type": "PAYOUT_CHANGE_VERIFICATION_CODE",
            "organizerId": organizer_id,
            "recipientEmail": recipient_email,
            "code": code,
            "expiresAt": expires_at,
        },
        key=organizer_id,
    )
    if published:
        logger.info(f"Published payout verification code email for organizer {organizer_id}")
    return published


def publish_manual_disbursement(disbursement: dict) -> bool:
    """
    Queue a withdrawal for manual execution by the finance team.

    The payload carries decrypted bank details only when the destination
    requires them; the topic is restricted to the disbursement tooling.
    """
    published = _publish(
        TOPIC_MANUAL_DISBURSEMENTS,
        {"type": "MANUAL_DISBURSEMENT_REQUESTED", **disbursement},
        key=disbursement.get("withdrawalId"),
    )
    if published:
        logger.info(f"Queued manual disbursement {disbursement.get('withdrawalId')}")
    return published
