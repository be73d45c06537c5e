#!/usr/bin/env python3
"""
Ticket Confirmation Consumer Service

Listens for ticket state changes from the ticketing service on Kafka,
stores each ticket sale and rebuilds the event's earnings aggregate.

Messages are keyed by ticket id and may be redelivered: the ticket row is
upserted and the aggregate is recomputed from scratch, so replays do not
double count. Offsets are committed by hand once a message is recorded
or deliberately skipped; a failed message is re-read after a pause.
"""
import json
import sys
import os
import time
import logging

# Add the app directory to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from kafka import KafkaConsumer, TopicPartition
from pydantic import ValidationError as PayloadError
from app.core.config import settings
from app.core.errors import NotFoundError
from app.db.session import SessionLocal
from app.schemas.ticket_event import TicketConfirmationEvent
from app.services.payout.earnings_ledger import earnings_ledger
from app.utils.kafka_helpers import TOPIC_TICKET_CONFIRMATIONS

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='[%(asctime)s] [%(levelname)s] %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

# Pause before re-reading a message that failed to record
RETRY_BACKOFF_SECONDS = 5


def process_ticket_event(event_data: dict) -> bool:
    """
    Record one ticket state change.

    Args:
        event_data: Kafka message payload

    Returns:
        True if the message is done with (processed or unprocessable),
        False if it failed and should be delivered again
    """
    try:
        payload = TicketConfirmationEvent.model_validate(event_data)
    except PayloadError as e:
        logger.error(f"Malformed ticket event, skipping: {e}")
        return True

    db = SessionLocal()
    try:
        earnings = earnings_ledger.record_ticket_event(db, payload)
        logger.info(
            f"Ticket {payload.ticket_id} ({payload.status}) recorded for event "
            f"{payload.event_id}: net={earnings.net_amount} "
            f"available={earnings.available_to_withdraw}"
        )
        return True
    except NotFoundError:
        # Ticket is stored; the aggregate is built when the event is synced
        logger.warning(
            f"Ticket {payload.ticket_id} references unknown event {payload.event_id}; "
            "earnings will be computed on event sync"
        )
        return True
    except Exception as e:
        logger.error(f"Failed to record ticket {payload.ticket_id}: {e}", exc_info=True)
        return False
    finally:
        db.close()


def get_kafka_consumer_config():
    """
    Build Kafka consumer configuration.
    """
    return {
        "bootstrap_servers": settings.KAFKA_BOOTSTRAP_SERVERS,
        "value_deserializer": lambda v: json.loads(v.decode("utf-8")),
        "auto_offset_reset": "earliest",
        "enable_auto_commit": False,
        "max_poll_records": 50,
        "group_id": "payout-ticket-consumer-group",
    }


def handle_message(consumer, message) -> bool:
    """
    Process one consumed message and settle its offset.

    The offset is committed only when the message is done with. On failure
    the partition is rewound to the message so the next poll delivers it
    again.
    """
    try:
        done = process_ticket_event(message.value)
    except Exception as e:
        logger.error(f"Error processing message: {e}", exc_info=True)
        done = False

    if done:
        consumer.commit()
        return True

    logger.error(
        f"Failed to process ticket event at offset {message.offset} "
        f"(partition {message.partition}), retrying in {RETRY_BACKOFF_SECONDS}s"
    )
    consumer.seek(TopicPartition(message.topic, message.partition), message.offset)
    time.sleep(RETRY_BACKOFF_SECONDS)
    return False


def run_consumer():
    """
    Main consumer loop for ticket confirmation events.
    """
    print("=" * 60)
    print("Ticket Confirmation Consumer Service Starting...")
    print(f"Kafka Bootstrap Servers: {settings.KAFKA_BOOTSTRAP_SERVERS}")
    print(f"Topic: {TOPIC_TICKET_CONFIRMATIONS}")
    print(f"Database URL: {settings.DATABASE_URL[:50]}...")
    print("=" * 60)

    try:
        consumer = KafkaConsumer(
            TOPIC_TICKET_CONFIRMATIONS,
            **get_kafka_consumer_config(),
        )

        logger.info(f"Listening for messages on topic: {TOPIC_TICKET_CONFIRMATIONS}")

        for message in consumer:
            handle_message(consumer, message)

    except KeyboardInterrupt:
        logger.info("Shutting down ticket confirmation consumer...")
    except Exception as e:
        logger.error(f"Consumer error: {e}", exc_info=True)
        raise


if __name__ == "__main__":
    run_consumer()
