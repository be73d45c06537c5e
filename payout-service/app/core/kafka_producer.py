# app/core/kafka_producer.py

import json
import logging
import threading
from typing import Optional

from kafka import KafkaProducer
from kafka.errors import KafkaError
from app.core.config import settings

logger = logging.getLogger(__name__)

_producer: Optional[KafkaProducer] = None
_producer_lock = threading.Lock()


def _build_producer() -> KafkaProducer:
    return KafkaProducer(
        bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
        value_serializer=lambda v: json.dumps(v, default=str).encode("utf-8"),
        # Fail fast when the broker is unreachable during a request
        request_timeout_ms=5000,
        acks="all",
    )


def get_kafka_singleton() -> Optional[KafkaProducer]:
    """
    Shared producer for background publishers.

    Returns None when the broker cannot be reached; callers decide whether
    that is fatal.
    """
    global _producer
    if _producer is not None:
        return _producer
    with _producer_lock:
        if _producer is None:
            try:
                _producer = _build_producer()
            except KafkaError as e:
                logger.error(f"Kafka producer unavailable: {e}")
                return None
    return _producer

