import json
import time
import random
import uuid
from datetime import datetime, timezone

from kafka import KafkaProducer

# --- CONFIGURATION ---
KAFKA_BROKER_URL = "localhost:9092"
TOPIC = "tickets.confirmations.v1"
# Must match an event already synced to the payout service (PUT /internal/events/{id})
EVENT_ID = "evt_893be87e6385"
# Roughly one in this many sales is later refunded
REFUND_EVERY = 8
# ---------------------

# Tiers and their listed prices in cents
TIERS = [
    ("tier_ga", "General Admission", 2500),
    ("tier_vip", "VIP", 10000),
    ("tier_early", "Early Bird", 1500),
    ("tier_comp", "Complimentary", 0),
]
PAYMENT_METHODS = ["moncash", "card", "natcash"]

print("--- Ticket Sale Simulator ---")
print(f"Connecting to Kafka at {KAFKA_BROKER_URL}...")

try:
    producer = KafkaProducer(
        bootstrap_servers=KAFKA_BROKER_URL,
        key_serializer=lambda k: k.encode("utf-8"),
        value_serializer=lambda v: json.dumps(v).encode("utf-8"),
    )
    print("✅ Successfully connected to Kafka.")
    print(f"Simulating ticket sales for Event ID: {EVENT_ID}")
    print("Press Ctrl+C to stop.")

    sold = []
    while True:
        tier_id, tier_name, price = random.choice(TIERS)
        ticket_id = f"tkt_{uuid.uuid4().hex[:12]}"
        payload = {
            "ticketId": ticket_id,
            "eventId": EVENT_ID,
            "priceCents": price,
            "currency": "HTG",
            "status": "confirmed",
            "tierId": tier_id,
            "tierName": tier_name,
            "purchasedAt": datetime.now(timezone.utc).isoformat(),
            "paymentMethod": random.choice(PAYMENT_METHODS) if price else None,
            "paymentId": f"pay_{uuid.uuid4().hex[:12]}" if price else None,
        }

        # Keyed by ticket so every state change of a ticket lands on one partition
        producer.send(TOPIC, key=ticket_id, value=payload)
        sold.append(payload)
        print(f"Sold {tier_name} ticket {ticket_id} for {price / 100:.2f} HTG")

        if len(sold) % REFUND_EVERY == 0:
            refund = dict(random.choice(sold), status="refunded")
            producer.send(TOPIC, key=refund["ticketId"], value=refund)
            print(f"Refunded ticket {refund['ticketId']}")

        producer.flush()
        time.sleep(random.randint(1, 4))

except KeyboardInterrupt:
    print(f"\nStopped after {len(sold)} sales.")
except Exception as e:
    print(f"\n❌ Error: Could not connect to Kafka or send message.")
    print(
        "   Please ensure your Docker containers are running and Kafka is accessible at localhost:9092."
    )
    print(f"   Details: {e}")
