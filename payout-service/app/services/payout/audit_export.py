"""
Per-ticket earnings audit export.

Streams one CSV row per confirmed ticket, newest purchase first, followed
by a price breakdown grouped by tier, listed price and currency. Tickets
are read in keyset-paginated batches from a dedicated session so the
export never holds the whole event in memory.
"""
import csv
import io
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Dict, Iterable, Iterator, Optional, Tuple

from sqlalchemy.orm import Session

from app import crud
from app.models.event import Event
from app.utils.datetime_utils import ensure_utc

AUDIT_HEADER = [
    "Ticket ID",
    "Status",
    "Purchased At",
    "Tier ID",
    "Tier Name",
    "Listed Unit Price",
    "Listed Currency",
    "Payment Method",
    "Payment ID",
]
SUMMARY_LABEL = "PRICE BREAKDOWN (Tier + Listed Price)"
SUMMARY_HEADER = [
    "Tier ID",
    "Tier Name",
    "Listed Unit Price",
    "Listed Currency",
    "Tickets Sold",
    "Gross Sales (cents)",
    "First Purchase At",
    "Last Purchase At",
]
DEFAULT_TIER_NAME = "General Admission"


def format_price(cents: int) -> str:
    return f"{Decimal(cents) / Decimal(100):.2f}"


def format_timestamp(value) -> str:
    value = ensure_utc(value)
    if value is None:
        return ""
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def csv_line(cells: Iterable) -> str:
    buffer = io.StringIO()
    csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n").writerow(
        ["" if cell is None else cell for cell in cells]
    )
    return buffer.getvalue()


def export_filename(event: Event) -> str:
    safe_title = re.sub(r"[^a-zA-Z0-9]", "_", event.title or "event")[:80]
    return f"{safe_title}_earnings_audit.csv"


@dataclass
class PriceBucket:
    tier_id: Optional[str]
    tier_name: str
    unit_price_cents: int
    currency: str
    tickets_sold: int = 0
    gross_cents: int = 0
    first_purchase_at: str = ""
    last_purchase_at: str = ""

    def add(self, price_cents: int, purchased_at: str) -> None:
        self.tickets_sold += 1
        self.gross_cents += price_cents
        if purchased_at:
            if not self.first_purchase_at or purchased_at < self.first_purchase_at:
                self.first_purchase_at = purchased_at
            if not self.last_purchase_at or purchased_at > self.last_purchase_at:
                self.last_purchase_at = purchased_at


class AuditExporter:
    def __init__(self, batch_size: int = 1000):
        self.batch_size = batch_size

    def iter_csv(
        self,
        session_factory: Callable[[], Session],
        event_id: str,
        default_currency: str = "HTG",
    ) -> Iterator[str]:
        db = session_factory()
        try:
            yield csv_line(AUDIT_HEADER)
            buckets: Dict[Tuple[str, int, str], PriceBucket] = {}
            after = None
            while True:
                page = crud.ticket_sale.get_confirmed_page(
                    db, event_id=event_id, after=after, limit=self.batch_size
                )
                if not page:
                    break
                for ticket in page:
                    tier_name = ticket.tier_name or DEFAULT_TIER_NAME
                    currency = (ticket.currency or default_currency).upper()
                    price = max(0, ticket.price_cents or 0)
                    purchased_at = format_timestamp(ticket.purchased_at)
                    yield csv_line(
                        [
                            ticket.id,
                            ticket.status,
                            purchased_at,
                            ticket.tier_id,
                            tier_name,
                            format_price(price),
                            currency,
                            ticket.payment_method,
                            ticket.payment_id,
                        ]
                    )
                    key = (ticket.tier_id or tier_name, price, currency)
                    bucket = buckets.get(key)
                    if bucket is None:
                        bucket = buckets[key] = PriceBucket(
                            tier_id=ticket.tier_id,
                            tier_name=tier_name,
                            unit_price_cents=price,
                            currency=currency,
                        )
                    bucket.add(price, purchased_at)

                last = page[-1]
                after = (last.purchased_at, last.id)
                # Release the page before fetching the next one
                db.expunge_all()
                if len(page) < self.batch_size:
                    break

            yield "\n"
            yield csv_line([SUMMARY_LABEL])
            yield csv_line(SUMMARY_HEADER)
            for bucket in sorted(
                buckets.values(), key=lambda b: (b.tier_name, b.unit_price_cents)
            ):
                yield csv_line(
                    [
                        bucket.tier_id,
                        bucket.tier_name,
                        format_price(bucket.unit_price_cents),
                        bucket.currency,
                        bucket.tickets_sold,
                        bucket.gross_cents,
                        bucket.first_purchase_at,
                        bucket.last_purchase_at,
                    ]
                )
        finally:
            db.close()


audit_exporter = AuditExporter()
