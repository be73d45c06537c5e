from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy import or_, and_
from sqlalchemy.orm import Session

from .base import CRUDBase
from app.models.ticket_sale import TicketSale
from app.schemas.payout import CONFIRMED_TICKET_STATUSES


class CRUDTicketSale(CRUDBase[TicketSale]):
    def upsert(self, db: Session, *, ticket_id: str, values: dict) -> TicketSale:
        sale = self.get(db, ticket_id)
        if sale is None:
            sale = TicketSale(id=ticket_id, **values)
            db.add(sale)
        else:
            for field, value in values.items():
                setattr(sale, field, value)
        db.flush()
        return sale

    def get_confirmed_prices(self, db: Session, *, event_id: str) -> List[int]:
        rows = (
            db.query(self.model.price_cents)
            .filter(
                self.model.event_id == event_id,
                self.model.status.in_(CONFIRMED_TICKET_STATUSES),
            )
            .all()
        )
        return [row[0] or 0 for row in rows]

    def get_confirmed_page(
        self,
        db: Session,
        *,
        event_id: str,
        after: Optional[Tuple[Optional[datetime], str]] = None,
        limit: int = 1000,
    ) -> List[TicketSale]:
        """
        One keyset page of confirmed tickets, newest first.

        `after` is the (purchased_at, id) of the last row of the previous
        page. Tickets without a purchase time sort last.
        """
        query = db.query(self.model).filter(
            self.model.event_id == event_id,
            self.model.status.in_(CONFIRMED_TICKET_STATUSES),
        )
        if after is not None:
            last_purchased_at, last_id = after
            if last_purchased_at is None:
                query = query.filter(
                    self.model.purchased_at.is_(None), self.model.id < last_id
                )
            else:
                query = query.filter(
                    or_(
                        self.model.purchased_at < last_purchased_at,
                        and_(
                            self.model.purchased_at == last_purchased_at,
                            self.model.id < last_id,
                        ),
                        self.model.purchased_at.is_(None),
                    )
                )
        return (
            query.order_by(
                self.model.purchased_at.is_(None),
                self.model.purchased_at.desc(),
                self.model.id.desc(),
            )
            .limit(limit)
            .all()
        )


ticket_sale = CRUDTicketSale(TicketSale)
