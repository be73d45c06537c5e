from typing import List, Optional
from sqlalchemy.orm import Session

from .base import CRUDBase
from app.models.event_earnings import EventEarnings


class CRUDEventEarnings(CRUDBase[EventEarnings]):
    def get_by_event(self, db: Session, *, event_id: str) -> Optional[EventEarnings]:
        return db.query(self.model).filter(self.model.event_id == event_id).first()

    def get_by_event_for_update(self, db: Session, *, event_id: str) -> Optional[EventEarnings]:
        """
        Load the aggregate with a row lock.

        Databases without SELECT FOR UPDATE fall back to the version check.
        """
        return (
            db.query(self.model)
            .filter(self.model.event_id == event_id)
            .populate_existing()
            .with_for_update()
            .first()
        )

    def get_multi_by_organizer(self, db: Session, *, organizer_id: str) -> List[EventEarnings]:
        return (
            db.query(self.model)
            .filter(self.model.organizer_id == organizer_id)
            .order_by(self.model.created_at.desc(), self.model.id)
            .all()
        )

    def get_unsettled_batch(
        self, db: Session, *, after_id: Optional[str] = None, limit: int = 500
    ) -> List[EventEarnings]:
        """Earnings whose cached status may still move from pending to ready."""
        query = db.query(self.model).filter(
            self.model.settlement_status == "pending",
            self.model.admin_locked.is_(False),
        )
        if after_id:
            query = query.filter(self.model.id > after_id)
        return query.order_by(self.model.id).limit(limit).all()


event_earnings = CRUDEventEarnings(EventEarnings)
