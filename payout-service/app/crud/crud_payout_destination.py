from typing import List, Optional
from sqlalchemy.orm import Session

from .base import CRUDBase
from app.models.payout_destination import PayoutDestination


class CRUDPayoutDestination(CRUDBase[PayoutDestination]):
    def get_for_organizer(
        self, db: Session, *, organizer_id: str, destination_id: str
    ) -> Optional[PayoutDestination]:
        return (
            db.query(self.model)
            .filter(
                self.model.id == destination_id,
                self.model.organizer_id == organizer_id,
            )
            .first()
        )

    def get_multi_by_organizer(self, db: Session, *, organizer_id: str) -> List[PayoutDestination]:
        """Primary first, then oldest first."""
        return (
            db.query(self.model)
            .filter(self.model.organizer_id == organizer_id)
            .order_by(
                self.model.is_primary.desc(),
                self.model.created_at.asc(),
                self.model.id.asc(),
            )
            .all()
        )

    def get_primary(self, db: Session, *, organizer_id: str) -> Optional[PayoutDestination]:
        return (
            db.query(self.model)
            .filter(
                self.model.organizer_id == organizer_id,
                self.model.is_primary.is_(True),
            )
            .first()
        )


payout_destination = CRUDPayoutDestination(PayoutDestination)
