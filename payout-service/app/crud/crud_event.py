from typing import Optional
from sqlalchemy.orm import Session

from .base import CRUDBase
from app.models.event import Event


class CRUDEvent(CRUDBase[Event]):
    def get_owned(self, db: Session, *, event_id: str, organizer_id: str) -> Optional[Event]:
        return (
            db.query(self.model)
            .filter(self.model.id == event_id, self.model.organizer_id == organizer_id)
            .first()
        )


event = CRUDEvent(Event)
