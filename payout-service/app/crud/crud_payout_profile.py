from typing import Optional
from sqlalchemy.orm import Session

from .base import CRUDBase
from app.models.payout_profile import PayoutProfile, LegacyPayoutConfig


class CRUDPayoutProfile(CRUDBase[PayoutProfile]):
    def get_by_rail(self, db: Session, *, organizer_id: str, rail: str) -> Optional[PayoutProfile]:
        return (
            db.query(self.model)
            .filter(self.model.organizer_id == organizer_id, self.model.rail == rail)
            .first()
        )

    def get_legacy(self, db: Session, *, organizer_id: str) -> Optional[LegacyPayoutConfig]:
        return (
            db.query(LegacyPayoutConfig)
            .filter(LegacyPayoutConfig.organizer_id == organizer_id)
            .first()
        )


payout_profile = CRUDPayoutProfile(PayoutProfile)
