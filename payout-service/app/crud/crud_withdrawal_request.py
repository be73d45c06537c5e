from typing import List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session

from .base import CRUDBase
from app.models.withdrawal_request import WithdrawalRequest
from app.schemas.payout import WithdrawalStatus


class CRUDWithdrawalRequest(CRUDBase[WithdrawalRequest]):
    def get_for_organizer(
        self, db: Session, *, withdrawal_id: str, organizer_id: str
    ) -> Optional[WithdrawalRequest]:
        return (
            db.query(self.model)
            .filter(self.model.id == withdrawal_id, self.model.organizer_id == organizer_id)
            .first()
        )

    def get_multi_by_organizer(
        self,
        db: Session,
        *,
        organizer_id: str,
        event_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[WithdrawalRequest]:
        query = db.query(self.model).filter(self.model.organizer_id == organizer_id)
        if event_id:
            query = query.filter(self.model.event_id == event_id)
        return (
            query.order_by(self.model.created_at.desc(), self.model.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def in_flight_hold_total(self, db: Session, *, event_id: str) -> int:
        """Sum of open requests whose amount is not yet taken from the ledger."""
        total = (
            db.query(func.coalesce(func.sum(self.model.amount), 0))
            .filter(
                self.model.event_id == event_id,
                self.model.ledger_deducted.is_(False),
                self.model.status.in_(
                    [WithdrawalStatus.pending.value, WithdrawalStatus.processing.value]
                ),
            )
            .scalar()
        )
        return int(total or 0)


withdrawal_request = CRUDWithdrawalRequest(WithdrawalRequest)
