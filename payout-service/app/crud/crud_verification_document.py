from typing import Dict, Optional
from sqlalchemy.orm import Session

from .base import CRUDBase
from app.models.verification_document import VerificationDocument


class CRUDVerificationDocument(CRUDBase[VerificationDocument]):
    def get_status_map(self, db: Session, *, organizer_id: str) -> Dict[str, str]:
        """doc_type -> status for every document the organizer has."""
        rows = (
            db.query(self.model.doc_type, self.model.status)
            .filter(self.model.organizer_id == organizer_id)
            .all()
        )
        return {doc_type: status for doc_type, status in rows}

    def get_by_type(
        self, db: Session, *, organizer_id: str, doc_type: str
    ) -> Optional[VerificationDocument]:
        return (
            db.query(self.model)
            .filter(
                self.model.organizer_id == organizer_id,
                self.model.doc_type == doc_type,
            )
            .first()
        )


verification_document = CRUDVerificationDocument(VerificationDocument)
