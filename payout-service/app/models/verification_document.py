# app/models/verification_document.py
from sqlalchemy import Column, String, DateTime, UniqueConstraint, func
from app.db.base_class import Base
import uuid


class VerificationDocument(Base):
    """
    Review outcome for one verification check.

    doc_type is 'identity', 'bank', 'phone' or 'bank_<destinationId>'.
    """

    __tablename__ = "verification_documents"

    id = Column(String, primary_key=True, default=lambda: f"vdoc_{uuid.uuid4().hex[:12]}")
    organizer_id = Column(String, nullable=False, index=True)
    doc_type = Column(String(128), nullable=False)
    status = Column(String(16), nullable=False, default="pending")
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("organizer_id", "doc_type", name="uq_verification_doc_type"),
    )
