# app/models/organizer.py
from sqlalchemy import Column, String, DateTime, func
from app.db.base_class import Base


class Organizer(Base):
    __tablename__ = "organizers"

    id = Column(String, primary_key=True)
    email = Column(String(255), nullable=True)
    display_name = Column(String(255), nullable=True)
    legal_name = Column(String(255), nullable=True)
    organization_name = Column(String(255), nullable=True)
    # Identity status mirrored from the user's profile; None means no record
    identity_status = Column(String(16), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
