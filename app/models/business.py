import uuid
from sqlalchemy import Column, String, Float, Boolean, DateTime, ForeignKey, func
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship

from app.db.base import Base


class Business(Base):
    __tablename__ = "businesses"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)
    name = Column(String, nullable=False, index=True)
    category = Column(String, nullable=True, index=True)
    rating = Column(Float, nullable=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    phone = Column(String, nullable=True)
    website = Column(String, nullable=True)
    # Weekly table keyed by short weekday: {"mon": "09:00-17:30", ...}
    opening_hours = Column(JSONB, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    owner = relationship("User", back_populates="businesses")
    location = relationship("Location", back_populates="business", uselist=False, cascade="all, delete-orphan")
