from pydantic import BaseModel, ConfigDict
from uuid import UUID
from datetime import datetime
from typing import Optional


class BusinessBase(BaseModel):
    name: str
    category: Optional[str] = None
    rating: Optional[float] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    # {"mon": "09:00-17:30", ...}; missing days are closed
    opening_hours: Optional[dict[str, str]] = None


class BusinessCreate(BusinessBase):
    pass


class BusinessRead(BusinessBase):
    id: UUID
    owner_id: Optional[UUID] = None
    is_verified: bool = False
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
