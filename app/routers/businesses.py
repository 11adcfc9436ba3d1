from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from uuid import UUID
from typing import Optional

from app.core.auth import get_current_user
from app.db.session import get_db
from app.models.business import Business
from app.models.user import User
from app.schemas.business import BusinessCreate, BusinessRead

router = APIRouter(prefix="/businesses", tags=["businesses"])


@router.post("", response_model=BusinessRead, status_code=201)
def create_business(
    business: BusinessCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Create a business owned by the caller."""
    db_business = Business(**business.model_dump(), owner_id=current_user.id)
    db.add(db_business)
    db.commit()
    db.refresh(db_business)
    return db_business


@router.get("", response_model=list[BusinessRead])
def list_businesses(
    category: Optional[str] = Query(None, description="Filter by category"),
    name: Optional[str] = Query(None, description="Search by business name"),
    db: Session = Depends(get_db)
):
    """List businesses with optional category / name filters."""
    query = db.query(Business)
    if category:
        query = query.filter(Business.category == category)
    if name:
        query = query.filter(Business.name.ilike(f"%{name}%"))
    return query.all()


@router.get("/{business_id}", response_model=BusinessRead)
def get_business(business_id: UUID, db: Session = Depends(get_db)):
    """Get business by ID."""
    business = db.query(Business).filter(Business.id == business_id).first()
    if not business:
        raise HTTPException(status_code=404, detail="Business not found")
    return business
