from app.models.user import User
from app.models.business import Business
from app.models.location import Location

__all__ = [
    "User",
    "Business",
    "Location",
]
