import uuid
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    event,
    func,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship

from app.core.geo import haversine_distance_km
from app.db.base import Base
from app.schemas.geo import AddressComponents, Coordinates

LOCATION_SOURCES = ("manual", "google_places", "user_input")
DEFAULT_COUNTRY = "Netherlands"
DEFAULT_SERVICE_RADIUS_KM = 5.0


def build_formatted_address(
    street: str | None,
    city: str | None,
    postal_code: str | None,
    country: str | None,
) -> str:
    """Deterministic display address: "{street}, {city} {postal_code}, {country}"."""
    return f"{street or ''}, {city or ''} {postal_code or ''}, {country or ''}"


class Location(Base):
    """A business's physical location. One row per business (business_id is unique)."""

    __tablename__ = "locations"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    business_id = Column(UUID(as_uuid=True), ForeignKey("businesses.id"), nullable=False, unique=True)
    name = Column(String, nullable=False)

    # Structured postal address; formatted_address is derived before persistence when empty
    street = Column(String, nullable=False, default="")
    city = Column(String, nullable=False, default="")
    postal_code = Column(String, nullable=False, default="")
    country = Column(String, nullable=False, default=DEFAULT_COUNTRY)
    formatted_address = Column(String, nullable=False)

    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    radius = Column(Float, nullable=False, default=DEFAULT_SERVICE_RADIUS_KM)  # service radius, km
    place_id = Column(String, unique=True, nullable=True)  # provider place id; NULLs do not collide
    verified = Column(Boolean, nullable=False, default=False)
    accuracy = Column(Float, nullable=True)  # reported GPS accuracy, meters
    source = Column(String(32), nullable=False, default="user_input")

    # Metadata
    timezone = Column(String, nullable=True)
    utc_offset = Column(Float, nullable=True)
    viewport = Column(JSONB, nullable=True)  # {"northeast": {lat, lng}, "southwest": {lat, lng}}

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    business = relationship("Business", back_populates="location")

    __table_args__ = (
        CheckConstraint("lat >= -90 AND lat <= 90", name="ck_locations_lat_range"),
        CheckConstraint("lng >= -180 AND lng <= 180", name="ck_locations_lng_range"),
        CheckConstraint("radius >= 0 AND radius <= 100", name="ck_locations_radius_range"),
        CheckConstraint("accuracy IS NULL OR accuracy >= 0", name="ck_locations_accuracy_positive"),
        CheckConstraint(
            "source IN ('manual', 'google_places', 'user_input')",
            name="ck_locations_source",
        ),
        Index("ix_locations_business_id_verified", "business_id", "verified"),
        Index("ix_locations_city_verified", "city", "verified"),
        Index("ix_locations_lat_lng_verified", "lat", "lng", "verified"),
    )

    @property
    def coordinates(self) -> Coordinates:
        return Coordinates(lat=self.lat, lng=self.lng)

    @property
    def coordinates_string(self) -> str:
        return f"{self.lat}, {self.lng}"

    @property
    def address(self) -> AddressComponents:
        return AddressComponents(
            street=self.street,
            city=self.city,
            postal_code=self.postal_code,
            country=self.country,
            formatted=self.formatted_address,
        )

    def distance_to(self, lat: float, lng: float) -> float:
        """Great-circle distance from this location to (lat, lng) in kilometers."""
        return haversine_distance_km(self.lat, self.lng, lat, lng)


@event.listens_for(Location, "before_insert")
@event.listens_for(Location, "before_update")
def _fill_formatted_address(mapper, connection, target: Location) -> None:
    # column defaults are applied after this hook, so resolve them here first
    if target.country is None:
        target.country = DEFAULT_COUNTRY
    if not target.formatted_address:
        target.formatted_address = build_formatted_address(
            target.street, target.city, target.postal_code, target.country
        )
