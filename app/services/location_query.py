"""
Location queries: a typed pipeline for proximity / bounding-box search and the
atomic create-or-update of a business's location.

A pipeline is a short, ordered list of stages drawn from a closed set:

    source (GeoNear | WithinBox) -> Lookup -> Unwind -> Match -> Limit -> Project

Only GeoNear/WithinBox are required. Stages are validated before anything is
sent to the database, and every source stage restricts results to verified
locations.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Literal, Optional, Union

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.geo import LNG_MAX, LNG_MIN, generate_bounds, haversine_distance_km
from app.models.business import Business
from app.models.location import DEFAULT_SERVICE_RADIUS_KM, Location, build_formatted_address
from app.schemas.geo import Coordinates

logger = logging.getLogger(__name__)


class PipelineError(ValueError):
    """Raised when a pipeline is composed in an order that cannot be executed."""


@dataclass(frozen=True)
class GeoNear:
    """Spherical proximity search; annotates each hit with its distance in meters."""
    center: Coordinates
    max_distance_m: float


@dataclass(frozen=True)
class WithinBox:
    """Containment in a southwest/northeast box (no antimeridian wrap)."""
    southwest: Coordinates
    northeast: Coordinates


@dataclass(frozen=True)
class Lookup:
    """Join the owning business."""


@dataclass(frozen=True)
class Unwind:
    """Drop locations whose business could not be joined."""


@dataclass(frozen=True)
class Match:
    field: Literal["category"]
    value: str


@dataclass(frozen=True)
class Limit:
    count: int


@dataclass(frozen=True)
class Project:
    """Round distances to whole meters for output."""


Stage = Union[GeoNear, WithinBox, Lookup, Unwind, Match, Limit, Project]

_STAGE_RANK = {
    GeoNear: 0,
    WithinBox: 0,
    Lookup: 1,
    Unwind: 2,
    Match: 3,
    Limit: 4,
    Project: 5,
}


@dataclass
class LocationHit:
    location: Location
    business: Optional[Business] = None
    distance: Optional[float] = None  # meters, GeoNear only


class LocationPipeline:
    """Builder for location queries. Methods return self so calls can be chained."""

    def __init__(self) -> None:
        self._stages: list[Stage] = []

    @property
    def stages(self) -> tuple[Stage, ...]:
        return tuple(self._stages)

    def add(self, stage: Stage) -> "LocationPipeline":
        if type(stage) not in _STAGE_RANK:
            raise PipelineError(f"Unsupported stage: {stage!r}")
        self._stages.append(stage)
        return self

    def geo_near(self, center: Coordinates, max_distance_m: float) -> "LocationPipeline":
        return self.add(GeoNear(center=center, max_distance_m=max_distance_m))

    def within_box(self, southwest: Coordinates, northeast: Coordinates) -> "LocationPipeline":
        return self.add(WithinBox(southwest=southwest, northeast=northeast))

    def lookup_business(self) -> "LocationPipeline":
        return self.add(Lookup())

    def unwind(self) -> "LocationPipeline":
        return self.add(Unwind())

    def match_category(self, category: Optional[str]) -> "LocationPipeline":
        """Add a category filter; no stage is added when category is empty."""
        if category:
            self.add(Match(field="category", value=category))
        return self

    def limit(self, count: int) -> "LocationPipeline":
        return self.add(Limit(count=count))

    def project(self) -> "LocationPipeline":
        return self.add(Project())

    def _first(self, kind: type) -> Any:
        return next((s for s in self._stages if isinstance(s, kind)), None)

    def validate(self) -> None:
        if not self._stages:
            raise PipelineError("Pipeline is empty")

        source = self._stages[0]
        if not isinstance(source, (GeoNear, WithinBox)):
            raise PipelineError("Pipeline must start with GeoNear or WithinBox")

        last_rank = -1
        for stage in self._stages:
            rank = _STAGE_RANK[type(stage)]
            if rank <= last_rank:
                raise PipelineError(f"{type(stage).__name__} is duplicated or out of order")
            last_rank = rank

        if isinstance(source, GeoNear) and not source.max_distance_m > 0:
            raise PipelineError("GeoNear requires a positive max distance")
        if self._first(Unwind) and not self._first(Lookup):
            raise PipelineError("Unwind requires a preceding Lookup")
        if self._first(Match) and not self._first(Unwind):
            raise PipelineError("Match on business fields requires Lookup and Unwind")
        limit = self._first(Limit)
        if limit is not None and limit.count < 1:
            raise PipelineError("Limit must be at least 1")

    def run(self, db: Session) -> list[LocationHit]:
        self.validate()
        source = self._stages[0]
        joined = self._first(Lookup) is not None
        match = self._first(Match)
        limit = self._first(Limit)

        if joined:
            query = db.query(Location, Business)
            if self._first(Unwind):
                query = query.join(Business, Business.id == Location.business_id)
            else:
                query = query.outerjoin(Business, Business.id == Location.business_id)
        else:
            query = db.query(Location)

        query = query.filter(Location.verified.is_(True))
        if match is not None:
            query = query.filter(Business.category == match.value)

        if isinstance(source, GeoNear):
            box = generate_bounds(source.center, source.max_distance_m / 1000.0)
            query = query.filter(
                Location.lat >= box.southwest.lat,
                Location.lat <= box.northeast.lat,
            )
            # near the antimeridian or the poles the lng window wraps; rely on the exact check
            if box.southwest.lng >= LNG_MIN and box.northeast.lng <= LNG_MAX:
                query = query.filter(
                    Location.lng >= box.southwest.lng,
                    Location.lng <= box.northeast.lng,
                )
        else:
            query = query.filter(
                Location.lat >= source.southwest.lat,
                Location.lat <= source.northeast.lat,
                Location.lng >= source.southwest.lng,
                Location.lng <= source.northeast.lng,
            ).order_by(Location.created_at.desc(), Location.id)
            if limit is not None:
                query = query.limit(limit.count)

        hits = [
            LocationHit(location=row[0], business=row[1]) if joined else LocationHit(location=row)
            for row in query.all()
        ]

        if isinstance(source, GeoNear):
            for hit in hits:
                hit.distance = 1000.0 * haversine_distance_km(
                    source.center.lat, source.center.lng, hit.location.lat, hit.location.lng
                )
            hits = [h for h in hits if h.distance <= source.max_distance_m]
            hits.sort(key=lambda h: h.distance)
            if limit is not None:
                hits = hits[: limit.count]

        if self._first(Project) is not None:
            for hit in hits:
                if hit.distance is not None:
                    hit.distance = round(hit.distance)

        logger.debug(f"Location pipeline {[type(s).__name__ for s in self._stages]} -> {len(hits)} hits")
        return hits


def _dialect_insert(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"Location upsert is not supported on dialect {dialect!r}")
    return insert


def upsert_location(
    db: Session,
    *,
    business_id: uuid.UUID,
    name: str,
    lat: float,
    lng: float,
    street: str = "",
    city: str = "",
    postal_code: str = "",
    country: str = "Netherlands",
    formatted_address: Optional[str] = None,
    radius: Optional[float] = None,
    source: str = "user_input",
) -> Location:
    """
    Create or update the single location of a business in one statement
    (INSERT .. ON CONFLICT (business_id) DO UPDATE).

    On update, verified, place_id and created_at are left untouched, and radius
    is only changed when given.
    """
    values = {
        "name": name,
        "street": street or "",
        "city": city or "",
        "postal_code": postal_code or "",
        "country": country or "",
        "formatted_address": formatted_address
        or build_formatted_address(street, city, postal_code, country),
        "lat": lat,
        "lng": lng,
        "source": source,
    }

    insert = _dialect_insert(db)
    stmt = insert(Location).values(
        id=uuid.uuid4(),
        business_id=business_id,
        verified=False,
        radius=radius if radius is not None else DEFAULT_SERVICE_RADIUS_KM,
        **values,
    )
    update_columns = {key: stmt.excluded[key] for key in values}
    if radius is not None:
        update_columns["radius"] = stmt.excluded.radius
    update_columns["updated_at"] = func.now()
    stmt = stmt.on_conflict_do_update(index_elements=[Location.business_id], set_=update_columns)

    db.execute(stmt)
    db.commit()

    location = db.query(Location).filter(Location.business_id == business_id).one()
    db.refresh(location)
    logger.info(f"Upserted location for business_id={business_id}: ({lat}, {lng}) source={source}")
    return location
