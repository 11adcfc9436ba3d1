import uuid
from sqlalchemy.orm import Session

from app.models.user import User
from app.models.business import Business
from app.models.location import Location

WEEKDAY_HOURS = {day: "09:00-18:00" for day in ("mon", "tue", "wed", "thu", "fri")}


def seed_db(db: Session) -> None:
    """Seed the database with a few Amsterdam businesses and their locations."""

    # Clear existing data (optional - comment out if you want to preserve data)
    db.query(Location).delete()
    db.query(Business).delete()
    db.query(User).delete()
    db.commit()

    owner = User(
        id=uuid.uuid4(),
        external_auth_uid="11111111-1111-1111-1111-111111111111",
        external_auth_provider="email",
        email="owner@example.com",
    )
    db.add(owner)
    db.commit()
    db.refresh(owner)

    bakery = Business(
        id=uuid.uuid4(),
        owner_id=owner.id,
        name="De Jordaan Bakkerij",
        category="bakery",
        rating=4.6,
        is_verified=True,
        phone="+31 20 123 4567",
        opening_hours={**WEEKDAY_HOURS, "sat": "08:00-16:00"},
    )
    cafe = Business(
        id=uuid.uuid4(),
        owner_id=owner.id,
        name="Café Utrecht Centraal",
        category="cafe",
        rating=4.1,
        is_verified=True,
        website="https://cafe.example.com",
        opening_hours=WEEKDAY_HOURS,
    )
    bike_shop = Business(
        id=uuid.uuid4(),
        owner_id=owner.id,
        name="Dam Fietsen",
        category="bike_shop",
        rating=4.3,
    )
    db.add_all([bakery, cafe, bike_shop])
    db.commit()

    db.add_all([
        Location(
            business_id=bakery.id,
            name=bakery.name,
            street="Prinsengracht 100",
            city="Amsterdam",
            postal_code="1015 EA",
            country="Netherlands",
            lat=52.3745,
            lng=4.8840,
            verified=True,
            source="manual",
        ),
        Location(
            business_id=cafe.id,
            name=cafe.name,
            street="Stationsplein 1",
            city="Utrecht",
            postal_code="3511 ED",
            country="Netherlands",
            lat=52.0907,
            lng=5.1214,
            verified=True,
            source="google_places",
        ),
        # Unverified locations never show up in public search
        Location(
            business_id=bike_shop.id,
            name=bike_shop.name,
            street="Dam 1",
            city="Amsterdam",
            postal_code="1012 JS",
            country="Netherlands",
            lat=52.3731,
            lng=4.8926,
            verified=False,
            source="user_input",
        ),
    ])
    db.commit()
