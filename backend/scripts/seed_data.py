"""
Seed a fresh database for local development.

Creates:
- the first admin (SEED_ADMIN_EMAIL / SEED_ADMIN_PASSWORD)
- one user per remaining role, sharing the admin password
- 5 vehicles
- 30 pending deliveries for tomorrow

Users whose email already exists are left untouched, so the script can be
re-run to add sample fleet data without duplicating accounts.
"""
import asyncio
import os
import random
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import fleet_planner.models  # noqa: F401
from fleet_planner.core.config import settings
from fleet_planner.core.database import Base
from fleet_planner.core.security import get_password_hash
from fleet_planner.models.delivery import Delivery
from fleet_planner.models.user import User, UserRole
from fleet_planner.models.vehicle import Vehicle

# Depot area used for sample coordinates
CITY_LAT_MIN = 41.20
CITY_LAT_MAX = 41.40
CITY_LON_MIN = 69.10
CITY_LON_MAX = 69.40

CUSTOMERS = [
    "Korzinka", "Makro", "Havas", "Artel", "Ideal", "Grand", "Premium",
    "City", "Golden", "Star", "Diamond", "Pearl", "Royal", "Elite",
]

STREETS = [
    "Amir Temur", "Mustaqillik", "Navoiy", "Bunyodkor", "Shota Rustaveli",
    "Bobur", "Afrosiyob", "Nukus", "Chilonzor",
]

VEHICLE_TYPES = [
    ("Isuzu NPR", 2000, 15),
    ("Hyundai HD", 3000, 20),
    ("Isuzu NQR", 4000, 25),
    ("Hino 300", 3500, 22),
    ("Fuso Canter", 2500, 18),
]


def random_coordinates() -> tuple[Decimal, Decimal]:
    lat = random.uniform(CITY_LAT_MIN, CITY_LAT_MAX)
    lon = random.uniform(CITY_LON_MIN, CITY_LON_MAX)
    return Decimal(f"{lat:.6f}"), Decimal(f"{lon:.6f}")


def random_phone() -> str:
    return f"+998{random.choice(['90', '91', '93', '94', '97'])}{random.randint(1000000, 9999999)}"


async def create_users(session: AsyncSession, admin_email: str, password: str) -> list[User]:
    """Create the admin and one user per other role, skipping existing emails."""
    local, _, domain = admin_email.partition("@")
    wanted = [(admin_email, "Administrator", UserRole.ADMIN)] + [
        (f"{local}+{role.value}@{domain}", role.value.replace("_", " ").title(), role)
        for role in (UserRole.TRIP_PLANNER, UserRole.DELIVERY_CREATOR, UserRole.VIEWER)
    ]

    existing = set(
        (await session.execute(
            select(User.email).where(User.email.in_([email for email, _, _ in wanted]))
        )).scalars().all()
    )

    users = []
    hashed = get_password_hash(password)
    for email, full_name, role in wanted:
        if email in existing:
            print(f"User {email} exists, skipping")
            continue
        user = User(email=email, hashed_password=hashed, full_name=full_name, role=role)
        session.add(user)
        users.append(user)

    await session.flush()
    print(f"Created {len(users)} users")
    return users


async def create_vehicles(session: AsyncSession, count: int = 5) -> list[Vehicle]:
    """Create sample vehicles."""
    vehicles = []

    for i in range(count):
        model, capacity_weight, capacity_volume = VEHICLE_TYPES[i % len(VEHICLE_TYPES)]
        lat, lon = random_coordinates()

        vehicle = Vehicle(
            name=f"{model} #{i + 1}",
            license_plate=f"01{chr(65 + i)}{random.randint(100, 999)}AA",
            capacity_weight=float(capacity_weight),
            capacity_volume=float(capacity_volume),
            current_latitude=lat,
            current_longitude=lon,
            start_location="Main depot",
        )
        session.add(vehicle)
        vehicles.append(vehicle)

    await session.flush()
    print(f"Created {len(vehicles)} vehicles")
    return vehicles


async def create_deliveries(session: AsyncSession, created_by: Optional[User], count: int = 30) -> list[Delivery]:
    """Create pending deliveries scheduled for tomorrow."""
    deliveries = []
    tomorrow = date.today() + timedelta(days=1)

    for i in range(count):
        lat, lon = random_coordinates()
        delivery = Delivery(
            customer_name=f"{random.choice(CUSTOMERS)} #{i + 1}",
            customer_phone=random_phone(),
            delivery_address=f"{random.choice(STREETS)} street, {random.randint(1, 150)}",
            latitude=lat,
            longitude=lon,
            scheduled_date=tomorrow,
            weight=float(random.randint(10, 500)),
            volume=round(random.uniform(0.1, 2.0), 2),
            created_by=created_by.id if created_by else None,
        )
        session.add(delivery)
        deliveries.append(delivery)

    await session.flush()
    print(f"Created {len(deliveries)} deliveries for {tomorrow}")
    return deliveries


async def main():
    """Seed users and sample fleet data."""
    admin_email = os.environ.get("SEED_ADMIN_EMAIL", "admin@fleetco.com")
    password = os.environ.get("SEED_ADMIN_PASSWORD")
    if not password:
        raise SystemExit("SEED_ADMIN_PASSWORD must be set")

    engine = create_async_engine(settings.DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(engine, expire_on_commit=False)

    async with async_session() as session:
        try:
            users = await create_users(session, admin_email, password)
            vehicles = await create_vehicles(session)
            creator = next((u for u in users if u.role == UserRole.DELIVERY_CREATOR), None)
            deliveries = await create_deliveries(session, creator)

            await session.commit()

            print("=" * 50)
            print("Seed complete")
            print(f"  - Users: {len(users)}")
            print(f"  - Vehicles: {len(vehicles)}")
            print(f"  - Deliveries: {len(deliveries)}")
            print("=" * 50)

        except Exception as e:
            await session.rollback()
            print(f"Error: {e}")
            raise

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
