#!/usr/bin/env python3
"""Setup script for the bus booking API: migrate the schema and seed sample trips."""

import asyncio
import logging
import sys
from datetime import timedelta
from pathlib import Path

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from alembic import command  # noqa: E402
from alembic.config import Config  # noqa: E402
from sqlalchemy import func, select  # noqa: E402

from busbooking.core.clock import utcnow  # noqa: E402
from busbooking.core.database import async_session_factory, close_db  # noqa: E402
from busbooking.models import Trip  # noqa: E402
from busbooking.schemas.trip import CreateTripRequest  # noqa: E402
from busbooking.services.trip_service import TripService  # noqa: E402

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SAMPLE_ROUTES = [
    ("Shree Ram Travels AC Sleeper", "Mumbai", "Pune", 500),
    ("Shree Ram Travels Volvo", "Pune", "Goa", 1200),
    ("Shree Ram Travels Express", "Mumbai", "Nashik", 450),
]


def migrate_database() -> None:
    """Run Alembic migrations up to head."""
    logger.info("Running database migrations...")
    alembic_cfg = Config(str(server_dir / "db" / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(server_dir / "db" / "alembic"))
    command.upgrade(alembic_cfg, "head")
    logger.info("Database migrations completed")


async def create_sample_data() -> None:
    """Create a week of sample trips unless trips already exist."""
    logger.info("Creating sample data...")

    async with async_session_factory() as db:
        existing = await db.execute(select(func.count(Trip.id)))
        if existing.scalar_one() > 0:
            logger.info("Sample data already exists, skipping...")
            return

        trip_service = TripService(db)
        base_time = utcnow().replace(hour=21, minute=0, second=0, microsecond=0) + timedelta(days=1)
        for day in range(7):
            for name, origin, destination, fare in SAMPLE_ROUTES:
                await trip_service.create_trip(CreateTripRequest(
                    name=name,
                    origin=origin,
                    destination=destination,
                    departure_time=base_time + timedelta(days=day),
                    seat_count=40,
                    fare_amount=fare,
                ))

    logger.info("Sample data created successfully!")


async def seed() -> None:
    try:
        await create_sample_data()
    finally:
        await close_db()


def main() -> None:
    """Main setup function."""
    logger.info("Starting bus booking API setup...")

    # Alembic's env.py runs its own event loop, so migrate before starting ours
    migrate_database()
    asyncio.run(seed())

    logger.info("Setup completed successfully!")
    logger.info("You can now start the API server with: cd server && uvicorn busbooking.main:app --reload")


if __name__ == "__main__":
    main()
