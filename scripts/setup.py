#!/usr/bin/env python3
"""Setup script for the stay ledger API."""

import asyncio
import logging
import sys
from decimal import Decimal
from pathlib import Path

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from alembic import command
from alembic.config import Config
from sqlalchemy import func, select

from stayledger.core.database import async_session_factory, close_db
from stayledger.models import Room, RoomType, TaxAppliesTo, TaxRule

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def setup_database():
    """Bring the schema up to the latest migration."""
    logger.info("Setting up database...")

    alembic_cfg = Config(str(server_dir / "db" / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(server_dir / "db" / "alembic"))

    logger.info("Running database migrations...")
    command.upgrade(alembic_cfg, "head")
    logger.info("Database migrations completed")


async def create_sample_data():
    """Create room types, rooms and a tax rule to try the API against."""
    logger.info("Creating sample data...")

    async with async_session_factory() as db:
        try:
            existing = await db.scalar(select(func.count()).select_from(RoomType))
            if existing:
                logger.info("Sample data already exists, skipping...")
                return

            standard = RoomType(name="Standard", base_price=Decimal("1000.00"), capacity=2)
            deluxe = RoomType(name="Deluxe", base_price=Decimal("1800.00"), capacity=3)
            db.add_all([standard, deluxe])
            await db.flush()

            for floor in (1, 2):
                for slot in range(1, 5):
                    db.add(Room(
                        room_number=f"R{floor}0{slot}",
                        room_type_id=standard.id if slot < 4 else deluxe.id,
                        floor=floor,
                    ))

            db.add(TaxRule(name="GST", rate=Decimal("12.000"), applies_to=TaxAppliesTo.ALL.value))

            await db.commit()
            logger.info("Sample data created successfully!")

        except Exception as e:
            await db.rollback()
            logger.error("Failed to create sample data", extra={"error": str(e)})
            raise


async def main():
    """Main setup function."""
    logger.info("Starting stay ledger API setup...")

    # env.py runs its own event loop, so migrations go through a worker thread
    await asyncio.to_thread(setup_database)

    await create_sample_data()
    await close_db()

    logger.info("Setup completed successfully!")
    logger.info("You can now start the API server with: cd server && uvicorn stayledger.main:app --reload")


if __name__ == "__main__":
    asyncio.run(main())
