"""Script to initialize the database."""

import asyncio

from medtech.database import engine
from medtech.models import metadata


async def init_db() -> None:
    """Initialize the database by creating all tables."""
    async with engine.begin() as conn:
        # Create all tables, including the active-slot unique index
        await conn.run_sync(metadata.create_all)

    print("✓ Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(init_db())
