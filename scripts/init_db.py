"""Script to initialize the database."""

import asyncio

from sqlalchemy import text

from dental_clinic.database import engine
from dental_clinic.models import metadata


async def init_db() -> None:
    """Create all tables; on PostgreSQL also enable pgcrypto for server-side UUIDs."""
    async with engine.begin() as conn:
        if conn.dialect.name == "postgresql":
            await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))

        await conn.run_sync(metadata.create_all)

    await engine.dispose()
    print("✓ Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(init_db())
