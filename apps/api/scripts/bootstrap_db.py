"""Create the database schema for development."""
from __future__ import annotations

import argparse
import asyncio
import logging

import app.models  # noqa: F401 - register tables on the metadata
from app.core.config import settings
from app.core.logging import setup_logging
from app.db.session import engine
from app.models.base import Base

logger = logging.getLogger("bootstrap_db")


async def bootstrap(*, drop: bool = False) -> None:
    async with engine.begin() as conn:
        if drop:
            logger.warning("Dropping existing tables")
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    logger.info("Schema ready: %s", ", ".join(sorted(Base.metadata.tables)))


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--drop", action="store_true", help="drop tables before creating them")
    args = parser.parse_args()

    setup_logging(settings.log_level)
    asyncio.run(bootstrap(drop=args.drop))


if __name__ == "__main__":
    main()
