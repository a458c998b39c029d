#!/usr/bin/env python3
"""Create the prediction ledger schema.

Usage:
  python -m db.init_db

Requirements:
  - DATABASE_URL must be set
"""

from __future__ import annotations

import asyncio
import logging
import os

from db.models.oracle import Base
from db.session import create_session_factory

logger = logging.getLogger(__name__)


async def init_schema(database_url: str) -> None:
    factory = create_session_factory(database_url)
    engine = factory.kw["bind"]
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    finally:
        await engine.dispose()
    logger.info("Schema ready: %s", ", ".join(sorted(Base.metadata.tables)))


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        raise SystemExit("DATABASE_URL is not set")
    asyncio.run(init_schema(database_url))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
