"""Async engine and session factory for the prediction ledger."""

from __future__ import annotations

import os
from urllib.parse import urlsplit

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine


def _pg_ssl_connect_args_from_env() -> dict[str, str]:
    """Build libpq-style SSL kwargs from the standard PG* environment variables."""
    mapping = {
        "sslmode": os.environ.get("PGSSLMODE"),
        "sslrootcert": os.environ.get("PGSSLROOTCERT"),
    }
    return {k: v for k, v in mapping.items() if v}


def normalize_database_url(database_url: str) -> str:
    """Normalize DATABASE_URL to an async SQLAlchemy URL.

    Supports:
    - Bare: host:port/dbname or user:pass@host:port/dbname
    - postgresql:// and postgres://
    - postgresql+<driver>:// (e.g. psycopg2)
    - postgresql+asyncpg://
    """
    if "://" not in database_url:
        candidate = f"postgresql+asyncpg://{database_url}"
        parsed = urlsplit(candidate)
        if not parsed.netloc or parsed.path in {"", "/"}:
            raise ValueError("Unsupported DATABASE_URL format. Expected host:port/dbname or user:pass@host:port/dbname")
        return candidate

    if database_url.startswith("postgresql+asyncpg://"):
        return database_url
    if database_url.startswith("postgresql+"):
        return "postgresql+asyncpg://" + database_url.split("://", 1)[1]
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql+asyncpg://", 1)

    return database_url


def create_session_factory(database_url: str) -> async_sessionmaker[AsyncSession]:
    """Create an engine for ``database_url`` and return its session factory.

    Callers own the returned factory; nothing is cached at module level.
    """
    engine = create_async_engine(
        normalize_database_url(database_url),
        echo=False,
        pool_pre_ping=True,
        connect_args={"timeout": 3, **_pg_ssl_connect_args_from_env()},
    )
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
