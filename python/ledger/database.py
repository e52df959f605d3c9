"""
Database Connection Module

Provides SQLAlchemy engine creation for the reference stores.
"""

import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from .schema import metadata

# Database URL from environment
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql://{os.getenv('POSTGRES_USER', 'ledger')}:"
    f"{os.getenv('POSTGRES_PASSWORD', 'password')}@"
    f"{os.getenv('POSTGRES_HOST', 'localhost')}:"
    f"{os.getenv('POSTGRES_PORT', '5432')}/"
    f"{os.getenv('POSTGRES_DB', 'ledger')}"
)


def create_db_engine(url: str | None = None) -> Engine:
    """Create an engine for the given URL (defaults to DATABASE_URL).

    In-memory SQLite URLs share one connection so every caller sees the same
    database.
    """
    url = url or DATABASE_URL

    if url.startswith("sqlite"):
        if url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(url, connect_args={"check_same_thread": False})

    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )


def init_schema(engine: Engine) -> None:
    """Create the ledger tables if they do not exist."""
    metadata.create_all(engine)
