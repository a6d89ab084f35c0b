"""SQLModel engine and session management.

This module provides:
- Database engine creation (pooled for PostgreSQL, shared for SQLite)
- Session dependency for FastAPI routes
- Database initialization utilities
"""

from typing import Generator

from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from publisher.config import DATABASE_URL


def build_engine(database_url: str):
    """Create an engine suited to the database backend.

    SQLite is used for local runs and tests; a single shared connection
    keeps in-memory databases alive across sessions.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    # pool_pre_ping ensures connections are valid before use
    return create_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )


engine = build_engine(DATABASE_URL)


def get_session_dependency() -> Generator[Session, None, None]:
    """FastAPI dependency for database sessions.

    Usage in FastAPI:
        @router.get("/connections")
        def list_connections(session: Session = Depends(get_session_dependency)):
            ...
    """
    with Session(engine) as session:
        yield session


def init_db() -> None:
    """Create all tables defined in SQLModel models."""
    # Import all models to ensure they're registered with SQLModel
    from publisher.db.models import (  # noqa: F401
        User,
        Subscription,
        Credential,
    )

    SQLModel.metadata.create_all(engine)

