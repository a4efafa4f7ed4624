"""SQLAlchemy engine & session factory for the persistence boundary."""

from collections.abc import Iterator
from typing import Optional

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from quizgrade.config import settings

# Lazy initialization - only create engine when first needed
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None  # type: ignore[type-arg]


def get_engine() -> Engine:
    """Get or create SQLAlchemy engine."""
    global _engine
    if _engine is None:
        _engine = create_engine(
            settings.DATABASE_URL,
            echo=settings.DATABASE_ECHO,
            pool_pre_ping=True,
        )
    return _engine


def get_session_factory() -> sessionmaker:  # type: ignore[type-arg]
    """Get or create session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(bind=get_engine(), autocommit=False, autoflush=False)
    return _SessionLocal


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


def init_db(engine: Optional[Engine] = None) -> None:
    """Create all tables on ``engine`` (defaults to the configured one)."""
    # Import for side effects: registers the mapped tables on Base.metadata
    from quizgrade.db import models  # noqa: F401

    Base.metadata.create_all(bind=engine or get_engine())


def get_session() -> Iterator[Session]:
    """Yield a session and close it afterwards."""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()
