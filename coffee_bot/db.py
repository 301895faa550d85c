"""
Database connection management for the optional durable state store.

The bot runs without a database by default. When STATE_DATABASE_URL is set,
main.py builds a SqlStateStore on top of the session factory returned here.

Environment variables:
    - STATE_DATABASE_URL: SQLAlchemy connection URL (optional)
"""

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .config import STATE_DATABASE_URL
from .models import Base


def create_state_engine(url: Optional[str] = None) -> Engine:
    """Create an engine for the state database and make sure tables exist."""
    url = url or STATE_DATABASE_URL
    if not url:
        raise ValueError("STATE_DATABASE_URL is not set")

    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    engine = create_engine(
        url,
        pool_pre_ping=True,
        echo=False,
        connect_args=connect_args,
    )
    Base.metadata.create_all(bind=engine)
    return engine


def create_session_factory(engine: Optional[Engine] = None) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine or create_state_engine(),
    )
