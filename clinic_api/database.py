"""
Database connection and session management.
Provides SQLAlchemy engine construction, session dependencies and the two
declarative bases: one for the central registry, one for tenant databases.
"""
from typing import Any, Dict

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

# Tables living in the central registry database
CentralBase = declarative_base()

# Tables created inside every tenant database
TenantBase = declarative_base()


def build_engine(url: str, timeout_seconds: int = 10) -> Engine:
    """
    Create a SQLAlchemy engine with bounded connect and statement times.

    Args:
        url: Database connection string
        timeout_seconds: Upper bound for connecting and for a single statement

    Returns:
        Engine: Configured engine (no connection is opened yet)
    """
    connect_args: Dict[str, Any] = {}
    if url.startswith("sqlite"):
        # Sessions are used from the request threadpool
        connect_args = {"check_same_thread": False, "timeout": timeout_seconds}
    elif url.startswith("postgresql"):
        connect_args = {
            "connect_timeout": timeout_seconds,
            "options": f"-c statement_timeout={timeout_seconds * 1000}",
        }
    return create_engine(url, connect_args=connect_args, pool_pre_ping=True)


def get_db(request: Request):
    """
    Database dependency - Creates and yields a central database session.

    The session is automatically closed after the request is processed,
    even if an exception occurs during request handling.

    Yields:
        SQLAlchemy Session: Database session
    """
    db = request.app.state.container.session_factory()
    try:
        yield db
    finally:
        db.close()
