"""
Database layer for the command center.

This module provides:
- The shared SQLAlchemy declarative base
- Async engine and session factory construction
- Schema bootstrap for SQLite development databases
"""

from .models import Base, utcnow
from .async_engine import (
    create_engine,
    get_session_factory,
    init_database,
    check_database_connection,
)

__all__ = [
    "Base",
    "utcnow",
    "create_engine",
    "get_session_factory",
    "init_database",
    "check_database_connection",
]
