"""
Access Log Storage Backends

Every authorization decision is appended as one ``access_log`` row.
Provides an in-memory backend (tests, local tooling) and a SQLAlchemy
backend (production). Backends may raise; the permission service treats
writes as best-effort.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.models import utcnow
from .models import AccessDecision, AccessLogEntry
from .taxonomy import Action, Resource, tag_value

logger = logging.getLogger(__name__)


def build_entry(
    user_id: str,
    agency_id: Optional[str],
    resource: Union[Resource, str],
    action: Union[Action, str],
    allowed: bool,
    reason: str,
    client_id: Optional[str] = None,
) -> AccessLogEntry:
    """Build an unsaved access log row for one decision."""
    return AccessLogEntry(
        timestamp=utcnow(),
        user_id=user_id,
        agency_id=agency_id,
        resource=tag_value(resource),
        action=tag_value(action),
        decision=(AccessDecision.ALLOWED if allowed else AccessDecision.DENIED).value,
        client_id=client_id,
        reason=reason,
    )


class AccessLogBackend(ABC):
    """Abstract base class for access log backends."""

    @abstractmethod
    async def append(self, entry: AccessLogEntry) -> None:
        """Persist one entry."""
        pass

    @abstractmethod
    async def list_recent(self, agency_id: str, limit: int = 100) -> List[AccessLogEntry]:
        """Newest entries for an agency, newest first."""
        pass


class InMemoryAccessLog(AccessLogBackend):
    """
    In-memory access log for testing and development.

    Not persistent - data lost on restart.
    """

    def __init__(self):
        self._entries: List[AccessLogEntry] = []

    async def append(self, entry: AccessLogEntry) -> None:
        self._entries.append(entry)

    async def list_recent(self, agency_id: str, limit: int = 100) -> List[AccessLogEntry]:
        entries = [e for e in self._entries if e.agency_id == agency_id]
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries[:limit]

    @property
    def entries(self) -> List[AccessLogEntry]:
        return list(self._entries)

    def clear(self) -> None:
        """Clear all entries (for testing)."""
        self._entries.clear()

    def count(self) -> int:
        return len(self._entries)


class SqlAlchemyAccessLog(AccessLogBackend):
    """
    Database-backed access log.

    Each append runs in its own session so a failed audit write can never
    roll back or poison the caller's unit of work.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def append(self, entry: AccessLogEntry) -> None:
        async with self._session_factory() as session:
            session.add(entry)
            await session.commit()

    async def list_recent(self, agency_id: str, limit: int = 100) -> List[AccessLogEntry]:
        stmt = (
            select(AccessLogEntry)
            .where(AccessLogEntry.agency_id == agency_id)
            .order_by(AccessLogEntry.timestamp.desc())
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())
