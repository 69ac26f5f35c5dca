"""
Client-Scope Resolver.

Decides whether a Member-level user may operate on one specific client.
Access exists only through an explicit ``member_client_access`` grant inside
the same agency; no grant means no access, never an error.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .models import MemberClientAccess

logger = logging.getLogger(__name__)


class ClientScopeResolver(ABC):
    """Per-client access grants for Member-level users."""

    @abstractmethod
    async def has_client_access(self, user_id: str, agency_id: str, client_id: str) -> bool:
        """True iff a grant links the user to the client within the agency."""

    @abstractmethod
    async def grant_access(
        self,
        user_id: str,
        agency_id: str,
        client_id: str,
        granted_by: Optional[str] = None,
    ) -> MemberClientAccess:
        """Create a grant, returning the existing one when already present."""

    @abstractmethod
    async def revoke_access(self, user_id: str, agency_id: str, client_id: str) -> bool:
        """Remove a grant. Returns False when there was nothing to revoke."""

    @abstractmethod
    async def list_client_ids(self, user_id: str, agency_id: str) -> List[str]:
        """Client ids the user has been granted, sorted."""


class SqlAlchemyClientScopeResolver(ClientScopeResolver):
    """Client-scope resolver backed by the ``member_client_access`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @staticmethod
    def _grant_query(user_id: str, agency_id: str, client_id: str):
        return select(MemberClientAccess).where(
            MemberClientAccess.user_id == user_id,
            MemberClientAccess.agency_id == agency_id,
            MemberClientAccess.client_id == client_id,
        )

    async def has_client_access(self, user_id: str, agency_id: str, client_id: str) -> bool:
        stmt = self._grant_query(user_id, agency_id, client_id).limit(1)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none() is not None

    async def grant_access(
        self,
        user_id: str,
        agency_id: str,
        client_id: str,
        granted_by: Optional[str] = None,
    ) -> MemberClientAccess:
        async with self._session_factory() as session:
            result = await session.execute(self._grant_query(user_id, agency_id, client_id))
            grant = result.scalar_one_or_none()
            if grant is not None:
                return grant

            grant = MemberClientAccess(
                user_id=user_id,
                agency_id=agency_id,
                client_id=client_id,
                granted_by=granted_by,
            )
            session.add(grant)
            try:
                await session.commit()
            except IntegrityError:
                # A concurrent grant for the same client won the insert
                await session.rollback()
                result = await session.execute(self._grant_query(user_id, agency_id, client_id))
                existing = result.scalar_one_or_none()
                if existing is None:
                    raise
                return existing

        logger.info(
            f"Granted client {client_id} to user {user_id}",
            extra={"agency_id": agency_id, "granted_by": granted_by},
        )
        return grant

    async def revoke_access(self, user_id: str, agency_id: str, client_id: str) -> bool:
        stmt = delete(MemberClientAccess).where(
            MemberClientAccess.user_id == user_id,
            MemberClientAccess.agency_id == agency_id,
            MemberClientAccess.client_id == client_id,
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()

        revoked = (result.rowcount or 0) > 0
        if revoked:
            logger.info(
                f"Revoked client {client_id} from user {user_id}",
                extra={"agency_id": agency_id},
            )
        return revoked

    async def list_client_ids(self, user_id: str, agency_id: str) -> List[str]:
        stmt = (
            select(MemberClientAccess.client_id)
            .where(
                MemberClientAccess.user_id == user_id,
                MemberClientAccess.agency_id == agency_id,
            )
            .order_by(MemberClientAccess.client_id)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())
