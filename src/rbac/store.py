"""
Role & Permission Store.

Answers "what role does this user hold in this agency", "what is the role's
hierarchy level" and "is (resource, action) assigned to the role". The store
never raises for a missing permission: that is a plain ``False``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .models import AgencyMember, Permission, Role, RolePermission
from .taxonomy import Action, PermissionKey, Resource

logger = logging.getLogger(__name__)


class RoleStore(ABC):
    """Read-only role and permission lookups."""

    @abstractmethod
    async def get_role(self, role_id: str) -> Optional[Role]:
        """Get a role by id, or None."""

    @abstractmethod
    async def get_user_role(self, user_id: str, agency_id: str) -> Optional[Role]:
        """Get the role a user holds in an agency, or None."""

    @abstractmethod
    async def has_direct_permission(self, role_id: str, resource: Resource, action: Action) -> bool:
        """True iff a role_permissions row links the role to (resource, action)."""

    @abstractmethod
    async def list_role_permissions(self, role_id: str) -> List[PermissionKey]:
        """All taxonomy permissions assigned to the role."""

    @abstractmethod
    async def list_roles(self, agency_id: Optional[str] = None) -> List[Role]:
        """System roles plus the agency's own roles, most privileged first."""


class SqlAlchemyRoleStore(RoleStore):
    """Role store backed by the relational database."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_role(self, role_id: str) -> Optional[Role]:
        async with self._session_factory() as session:
            return await session.get(Role, role_id)

    async def get_user_role(self, user_id: str, agency_id: str) -> Optional[Role]:
        stmt = (
            select(Role)
            .join(AgencyMember, AgencyMember.role_id == Role.role_id)
            .where(
                AgencyMember.user_id == user_id,
                AgencyMember.agency_id == agency_id,
            )
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def has_direct_permission(self, role_id: str, resource: Resource, action: Action) -> bool:
        stmt = (
            select(RolePermission.role_id)
            .join(Permission, Permission.permission_id == RolePermission.permission_id)
            .where(
                RolePermission.role_id == role_id,
                Permission.resource == resource.value,
                Permission.action == action.value,
            )
            .limit(1)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.first() is not None

    async def list_role_permissions(self, role_id: str) -> List[PermissionKey]:
        stmt = (
            select(Permission)
            .join(RolePermission, RolePermission.permission_id == Permission.permission_id)
            .where(RolePermission.role_id == role_id)
            .order_by(Permission.resource, Permission.action)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            permissions = result.scalars().all()

        keys = []
        for permission in permissions:
            key = permission.key
            if key is None:
                logger.warning(f"Ignoring permission outside taxonomy: {permission!r}")
                continue
            keys.append(key)
        return keys

    async def list_roles(self, agency_id: Optional[str] = None) -> List[Role]:
        conditions = [Role.is_system.is_(True)]
        if agency_id is not None:
            conditions.append(Role.agency_id == agency_id)

        stmt = (
            select(Role)
            .where(or_(*conditions))
            .order_by(Role.hierarchy_level.asc(), Role.code.asc())
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())
