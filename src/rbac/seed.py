"""
RBAC Database Seeding

Seeds the permission catalog, the four system roles and their default
grants. Safe to run repeatedly: existing rows are updated, never duplicated.

Usage:
    python -m rbac.seed
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import AgencyMember, Permission, Role, RolePermission
from .taxonomy import (
    DEFAULT_ROLE_PERMISSIONS,
    SYSTEM_ROLES,
    PermissionKey,
    SystemRole,
    all_permissions,
    describe_permission,
)

logger = logging.getLogger(__name__)


@dataclass
class SeedSummary:
    """Rows inserted by one seeding run."""

    permissions_added: int = 0
    roles_added: int = 0
    grants_added: int = 0


async def seed_permissions(session: AsyncSession, summary: SeedSummary) -> Dict[PermissionKey, Permission]:
    """Insert or refresh one row per (resource, action)."""
    result = await session.execute(select(Permission))
    existing = {(p.resource, p.action): p for p in result.scalars().all()}

    permissions: Dict[PermissionKey, Permission] = {}
    for resource, action in sorted(all_permissions(), key=lambda k: (k[0].value, k[1].value)):
        description = describe_permission(resource, action)
        permission = existing.get((resource.value, action.value))
        if permission is None:
            permission = Permission(
                resource=resource.value,
                action=action.value,
                description=description,
            )
            session.add(permission)
            summary.permissions_added += 1
        else:
            permission.description = description
        permissions[(resource, action)] = permission

    return permissions


async def seed_roles(session: AsyncSession, summary: SeedSummary) -> Dict[SystemRole, Role]:
    """Insert or refresh the system roles."""
    result = await session.execute(select(Role).where(Role.is_system.is_(True)))
    existing = {r.code: r for r in result.scalars().all()}

    roles: Dict[SystemRole, Role] = {}
    for system_role, info in SYSTEM_ROLES.items():
        role = existing.get(system_role.value)
        if role is None:
            role = Role(code=system_role.value, is_system=True, agency_id=None)
            session.add(role)
            summary.roles_added += 1
        role.name = info.name
        role.description = info.description
        role.hierarchy_level = info.hierarchy_level
        roles[system_role] = role

    return roles


async def seed_role_permissions(
    session: AsyncSession,
    roles: Dict[SystemRole, Role],
    permissions: Dict[PermissionKey, Permission],
    summary: SeedSummary,
) -> None:
    """Add missing default grants. Grants added by administrators are left alone."""
    result = await session.execute(select(RolePermission.role_id, RolePermission.permission_id))
    existing = {tuple(row) for row in result.all()}

    for system_role, keys in DEFAULT_ROLE_PERMISSIONS.items():
        role = roles[system_role]
        for key in keys:
            permission = permissions[key]
            if (role.role_id, permission.permission_id) in existing:
                continue
            session.add(RolePermission(role_id=role.role_id, permission_id=permission.permission_id))
            summary.grants_added += 1


async def _seed_once(session: AsyncSession) -> SeedSummary:
    summary = SeedSummary()

    permissions = await seed_permissions(session, summary)
    roles = await seed_roles(session, summary)
    # Ids are assigned at flush; grants need them
    await session.flush()
    await seed_role_permissions(session, roles, permissions, summary)
    await session.commit()
    return summary


async def seed_rbac(session: AsyncSession) -> SeedSummary:
    """
    Seed the taxonomy, system roles and default grants, then commit.

    When another process seeds the same database at the same time, the
    losing run rolls back and re-reads what the winner committed.

    Returns:
        SeedSummary with the number of rows inserted
    """
    try:
        summary = await _seed_once(session)
    except IntegrityError:
        await session.rollback()
        logger.info("RBAC seed rows were committed concurrently, re-reading")
        summary = await _seed_once(session)

    logger.info(
        f"RBAC seed complete: {summary.permissions_added} permissions, "
        f"{summary.roles_added} roles, {summary.grants_added} grants added"
    )
    return summary


async def assign_member_role(
    session: AsyncSession,
    user_id: str,
    agency_id: str,
    role_code: str,
    email: Optional[str] = None,
) -> AgencyMember:
    """
    Put a user into an agency with a system role, replacing any previous role.

    Raises:
        ValueError: If no system role has ``role_code``
    """
    result = await session.execute(
        select(Role).where(Role.code == role_code, Role.is_system.is_(True))
    )
    role = result.scalar_one_or_none()
    if role is None:
        raise ValueError(f"Unknown role: {role_code}")

    member = await session.get(AgencyMember, (user_id, agency_id))
    if member is None:
        member = AgencyMember(user_id=user_id, agency_id=agency_id)
        session.add(member)
    member.role_id = role.role_id
    member.email = email
    member.is_owner = role_code == SystemRole.OWNER.value
    await session.commit()
    return member


async def _main() -> None:
    from database import create_engine, get_session_factory, init_database

    engine = create_engine()
    try:
        await init_database(engine)
        async with get_session_factory(engine)() as session:
            summary = await seed_rbac(session)
    finally:
        await engine.dispose()

    print(f"✓ Seeded {len(all_permissions())} permissions and {len(SYSTEM_ROLES)} roles")
    print(f"  + {summary.permissions_added} permissions, {summary.roles_added} roles, "
          f"{summary.grants_added} grants added")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(_main())
