"""
Permission Service.

Answers "does user U in agency A hold (resource, action), optionally for
client C" and appends one access log entry per answer.

Evaluation order:
    1. No role for the user in the agency          -> deny
    2. Privileged band (level <= cutoff), unless
       this is a Member client-scoped check        -> allow
    3. Member with a client id                     -> per-client grant decides
    4. Everyone else                               -> role_permissions decides
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import FrozenSet, Optional, Union

from config.settings import RBACSettings
from .audit import AccessLogBackend, build_entry
from .client_scope import ClientScopeResolver
from .models import Role
from .store import RoleStore
from .taxonomy import (
    Action,
    PermissionKey,
    Resource,
    UnknownPermissionError,
    all_permissions,
    tag_value as _tag,
)

logger = logging.getLogger(__name__)


REASON_ROLE_NOT_FOUND = "role not found"
REASON_PRIVILEGED_ROLE = "privileged role"
REASON_CLIENT_ACCESS_GRANTED = "client access granted"
REASON_CLIENT_ACCESS_DENIED = "client access denied"
REASON_PERMISSION_ASSIGNED = "permission assigned"
REASON_PERMISSION_NOT_ASSIGNED = "permission not assigned"


@dataclass(frozen=True)
class PermissionResult:
    """Outcome of a single permission check."""

    has_permission: bool
    reason: str

    def __bool__(self) -> bool:
        return self.has_permission


class PermissionService:
    """Evaluates permission checks against the role store and client grants."""

    def __init__(
        self,
        store: RoleStore,
        client_scope: ClientScopeResolver,
        audit: Optional[AccessLogBackend] = None,
        settings: Optional[RBACSettings] = None,
    ):
        self.store = store
        self.client_scope = client_scope
        self.audit = audit
        self.settings = settings or RBACSettings()

    def is_privileged(self, role: Role) -> bool:
        return role.hierarchy_level <= self.settings.privileged_max_level

    def is_member(self, role: Role) -> bool:
        return role.hierarchy_level >= self.settings.member_level

    async def has_permission(
        self,
        user_id: str,
        agency_id: str,
        resource: Union[Resource, str],
        action: Union[Action, str],
        client_id: Optional[str] = None,
    ) -> PermissionResult:
        """
        Check one permission and record the decision.

        Args:
            user_id: Authenticated user
            agency_id: Tenant the check is scoped to
            resource: Resource tag
            action: Action tag
            client_id: Client the request targets, if any

        Returns:
            PermissionResult with the decision and its reason. Tags outside
            the taxonomy have no permission row, so they are "not assigned".
        """
        try:
            resource = Resource.parse(resource)
            action = Action.parse(action)
        except UnknownPermissionError:
            result = PermissionResult(False, REASON_PERMISSION_NOT_ASSIGNED)
        else:
            result = await self._evaluate(user_id, agency_id, resource, action, client_id)

        permission = f"{_tag(resource)}:{_tag(action)}"
        if result.has_permission:
            logger.debug(
                f"Permission granted: {permission} ({result.reason})",
                extra={"user_id": user_id, "agency_id": agency_id, "client_id": client_id},
            )
        else:
            logger.warning(
                f"Permission denied: {permission} ({result.reason})",
                extra={"user_id": user_id, "agency_id": agency_id, "client_id": client_id},
            )

        await self._record(user_id, agency_id, resource, action, client_id, result)
        return result

    async def _evaluate(
        self,
        user_id: str,
        agency_id: str,
        resource: Resource,
        action: Action,
        client_id: Optional[str],
    ) -> PermissionResult:
        role = await self.store.get_user_role(user_id, agency_id)
        if role is None:
            return PermissionResult(False, REASON_ROLE_NOT_FOUND)

        member_client_check = self.is_member(role) and bool(client_id)

        if self.is_privileged(role) and not member_client_check:
            return PermissionResult(True, REASON_PRIVILEGED_ROLE)

        if member_client_check:
            if await self.client_scope.has_client_access(user_id, agency_id, client_id):
                return PermissionResult(True, REASON_CLIENT_ACCESS_GRANTED)
            return PermissionResult(False, REASON_CLIENT_ACCESS_DENIED)

        if await self.store.has_direct_permission(role.role_id, resource, action):
            return PermissionResult(True, REASON_PERMISSION_ASSIGNED)
        return PermissionResult(False, REASON_PERMISSION_NOT_ASSIGNED)

    async def _record(
        self,
        user_id: str,
        agency_id: str,
        resource: Union[Resource, str],
        action: Union[Action, str],
        client_id: Optional[str],
        result: PermissionResult,
    ) -> None:
        if self.audit is None or not self.settings.audit_enabled:
            return

        entry = build_entry(
            user_id=user_id,
            agency_id=agency_id,
            resource=resource,
            action=action,
            allowed=result.has_permission,
            reason=result.reason,
            client_id=client_id,
        )
        try:
            await self.audit.append(entry)
        except Exception as e:
            logger.warning(f"Failed to log permission check: {e}")

    async def get_effective_permissions(self, user_id: str, agency_id: str) -> FrozenSet[PermissionKey]:
        """
        Permissions the user holds outside client scoping.

        Roles in the privileged band hold the whole taxonomy.
        """
        role = await self.store.get_user_role(user_id, agency_id)
        if role is None:
            return frozenset()
        if self.is_privileged(role):
            return all_permissions()
        return frozenset(await self.store.list_role_permissions(role.role_id))
