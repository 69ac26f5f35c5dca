"""
Role-Based Access Control (RBAC)

Hierarchical roles with (resource, action) permissions, per-client grants
for the Member role and a request guard for route handlers.

Hierarchy (lower level = more privilege):
    Level 1 - owner
    Level 2 - admin
    Level 3 - manager
    Level 4 - member   (client-scoped: needs an explicit grant per client)

Usage:
    from rbac import PermissionGuard, Resource, Action

    @router.get("/clients/{client_id}")
    @guard.protect_route(Resource.CLIENTS, Action.READ)
    async def get_client(request, identity):
        ...
"""

from .taxonomy import (
    Resource,
    Action,
    PermissionKey,
    SystemRole,
    RoleInfo,
    SYSTEM_ROLES,
    DEFAULT_ROLE_PERMISSIONS,
    CLIENT_SCOPED_RESOURCES,
    UnknownPermissionError,
    all_permissions,
    describe_permission,
)
from .identity import AuthenticatedIdentity, AuthenticationError
from .store import RoleStore, SqlAlchemyRoleStore
from .client_scope import ClientScopeResolver, SqlAlchemyClientScopeResolver
from .audit import AccessLogBackend, InMemoryAccessLog, SqlAlchemyAccessLog
from .service import PermissionResult, PermissionService
from .jwt import JWTAuthenticator, create_access_token, decode_token, decode_token_safe
from .errors import ErrorCode, create_error_response
from .extractors import client_id_from_path, resource_id_from_path
from .middleware import PermissionGuard, get_identity
from .seed import seed_rbac, assign_member_role

__all__ = [
    # Taxonomy
    "Resource",
    "Action",
    "PermissionKey",
    "SystemRole",
    "RoleInfo",
    "SYSTEM_ROLES",
    "DEFAULT_ROLE_PERMISSIONS",
    "CLIENT_SCOPED_RESOURCES",
    "UnknownPermissionError",
    "all_permissions",
    "describe_permission",

    # Identity
    "AuthenticatedIdentity",
    "AuthenticationError",
    "JWTAuthenticator",
    "create_access_token",
    "decode_token",
    "decode_token_safe",

    # Storage
    "RoleStore",
    "SqlAlchemyRoleStore",
    "ClientScopeResolver",
    "SqlAlchemyClientScopeResolver",
    "AccessLogBackend",
    "InMemoryAccessLog",
    "SqlAlchemyAccessLog",

    # Decisions
    "PermissionResult",
    "PermissionService",

    # Route protection
    "PermissionGuard",
    "get_identity",
    "ErrorCode",
    "create_error_response",
    "client_id_from_path",
    "resource_id_from_path",

    # Seeding
    "seed_rbac",
    "assign_member_role",
]
