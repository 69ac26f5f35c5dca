"""
RBAC API

Provides:
1. GET    /rbac/my-role            - Caller's role in the current agency
2. GET    /rbac/my-permissions     - Caller's effective permissions
3. GET    /rbac/member-access      - Can the caller work on ?client_id=
4. GET    /rbac/roles              - Roles with their permissions (roles:read)
5. POST   /rbac/member-access      - Grant a Member access to a client (users:manage)
6. DELETE /rbac/member-access/{user_id}/{client_id} - Revoke a grant (users:manage)
7. GET    /rbac/access-log         - Recent authorization decisions (settings:manage)
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from config.settings import RBACSettings
from rbac.errors import ErrorCode, create_error_response
from rbac.identity import AuthenticatedIdentity
from rbac.middleware import PermissionGuard
from rbac.taxonomy import Action, Resource

logger = logging.getLogger(__name__)


class MemberAccessGrant(BaseModel):
    """Request body for granting a Member access to one client."""
    user_id: str = Field(..., min_length=1, max_length=64)
    client_id: str = Field(..., min_length=1, max_length=64)


def _permission_codes(keys) -> List[str]:
    return sorted(f"{resource.value}:{action.value}" for resource, action in keys)


def _validation_error(message: str, details: Optional[dict] = None) -> JSONResponse:
    return create_error_response(ErrorCode.VALIDATION_ERROR, message, details=details)


def create_rbac_router(guard: PermissionGuard, settings: Optional[RBACSettings] = None) -> APIRouter:
    """Build the RBAC router around an existing guard."""
    settings = settings or RBACSettings()
    service = guard.permission_service
    router = APIRouter(prefix="/rbac", tags=["RBAC"])

    # -------------------------------------------------------------------------
    # Caller-facing
    # -------------------------------------------------------------------------

    @router.get("/my-role")
    @guard.require_identity
    async def get_my_role(request: Request, identity: AuthenticatedIdentity):
        role = await service.store.get_user_role(identity.user_id, identity.agency_id)
        if role is None:
            return create_error_response(ErrorCode.NOT_FOUND, "role not found")

        return {
            "user_id": identity.user_id,
            "agency_id": identity.agency_id,
            "role": {
                "role_id": role.role_id,
                "code": role.code,
                "name": role.name,
                "hierarchy_level": role.hierarchy_level,
            },
            "is_privileged": service.is_privileged(role),
        }

    @router.get("/my-permissions")
    @guard.require_identity
    async def get_my_permissions(request: Request, identity: AuthenticatedIdentity):
        permissions = await service.get_effective_permissions(identity.user_id, identity.agency_id)
        return {
            "user_id": identity.user_id,
            "agency_id": identity.agency_id,
            "permissions": _permission_codes(permissions),
        }

    @router.get("/member-access")
    @guard.require_identity
    async def check_member_access(request: Request, identity: AuthenticatedIdentity):
        client_id = (request.query_params.get("client_id") or "").strip()
        if not client_id:
            return _validation_error("client_id is required")

        role = await service.store.get_user_role(identity.user_id, identity.agency_id)
        if role is None:
            has_access = False
        elif not service.is_member(role):
            has_access = True
        else:
            has_access = await service.client_scope.has_client_access(
                identity.user_id, identity.agency_id, client_id
            )

        return {"client_id": client_id, "has_access": has_access}

    # -------------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------------

    @router.get("/roles")
    @guard.protect(Resource.ROLES, Action.READ)
    async def list_roles(request: Request, identity: AuthenticatedIdentity):
        roles = await service.store.list_roles(identity.agency_id)
        items = []
        for role in roles:
            permissions = await service.store.list_role_permissions(role.role_id)
            items.append({
                "role_id": role.role_id,
                "code": role.code,
                "name": role.name,
                "description": role.description,
                "hierarchy_level": role.hierarchy_level,
                "is_system": role.is_system,
                "permissions": _permission_codes(permissions),
            })
        return {"roles": items}

    @router.post("/member-access")
    @guard.protect(Resource.USERS, Action.MANAGE)
    async def grant_member_access(request: Request, identity: AuthenticatedIdentity):
        try:
            payload = MemberAccessGrant.model_validate(await request.json())
        except ValueError as e:
            # ValidationError and malformed JSON both land here
            details = None
            if isinstance(e, ValidationError):
                details = {"errors": e.errors(include_url=False, include_context=False)}
            return _validation_error("Invalid member access request", details)

        grant = await service.client_scope.grant_access(
            payload.user_id,
            identity.agency_id,
            payload.client_id,
            granted_by=identity.user_id,
        )
        return JSONResponse(
            status_code=201,
            content={
                "user_id": grant.user_id,
                "agency_id": grant.agency_id,
                "client_id": grant.client_id,
                "granted_by": grant.granted_by,
                "granted_at": grant.granted_at.isoformat() if grant.granted_at else None,
            },
        )

    @router.delete("/member-access/{user_id}/{client_id}")
    @guard.protect(Resource.USERS, Action.MANAGE)
    async def revoke_member_access(request: Request, identity: AuthenticatedIdentity):
        user_id = request.path_params["user_id"]
        client_id = request.path_params["client_id"]

        revoked = await service.client_scope.revoke_access(user_id, identity.agency_id, client_id)
        if not revoked:
            return create_error_response(ErrorCode.NOT_FOUND, "No access grant for this user and client")
        return {"user_id": user_id, "client_id": client_id, "revoked": True}

    @router.get("/access-log")
    @guard.protect(Resource.SETTINGS, Action.MANAGE)
    async def list_access_log(request: Request, identity: AuthenticatedIdentity):
        raw_limit = request.query_params.get("limit", "100")
        try:
            limit = int(raw_limit)
        except ValueError:
            return _validation_error("limit must be an integer")
        limit = max(1, min(limit, settings.access_log_max_limit))

        if service.audit is None:
            entries = []
        else:
            entries = await service.audit.list_recent(identity.agency_id, limit=limit)

        return {
            "entries": [
                {
                    "timestamp": entry.timestamp.isoformat() if entry.timestamp else None,
                    "user_id": entry.user_id,
                    "resource": entry.resource,
                    "action": entry.action,
                    "decision": entry.decision,
                    "client_id": entry.client_id,
                    "reason": entry.reason,
                }
                for entry in entries
            ],
            "limit": limit,
        }

    return router
