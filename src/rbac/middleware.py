"""
Authorization guard for route handlers.

Wraps a handler ``async def handler(request, identity)`` into a FastAPI
endpoint ``async def endpoint(request)`` that:

1. Authenticates the request (401 AUTH_REQUIRED on failure)
2. Extracts an optional client id
3. Asks the PermissionService
4. Returns 403 PERMISSION_DENIED / CLIENT_ACCESS_DENIED, or calls the handler

Unexpected failures become a generic 500 INTERNAL_ERROR; HTTPExceptions
raised by the handler pass through.

Usage:
    guard = PermissionGuard(JWTAuthenticator(), permission_service)

    @router.get("/clients/{client_id}")
    @guard.protect_route(Resource.CLIENTS, Action.READ)
    async def get_client(request, identity):
        ...
"""

import logging
from typing import Any, Awaitable, Callable, Optional, Union

from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request

from .errors import ErrorCode, create_error_response
from .extractors import IdExtractor, client_id_from_path
from .identity import AuthenticatedIdentity, AuthenticationError
from .jwt import JWTAuthenticator
from .service import PermissionService
from .taxonomy import CLIENT_SCOPED_RESOURCES, Action, Resource

logger = logging.getLogger(__name__)

Handler = Callable[[Request, Optional[AuthenticatedIdentity]], Awaitable[Any]]
Endpoint = Callable[[Request], Awaitable[Any]]


def _as_endpoint(handler: Handler, endpoint: Endpoint) -> Endpoint:
    # Copy naming only; FastAPI must see the endpoint's own (request) signature.
    endpoint.__name__ = getattr(handler, "__name__", endpoint.__name__)
    endpoint.__qualname__ = getattr(handler, "__qualname__", endpoint.__qualname__)
    endpoint.__doc__ = handler.__doc__
    endpoint.__module__ = getattr(handler, "__module__", endpoint.__module__)
    return endpoint


class PermissionGuard:
    """Builds protected endpoints from an authenticator and a permission service."""

    def __init__(self, authenticator: JWTAuthenticator, permission_service: PermissionService):
        self.authenticator = authenticator
        self.permission_service = permission_service

    def protect(
        self,
        resource: Union[Resource, str],
        action: Union[Action, str],
        *,
        client_id_extractor: Optional[IdExtractor] = None,
        allow_public: bool = False,
    ) -> Callable[[Handler], Endpoint]:
        """
        Require ``resource:action`` for a handler.

        Raises:
            UnknownPermissionError: If the tags are not part of the taxonomy
        """
        resource = Resource.parse(resource)
        action = Action.parse(action)

        def decorator(handler: Handler) -> Endpoint:
            async def endpoint(request: Request):
                try:
                    try:
                        identity = self.authenticator.authenticate(request)
                    except AuthenticationError:
                        if allow_public:
                            return await handler(request, None)
                        return create_error_response(ErrorCode.AUTH_REQUIRED)

                    request.state.identity = identity
                    client_id = client_id_extractor(request) if client_id_extractor else None

                    result = await self.permission_service.has_permission(
                        user_id=identity.user_id,
                        agency_id=identity.agency_id,
                        resource=resource,
                        action=action,
                        client_id=client_id,
                    )
                    if not result.has_permission:
                        code = ErrorCode.CLIENT_ACCESS_DENIED if client_id else ErrorCode.PERMISSION_DENIED
                        return create_error_response(code, result.reason)

                    return await handler(request, identity)
                except StarletteHTTPException:
                    raise
                except Exception as e:
                    logger.error(
                        f"Permission middleware error on {request.url.path}: {e}",
                        exc_info=True,
                        extra={"resource": resource.value, "action": action.value},
                    )
                    return create_error_response(ErrorCode.INTERNAL_ERROR)

            return _as_endpoint(handler, endpoint)

        return decorator

    def protect_route(self, resource: Union[Resource, str], action: Union[Action, str]) -> Callable[[Handler], Endpoint]:
        """``protect`` with the client id read from the path for client-scoped resources."""
        resource = Resource.parse(resource)
        extractor = client_id_from_path if resource in CLIENT_SCOPED_RESOURCES else None
        return self.protect(resource, action, client_id_extractor=extractor)

    def owner_only(self, handler: Handler) -> Endpoint:
        """Restrict a handler to roles holding ``roles:manage``."""
        return self.protect(Resource.ROLES, Action.MANAGE)(handler)

    def require_identity(self, handler: Handler) -> Endpoint:
        """Authentication only; no permission check."""

        async def endpoint(request: Request):
            try:
                try:
                    identity = self.authenticator.authenticate(request)
                except AuthenticationError:
                    return create_error_response(ErrorCode.AUTH_REQUIRED)

                request.state.identity = identity
                return await handler(request, identity)
            except StarletteHTTPException:
                raise
            except Exception as e:
                logger.error(f"Authentication wrapper error on {request.url.path}: {e}", exc_info=True)
                return create_error_response(ErrorCode.INTERNAL_ERROR)

        return _as_endpoint(handler, endpoint)


def get_identity(request: Request) -> Optional[AuthenticatedIdentity]:
    """Identity stored on the request by the guard, if any."""
    return getattr(request.state, "identity", None)
