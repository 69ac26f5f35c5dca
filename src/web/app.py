"""
FastAPI application for the agency command center.

Routes:
- GET  /health                              : application and database health
- GET  /health/live                         : liveness probe
- GET  /api/v1/rbac/my-role                 : caller's role
- GET  /api/v1/rbac/my-permissions          : caller's effective permissions
- GET  /api/v1/rbac/member-access           : per-client access check
- GET  /api/v1/rbac/roles                   : roles and their permissions
- POST /api/v1/rbac/member-access           : grant a Member access to a client
- DELETE /api/v1/rbac/member-access/{user_id}/{client_id} : revoke a grant
- GET  /api/v1/rbac/access-log              : recent authorization decisions
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.ext.asyncio import AsyncEngine

from config.database import DatabaseSettings, get_database_settings
from config.settings import (
    AuthSettings,
    RBACSettings,
    Settings,
    get_auth_settings,
    get_rbac_settings,
    get_settings,
    validate_startup_security,
)
from database.async_engine import create_engine, get_session_factory, init_database
from rbac.audit import SqlAlchemyAccessLog
from rbac.client_scope import SqlAlchemyClientScopeResolver
from rbac.errors import ErrorCode, create_error_response
from rbac.jwt import JWTAuthenticator
from rbac.middleware import PermissionGuard
from rbac.seed import seed_rbac
from rbac.service import PermissionService
from rbac.store import SqlAlchemyRoleStore
from web.routers.health import create_health_router
from web.routers.rbac_api import create_rbac_router

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    database_settings: Optional[DatabaseSettings] = None,
    auth_settings: Optional[AuthSettings] = None,
    rbac_settings: Optional[RBACSettings] = None,
    engine: Optional[AsyncEngine] = None,
    init_schema: Optional[bool] = None,
) -> FastAPI:
    """
    Build the application and its RBAC components.

    Args:
        settings: Application settings. If None, loads from environment.
        database_settings: Used to create the engine when ``engine`` is None.
        auth_settings: Token verification settings.
        rbac_settings: Permission engine settings.
        engine: Existing engine; the caller keeps ownership of it.
        init_schema: Create tables and seed roles at startup. Defaults to
            True for SQLite (PostgreSQL schemas come from Alembic).

    Returns:
        FastAPI: Configured application. Components are on ``app.state``.
    """
    settings = settings or get_settings()
    auth_settings = auth_settings or get_auth_settings()
    rbac_settings = rbac_settings or get_rbac_settings()

    owns_engine = engine is None
    if engine is None:
        database_settings = database_settings or get_database_settings()
        engine = create_engine(database_settings)
    if init_schema is None:
        init_schema = engine.dialect.name == "sqlite"

    session_factory = get_session_factory(engine)
    permission_service = PermissionService(
        store=SqlAlchemyRoleStore(session_factory),
        client_scope=SqlAlchemyClientScopeResolver(session_factory),
        audit=SqlAlchemyAccessLog(session_factory),
        settings=rbac_settings,
    )
    guard = PermissionGuard(JWTAuthenticator(auth_settings), permission_service)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        validate_startup_security(settings, exit_on_failure=False, auth=auth_settings)
        if init_schema:
            await init_database(engine)
            async with session_factory() as session:
                await seed_rbac(session)
        logger.info(f"{settings.name} {settings.version} started")
        yield
        if owns_engine:
            await engine.dispose()
            logger.info("Database connections closed")

    app = FastAPI(title=settings.name, version=settings.version, lifespan=lifespan)

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.permission_service = permission_service
    app.state.guard = guard

    app.include_router(create_health_router(engine, settings))
    app.include_router(create_rbac_router(guard, rbac_settings), prefix=settings.api_prefix)

    _register_exception_handlers(app)
    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Handle Pydantic validation errors with user-friendly messages."""
        errors = []
        for error in exc.errors():
            field = " -> ".join(str(loc) for loc in error["loc"])
            errors.append(f"{field}: {error['msg']}")

        return create_error_response(
            ErrorCode.VALIDATION_ERROR,
            "Invalid request",
            details={"errors": errors},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Catch-all handler for unexpected exceptions."""
        logger.error(f"Unexpected error on {request.url.path}: {exc}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR)
