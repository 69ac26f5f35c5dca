"""Pytest configuration and fixtures for test suite."""

import os
import sys
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import pytest
import pytest_asyncio

# Set test environment BEFORE any other imports
os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("AUTH_ENVIRONMENT", "test")
os.environ.setdefault("DB_DRIVER", "sqlite+aiosqlite")

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from config.database import DatabaseSettings  # noqa: E402
from config.settings import AuthSettings, RBACSettings  # noqa: E402
from rbac.audit import InMemoryAccessLog  # noqa: E402
from rbac.client_scope import ClientScopeResolver  # noqa: E402
from rbac.jwt import JWTAuthenticator, create_access_token  # noqa: E402
from rbac.middleware import PermissionGuard  # noqa: E402
from rbac.models import MemberClientAccess, Role  # noqa: E402
from rbac.service import PermissionService  # noqa: E402
from rbac.store import RoleStore  # noqa: E402
from rbac.taxonomy import (  # noqa: E402
    DEFAULT_ROLE_PERMISSIONS,
    SYSTEM_ROLES,
    Action,
    PermissionKey,
    Resource,
)


TEST_JWT_SECRET = "test-jwt-secret-0123456789abcdef0123456789abcdef"
AGENCY_ID = "agency-1"

# user id -> role code, all in AGENCY_ID
DEFAULT_USERS = {
    "owner-1": "owner",
    "admin-1": "admin",
    "manager-1": "manager",
    "member-1": "member",
}


# =============================================================================
# IN-MEMORY FAKES
# =============================================================================

class FakeRoleStore(RoleStore):
    """Dictionary-backed role store that records the lookups it serves."""

    def __init__(self):
        self.roles: Dict[str, Role] = {}
        self.members: Dict[Tuple[str, str], str] = {}
        self.grants: Dict[str, Set[PermissionKey]] = defaultdict(set)
        self.direct_checks: List[Tuple[str, Resource, Action]] = []

    def add_role(self, code: str, hierarchy_level: int, permissions=()) -> Role:
        role = Role(
            role_id=code,
            code=code,
            name=code.title(),
            hierarchy_level=hierarchy_level,
            is_system=True,
        )
        self.roles[code] = role
        self.grants[code] = set(permissions)
        return role

    def assign(self, user_id: str, agency_id: str, role_id: str) -> None:
        self.members[(user_id, agency_id)] = role_id

    async def get_role(self, role_id: str) -> Optional[Role]:
        return self.roles.get(role_id)

    async def get_user_role(self, user_id: str, agency_id: str) -> Optional[Role]:
        role_id = self.members.get((user_id, agency_id))
        return self.roles.get(role_id) if role_id else None

    async def has_direct_permission(self, role_id: str, resource: Resource, action: Action) -> bool:
        self.direct_checks.append((role_id, resource, action))
        return (resource, action) in self.grants.get(role_id, set())

    async def list_role_permissions(self, role_id: str) -> List[PermissionKey]:
        return sorted(self.grants.get(role_id, set()), key=lambda k: (k[0].value, k[1].value))

    async def list_roles(self, agency_id: Optional[str] = None) -> List[Role]:
        return sorted(self.roles.values(), key=lambda r: r.hierarchy_level)


class FakeClientScope(ClientScopeResolver):
    """Set-backed client grants that records the checks it serves."""

    def __init__(self):
        self.grants: Set[Tuple[str, str, str]] = set()
        self.checks: List[Tuple[str, str, str]] = []

    async def has_client_access(self, user_id: str, agency_id: str, client_id: str) -> bool:
        self.checks.append((user_id, agency_id, client_id))
        return (user_id, agency_id, client_id) in self.grants

    async def grant_access(self, user_id, agency_id, client_id, granted_by=None):
        self.grants.add((user_id, agency_id, client_id))
        return MemberClientAccess(
            user_id=user_id, agency_id=agency_id, client_id=client_id, granted_by=granted_by
        )

    async def revoke_access(self, user_id: str, agency_id: str, client_id: str) -> bool:
        key = (user_id, agency_id, client_id)
        if key not in self.grants:
            return False
        self.grants.remove(key)
        return True

    async def list_client_ids(self, user_id: str, agency_id: str) -> List[str]:
        return sorted(c for u, a, c in self.grants if u == user_id and a == agency_id)


# =============================================================================
# SETTINGS AND TOKENS
# =============================================================================

@pytest.fixture
def auth_settings():
    return AuthSettings(environment="test", jwt_secret=TEST_JWT_SECRET)


@pytest.fixture
def rbac_settings():
    return RBACSettings()


@pytest.fixture
def make_token(auth_settings):
    """Factory for signed access tokens."""

    def _make(user_id: str, agency_id: str = AGENCY_ID, **kwargs) -> str:
        return create_access_token(user_id, agency_id, settings=auth_settings, **kwargs)

    return _make


@pytest.fixture
def auth_headers(make_token):
    """Factory for Bearer headers."""

    def _headers(user_id: str, agency_id: str = AGENCY_ID) -> dict:
        return {"Authorization": f"Bearer {make_token(user_id, agency_id)}"}

    return _headers


# =============================================================================
# SERVICE WITH FAKES
# =============================================================================

@pytest.fixture
def role_store():
    """Fake store holding the four system roles and one user per role."""
    store = FakeRoleStore()
    for system_role, info in SYSTEM_ROLES.items():
        store.add_role(system_role.value, info.hierarchy_level, DEFAULT_ROLE_PERMISSIONS[system_role])
    for user_id, role_code in DEFAULT_USERS.items():
        store.assign(user_id, AGENCY_ID, role_code)
    return store


@pytest.fixture
def client_scope():
    return FakeClientScope()


@pytest.fixture
def access_log():
    return InMemoryAccessLog()


@pytest.fixture
def permission_service(role_store, client_scope, access_log, rbac_settings):
    return PermissionService(role_store, client_scope, access_log, rbac_settings)


@pytest.fixture
def guard(auth_settings, permission_service):
    return PermissionGuard(JWTAuthenticator(auth_settings), permission_service)


# =============================================================================
# DATABASE
# =============================================================================

@pytest.fixture
def memory_db_settings():
    return DatabaseSettings(url="sqlite+aiosqlite:///:memory:")


@pytest_asyncio.fixture
async def db_engine(memory_db_settings):
    """In-memory SQLite engine with the schema created."""
    from database.async_engine import create_engine, init_database

    engine = create_engine(memory_db_settings)
    await init_database(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    from database.async_engine import get_session_factory

    return get_session_factory(db_engine)


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """
    Session factory over a SQLite file.

    Every session gets its own connection, so concurrent sessions contend
    the way separate workers do.
    """
    from database.async_engine import create_engine, get_session_factory, init_database

    engine = create_engine(DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'rbac.db'}"))
    await init_database(engine)
    yield get_session_factory(engine)
    await engine.dispose()


@pytest_asyncio.fixture
async def seeded_session_factory(session_factory):
    """Session factory over a seeded schema with one user per system role."""
    from rbac.seed import assign_member_role, seed_rbac

    async with session_factory() as session:
        await seed_rbac(session)
        for user_id, role_code in DEFAULT_USERS.items():
            await assign_member_role(session, user_id, AGENCY_ID, role_code)
    return session_factory
