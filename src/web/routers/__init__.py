"""
FastAPI Routers - Modular endpoint organization.

Router modules:
- health: System health checks
- rbac_api: Roles, effective permissions, member client grants, access log
"""

from .health import create_health_router
from .rbac_api import create_rbac_router

__all__ = [
    "create_health_router",
    "create_rbac_router",
]
