"""Configuration module for the command center."""

from .database import DatabaseSettings, get_database_settings
from .settings import (
    AuthSettings,
    RBACSettings,
    Settings,
    StartupSecurityError,
    get_auth_settings,
    get_rbac_settings,
    get_settings,
    validate_startup_security,
)

__all__ = [
    "DatabaseSettings",
    "get_database_settings",
    "AuthSettings",
    "RBACSettings",
    "Settings",
    "StartupSecurityError",
    "get_auth_settings",
    "get_rbac_settings",
    "get_settings",
    "validate_startup_security",
]
