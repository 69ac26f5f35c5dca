"""Application settings using Pydantic Settings.

Centralized configuration for the command center API.

SECURITY: Production requires the following environment variables:
- AUTH_JWT_SECRET: JWT verification key shared with the identity provider (min 32 chars)

Generate secrets with: python -c "import secrets; print(secrets.token_hex(32))"
"""

import sys
import logging
import secrets
import warnings
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, PrivateAttr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

_PRODUCTION_ENVIRONMENTS = frozenset({"production", "prod", "staging"})


class AuthSettings(BaseSettings):
    """Token verification settings for the external identity provider."""

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = Field(default="development", description="Environment name")

    jwt_secret: Optional[str] = Field(
        default=None,
        description="Shared secret used to verify access tokens - MUST be set in production"
    )
    jwt_algorithms: List[str] = Field(
        default=["HS256"],
        description="Accepted signing algorithms"
    )
    jwt_audience: Optional[str] = Field(
        default=None,
        description="Expected 'aud' claim (Supabase issues 'authenticated')"
    )
    token_cookie_name: str = Field(
        default="access_token",
        description="Cookie checked when no Authorization header is sent"
    )

    _dev_secret: Optional[str] = PrivateAttr(default=None)

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower().strip() in _PRODUCTION_ENVIRONMENTS

    @model_validator(mode="after")
    def _check_secret_strength(self) -> "AuthSettings":
        if self.jwt_secret is not None and len(self.jwt_secret) < 32:
            raise ValueError("AUTH_JWT_SECRET must be at least 32 characters for security")
        return self

    def get_jwt_secret(self) -> str:
        """
        Get the token verification secret.

        SECURITY: In production the secret must be configured. In development
        a random per-process secret is generated and a warning is emitted.
        """
        if self.jwt_secret:
            return self.jwt_secret

        if self.is_production:
            raise RuntimeError(
                "CRITICAL SECURITY ERROR: AUTH_JWT_SECRET environment variable is required in production."
            )

        if self._dev_secret is None:
            warnings.warn(
                "AUTH_JWT_SECRET not set - using generated development secret. "
                "Set AUTH_JWT_SECRET for production.",
                UserWarning
            )
            self._dev_secret = f"DEV-ONLY-{secrets.token_hex(32)}"
        return self._dev_secret


class RBACSettings(BaseSettings):
    """Permission engine tuning."""

    model_config = SettingsConfigDict(
        env_prefix="RBAC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Roles at or below this level hold every permission without consulting
    # role_permissions (Owner=1, Admin=2, Manager=3 in the seeded roles).
    privileged_max_level: int = Field(
        default=3,
        ge=0,
        description="Highest hierarchy level that takes the all-permissions fast path"
    )
    member_level: int = Field(
        default=4,
        ge=1,
        description="Hierarchy level of the Member role (client-scoped checks)"
    )
    audit_enabled: bool = Field(
        default=True,
        description="Write an access_log row for every authorization decision"
    )
    access_log_max_limit: int = Field(
        default=500,
        ge=1,
        description="Upper bound for the access log listing endpoint"
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    name: str = Field(default="Agency Command Center", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")
    environment: str = Field(default="development", description="Environment name")

    api_prefix: str = Field(default="/api/v1", description="Prefix for versioned API routes")

    # Nested settings (loaded separately)
    @property
    def auth(self) -> AuthSettings:
        return AuthSettings()

    @property
    def rbac(self) -> RBACSettings:
        return RBACSettings()

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower().strip() in _PRODUCTION_ENVIRONMENTS

    def validate_production_security(self, auth: Optional[AuthSettings] = None) -> List[str]:
        """
        Validate all security requirements for production.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if not self.is_production:
            return errors

        auth = auth or self.auth
        if not auth.jwt_secret:
            errors.append(
                "AUTH_JWT_SECRET: Required in production. "
                "Use the identity provider's JWT secret."
            )

        if self.debug:
            errors.append("APP_DEBUG: Must be False in production")

        return errors


# =============================================================================
# STARTUP VALIDATION
# =============================================================================

class StartupSecurityError(Exception):
    """Raised when security validation fails at startup."""
    pass


def validate_startup_security(
    settings: Settings,
    exit_on_failure: bool = True,
    auth: Optional[AuthSettings] = None,
) -> bool:
    """
    Validate security settings at application startup.

    In production, fails fast if critical security settings are missing.

    Raises:
        StartupSecurityError: If validation fails and exit_on_failure is False
    """
    errors = settings.validate_production_security(auth)

    if not errors:
        if settings.is_production:
            logger.info("Production security validation PASSED")
        return True

    error_msg = "CRITICAL SECURITY CONFIGURATION ERROR:\n" + "\n".join(
        f"  {i}. {err}" for i, err in enumerate(errors, 1)
    )
    logger.critical(error_msg)

    if exit_on_failure:
        print(error_msg, file=sys.stderr)
        sys.exit(1)
    raise StartupSecurityError(error_msg)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings instance.

    Returns:
        Settings: Cached settings loaded from environment.
    """
    return Settings()


@lru_cache
def get_auth_settings() -> AuthSettings:
    """Get cached auth settings instance."""
    return AuthSettings()


@lru_cache
def get_rbac_settings() -> RBACSettings:
    """Get cached RBAC settings instance."""
    return RBACSettings()
