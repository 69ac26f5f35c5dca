"""
JWT Token Handling

Verifies access tokens issued by the identity provider and turns them into
an AuthenticatedIdentity. Token creation exists for tests and local tooling.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from starlette.requests import Request

from config.settings import AuthSettings, get_auth_settings
from .identity import AuthenticatedIdentity, AuthenticationError

logger = logging.getLogger(__name__)


JWT_ACCESS_TOKEN_EXPIRE_HOURS = 8


# =============================================================================
# TOKEN CREATION
# =============================================================================

def create_access_token(
    user_id: str,
    agency_id: str,
    email: Optional[str] = None,
    role: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
    settings: Optional[AuthSettings] = None,
) -> str:
    """
    Create a signed access token.

    Args:
        user_id: Subject of the token
        agency_id: Agency the user is acting in
        email: User's email
        role: Role code (informational)
        expires_delta: Custom expiration time
        settings: Auth settings; loaded from environment if None

    Returns:
        JWT token string
    """
    settings = settings or get_auth_settings()
    if expires_delta is None:
        expires_delta = timedelta(hours=JWT_ACCESS_TOKEN_EXPIRE_HOURS)

    issued_at = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "agency_id": str(agency_id),
        "iat": issued_at,
        "exp": issued_at + expires_delta,
    }
    if email:
        payload["email"] = email
    if role:
        payload["role"] = role
    if settings.jwt_audience:
        payload["aud"] = settings.jwt_audience

    return jwt.encode(payload, settings.get_jwt_secret(), algorithm=settings.jwt_algorithms[0])


# =============================================================================
# TOKEN DECODING
# =============================================================================

def decode_token(token: str, settings: Optional[AuthSettings] = None) -> Dict[str, Any]:
    """
    Decode and validate a JWT token.

    Raises:
        jwt.InvalidTokenError: If token is invalid or expired
    """
    settings = settings or get_auth_settings()
    options = {"require": ["sub", "exp"]}
    if not settings.jwt_audience:
        options["verify_aud"] = False

    return jwt.decode(
        token,
        settings.get_jwt_secret(),
        algorithms=settings.jwt_algorithms,
        audience=settings.jwt_audience,
        options=options,
    )


def decode_token_safe(token: str, settings: Optional[AuthSettings] = None) -> Optional[Dict[str, Any]]:
    """
    Decode a JWT token without raising exceptions.

    Returns None if token is invalid.
    """
    try:
        return decode_token(token, settings)
    except jwt.InvalidTokenError:
        return None


# =============================================================================
# REQUEST AUTHENTICATION
# =============================================================================

class JWTAuthenticator:
    """Authenticates a request from its Bearer header or access token cookie."""

    def __init__(self, settings: Optional[AuthSettings] = None):
        self.settings = settings or get_auth_settings()

    def extract_token(self, request: Request) -> Optional[str]:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:].strip()
            if token:
                return token

        return request.cookies.get(self.settings.token_cookie_name)

    def authenticate(self, request: Request) -> AuthenticatedIdentity:
        """
        Resolve the caller's identity.

        Raises:
            AuthenticationError: If no token is present or it does not verify
        """
        token = self.extract_token(request)
        if not token:
            raise AuthenticationError("No access token")

        try:
            claims = decode_token(token, self.settings)
        except jwt.InvalidTokenError as e:
            logger.warning(f"Token decode failed: {e}")
            raise AuthenticationError("Invalid access token") from e

        return AuthenticatedIdentity.from_claims(claims)

    def authenticate_optional(self, request: Request) -> Optional[AuthenticatedIdentity]:
        try:
            return self.authenticate(request)
        except AuthenticationError:
            return None
