"""
Authenticated identity for the current request.

Built from a verified access token, attached to ``request.state.identity``
and handed to route handlers. Never persisted.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


class AuthenticationError(Exception):
    """Raised when a request carries no usable credentials."""

    def __init__(self, message: str = "Authentication required"):
        self.message = message
        super().__init__(message)


@dataclass(frozen=True)
class AuthenticatedIdentity:
    """
    Who is making the request.

    Usage:
        async def handler(request, identity: AuthenticatedIdentity):
            return {"agency": identity.agency_id}
    """

    user_id: str
    agency_id: str
    role: Optional[str] = None
    """Role code claimed by the token. Informational only; checks use the stored role."""
    email: Optional[str] = None

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "AuthenticatedIdentity":
        """
        Build an identity from verified token claims.

        ``agency_id`` is read from the top level first, then from
        ``app_metadata`` (where the identity provider stores custom claims).

        Raises:
            AuthenticationError: If the subject or agency is missing
        """
        user_id = claims.get("sub")
        app_metadata = claims.get("app_metadata") or {}
        agency_id = claims.get("agency_id") or app_metadata.get("agency_id")
        role = claims.get("role") or app_metadata.get("role")

        if not user_id:
            raise AuthenticationError("Token has no subject")
        if not agency_id:
            raise AuthenticationError("Token has no agency")

        return cls(
            user_id=str(user_id),
            agency_id=str(agency_id),
            role=role,
            email=claims.get("email"),
        )

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "agency_id": self.agency_id,
            "role": self.role,
            "email": self.email,
        }
