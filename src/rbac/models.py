"""
RBAC Database Models - SQLAlchemy ORM models for the permission engine.

Tables:
- roles: Role definitions with their hierarchy level (seeded)
- permissions: (resource, action) catalog (seeded from rbac.taxonomy)
- role_permissions: Role-to-permission mappings
- agency_members: A user's role inside one agency
- member_client_access: Per-client grants for Member-level users
- access_log: Authorization decision audit trail (append-only)
"""

from enum import Enum as PyEnum
from uuid import uuid4

from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime,
    Text, ForeignKey, Index, CheckConstraint, UniqueConstraint, text,
)
from sqlalchemy.orm import relationship

from database.models import Base, utcnow
from .taxonomy import Action, Resource


def _new_id() -> str:
    return str(uuid4())


class AccessDecision(str, PyEnum):
    """Outcome recorded in the access log."""
    ALLOWED = "allowed"
    DENIED = "denied"


# =============================================================================
# ROLE MODEL
# =============================================================================

class Role(Base):
    """
    Role definitions.

    System roles have ``agency_id`` NULL and are shared by every agency.
    """
    __tablename__ = "roles"

    role_id = Column(String(36), primary_key=True, default=_new_id)

    code = Column(String(50), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)

    # Lower numbers = higher privilege
    hierarchy_level = Column(Integer, nullable=False, index=True)

    agency_id = Column(String(64), nullable=True, index=True)
    is_system = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    role_permissions = relationship(
        "RolePermission",
        back_populates="role",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("code", "agency_id", name="uq_role_code_agency"),
        # NULLs never collide in uq_role_code_agency, so system roles need their own index
        Index(
            "uq_role_system_code",
            "code",
            unique=True,
            sqlite_where=text("agency_id IS NULL"),
            postgresql_where=text("agency_id IS NULL"),
        ),
        CheckConstraint("hierarchy_level >= 1", name="hierarchy_level_positive"),
    )

    def __repr__(self):
        return f"<Role(code={self.code}, level={self.hierarchy_level})>"


# =============================================================================
# PERMISSION MODEL
# =============================================================================

class Permission(Base):
    """
    Permission catalog.

    One row per (resource, action); seeded from code, not user-editable.
    """
    __tablename__ = "permissions"

    permission_id = Column(String(36), primary_key=True, default=_new_id)
    resource = Column(String(50), nullable=False)
    action = Column(String(20), nullable=False)
    description = Column(Text, nullable=True)

    role_permissions = relationship(
        "RolePermission",
        back_populates="permission",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("resource", "action", name="uq_permission_resource_action"),
    )

    @property
    def key(self):
        """The (Resource, Action) pair, or None for rows outside the taxonomy."""
        try:
            return Resource(self.resource), Action(self.action)
        except ValueError:
            return None

    def __repr__(self):
        return f"<Permission({self.resource}:{self.action})>"


# =============================================================================
# ROLE-PERMISSION MAPPING
# =============================================================================

class RolePermission(Base):
    """Grants a role one permission."""
    __tablename__ = "role_permissions"

    role_id = Column(
        String(36),
        ForeignKey("roles.role_id", ondelete="CASCADE"),
        primary_key=True,
    )
    permission_id = Column(
        String(36),
        ForeignKey("permissions.permission_id", ondelete="CASCADE"),
        primary_key=True,
    )
    granted_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    role = relationship("Role", back_populates="role_permissions")
    permission = relationship("Permission", back_populates="role_permissions")

    def __repr__(self):
        return f"<RolePermission(role={self.role_id}, permission={self.permission_id})>"


# =============================================================================
# AGENCY MEMBERSHIP
# =============================================================================

class AgencyMember(Base):
    """A user's role inside one agency."""
    __tablename__ = "agency_members"

    user_id = Column(String(64), primary_key=True)
    agency_id = Column(String(64), primary_key=True)
    role_id = Column(
        String(36),
        ForeignKey("roles.role_id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    email = Column(String(255), nullable=True)
    is_owner = Column(Boolean, nullable=False, default=False)
    joined_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    role = relationship("Role")

    def __repr__(self):
        return f"<AgencyMember(user={self.user_id}, agency={self.agency_id})>"


# =============================================================================
# MEMBER CLIENT ACCESS
# =============================================================================

class MemberClientAccess(Base):
    """
    Per-client grant for Member-level users.

    Created and revoked by agency administrators; consulted on every
    client-scoped check made by a Member.
    """
    __tablename__ = "member_client_access"

    access_id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False)
    agency_id = Column(String(64), nullable=False)
    client_id = Column(String(64), nullable=False)
    granted_by = Column(String(64), nullable=True)
    granted_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "agency_id", "client_id", name="uq_member_client_access"),
        Index("ix_member_access_user_agency", "user_id", "agency_id"),
    )

    def __repr__(self):
        return f"<MemberClientAccess(user={self.user_id}, client={self.client_id})>"


# =============================================================================
# ACCESS LOG
# =============================================================================

class AccessLogEntry(Base):
    """
    Authorization decision audit trail.

    Rows are inserted once and never updated or deleted here; retention is
    handled outside the application.
    """
    __tablename__ = "access_log"

    log_id = Column(String(36), primary_key=True, default=_new_id)
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    user_id = Column(String(64), nullable=False)
    agency_id = Column(String(64), nullable=True)
    resource = Column(String(50), nullable=False)
    action = Column(String(20), nullable=False)
    decision = Column(String(10), nullable=False)
    client_id = Column(String(64), nullable=True)
    reason = Column(String(100), nullable=False)

    __table_args__ = (
        Index("ix_access_log_agency_time", "agency_id", "timestamp"),
        Index("ix_access_log_user_time", "user_id", "timestamp"),
        CheckConstraint("decision IN ('allowed', 'denied')", name="decision_value"),
    )

    def __repr__(self):
        return f"<AccessLogEntry(user={self.user_id}, {self.resource}:{self.action}, {self.decision})>"
