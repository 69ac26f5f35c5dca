"""
Permission Taxonomy and System Roles

Permissions are (resource, action) pairs. Both halves are closed
enumerations so an unknown tag is rejected where a route is declared
instead of silently denying every request.

Roles (lower level = more privilege):

    Level 1 - owner    Agency owner, everything including role management
    Level 2 - admin    Runs the agency, everything except roles/billing control
    Level 3 - manager  Runs client work, reads agency configuration
    Level 4 - member   Works on explicitly assigned clients only
"""

from enum import Enum
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Tuple, Union


class UnknownPermissionError(ValueError):
    """Raised when a resource or action tag is not part of the taxonomy."""


class Resource(str, Enum):
    """Protected resource categories."""

    CLIENTS = "clients"
    COMMUNICATIONS = "communications"
    TICKETS = "tickets"
    DOCUMENTS = "documents"
    KNOWLEDGE_BASE = "knowledge-base"
    AUTOMATIONS = "automations"
    SETTINGS = "settings"
    USERS = "users"
    BILLING = "billing"
    ROLES = "roles"
    INTEGRATIONS = "integrations"
    ANALYTICS = "analytics"
    AI_FEATURES = "ai-features"

    @classmethod
    def parse(cls, value: Union[str, "Resource"]) -> "Resource":
        try:
            return cls(value)
        except ValueError:
            raise UnknownPermissionError(f"Unknown resource: {value!r}") from None


class Action(str, Enum):
    """Operations on a resource."""

    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    MANAGE = "manage"

    @classmethod
    def parse(cls, value: Union[str, "Action"]) -> "Action":
        try:
            return cls(value)
        except ValueError:
            raise UnknownPermissionError(f"Unknown action: {value!r}") from None


PermissionKey = Tuple[Resource, Action]


def tag_value(tag: Union[Resource, Action, str]) -> str:
    """Plain string form of a resource or action tag."""
    return tag.value if isinstance(tag, Enum) else str(tag)


# Resources whose routes carry a client id and are therefore client-scoped
# for Members.
CLIENT_SCOPED_RESOURCES: FrozenSet[Resource] = frozenset({
    Resource.CLIENTS,
    Resource.DOCUMENTS,
    Resource.TICKETS,
})


# =============================================================================
# PERMISSION DESCRIPTIONS
# =============================================================================

_RESOURCE_DESCRIPTIONS: Dict[Resource, Dict[Action, str]] = {
    Resource.CLIENTS: {
        Action.READ: "View client list and details",
        Action.WRITE: "Create and edit clients",
        Action.DELETE: "Archive or delete clients",
        Action.MANAGE: "Full control over clients including bulk operations",
    },
    Resource.COMMUNICATIONS: {
        Action.READ: "View email and Slack messages",
        Action.WRITE: "Send emails and Slack messages",
        Action.DELETE: "Delete communication threads",
        Action.MANAGE: "Full control over communications including settings",
    },
    Resource.TICKETS: {
        Action.READ: "View support tickets",
        Action.WRITE: "Create, edit, and assign tickets",
        Action.DELETE: "Close or delete tickets",
        Action.MANAGE: "Full control over tickets including workflows",
    },
    Resource.DOCUMENTS: {
        Action.READ: "View and download client documents",
        Action.WRITE: "Upload and edit client documents",
        Action.DELETE: "Delete client documents",
        Action.MANAGE: "Full control over client documents including processing",
    },
    Resource.KNOWLEDGE_BASE: {
        Action.READ: "View knowledge base documents",
        Action.WRITE: "Create and edit documents",
        Action.DELETE: "Delete documents",
        Action.MANAGE: "Full control over knowledge base including organization",
    },
    Resource.AUTOMATIONS: {
        Action.READ: "View workflow automations",
        Action.WRITE: "Create and edit workflows",
        Action.DELETE: "Delete workflows",
        Action.MANAGE: "Full control over automations including execution",
    },
    Resource.SETTINGS: {
        Action.READ: "View agency settings",
        Action.WRITE: "Edit agency settings",
        Action.DELETE: "Remove settings configurations",
        Action.MANAGE: "Full control over all agency settings",
    },
    Resource.USERS: {
        Action.READ: "View team members and their roles",
        Action.WRITE: "Invite and edit team members",
        Action.DELETE: "Remove team members",
        Action.MANAGE: "Full control over users including role assignment",
    },
    Resource.BILLING: {
        Action.READ: "View billing information and invoices",
        Action.WRITE: "Update billing details and payment methods",
        Action.DELETE: "Cancel subscriptions",
        Action.MANAGE: "Full control over billing including plan changes",
    },
    Resource.ROLES: {
        Action.READ: "View roles and their permissions",
        Action.WRITE: "Create and edit custom roles",
        Action.DELETE: "Delete custom roles",
        Action.MANAGE: "Full control over role system including system roles",
    },
    Resource.INTEGRATIONS: {
        Action.READ: "View connected integrations",
        Action.WRITE: "Connect and configure integrations",
        Action.DELETE: "Disconnect integrations",
        Action.MANAGE: "Full control over integrations including OAuth",
    },
    Resource.ANALYTICS: {
        Action.READ: "View analytics and reports",
        Action.WRITE: "Create custom reports and dashboards",
        Action.DELETE: "Delete custom reports",
        Action.MANAGE: "Full control over analytics including exports",
    },
    Resource.AI_FEATURES: {
        Action.READ: "View AI features and chat history",
        Action.WRITE: "Use AI features and chat",
        Action.DELETE: "Delete AI chat history",
        Action.MANAGE: "Full control over AI features including training data",
    },
}


def all_permissions() -> FrozenSet[PermissionKey]:
    """Every (resource, action) pair in the taxonomy."""
    return frozenset((resource, action) for resource in Resource for action in Action)


def describe_permission(resource: Resource, action: Action) -> str:
    return _RESOURCE_DESCRIPTIONS[resource][action]


# =============================================================================
# SYSTEM ROLES
# =============================================================================

class SystemRole(str, Enum):
    """Seeded roles, identified by code."""

    OWNER = "owner"
    ADMIN = "admin"
    MANAGER = "manager"
    MEMBER = "member"


@dataclass(frozen=True)
class RoleInfo:
    """Complete information about a seeded role."""
    role: SystemRole
    name: str
    description: str
    hierarchy_level: int


SYSTEM_ROLES: Dict[SystemRole, RoleInfo] = {
    SystemRole.OWNER: RoleInfo(
        role=SystemRole.OWNER,
        name="Owner",
        description="Agency owner with full access including role management",
        hierarchy_level=1,
    ),
    SystemRole.ADMIN: RoleInfo(
        role=SystemRole.ADMIN,
        name="Admin",
        description="Agency administrator; cannot manage roles or billing plans",
        hierarchy_level=2,
    ),
    SystemRole.MANAGER: RoleInfo(
        role=SystemRole.MANAGER,
        name="Manager",
        description="Runs client work across the agency",
        hierarchy_level=3,
    ),
    SystemRole.MEMBER: RoleInfo(
        role=SystemRole.MEMBER,
        name="Member",
        description="Works on explicitly assigned clients only",
        hierarchy_level=4,
    ),
}


def _grant(resources: Iterable[Resource], actions: Iterable[Action]) -> FrozenSet[PermissionKey]:
    actions = tuple(actions)
    return frozenset((resource, action) for resource in resources for action in actions)


_OPERATIONAL = (
    Resource.CLIENTS,
    Resource.COMMUNICATIONS,
    Resource.TICKETS,
    Resource.DOCUMENTS,
    Resource.KNOWLEDGE_BASE,
    Resource.AUTOMATIONS,
    Resource.INTEGRATIONS,
    Resource.AI_FEATURES,
)

DEFAULT_ROLE_PERMISSIONS: Dict[SystemRole, FrozenSet[PermissionKey]] = {
    SystemRole.OWNER: all_permissions(),
    SystemRole.ADMIN: all_permissions() - {
        (Resource.ROLES, Action.MANAGE),
        (Resource.BILLING, Action.DELETE),
        (Resource.BILLING, Action.MANAGE),
    },
    SystemRole.MANAGER: (
        _grant(_OPERATIONAL, (Action.READ, Action.WRITE))
        | _grant(
            (Resource.SETTINGS, Resource.USERS, Resource.ROLES, Resource.ANALYTICS),
            (Action.READ,),
        )
    ),
    SystemRole.MEMBER: (
        _grant(
            (
                Resource.CLIENTS,
                Resource.DOCUMENTS,
                Resource.KNOWLEDGE_BASE,
                Resource.TICKETS,
                Resource.COMMUNICATIONS,
            ),
            (Action.READ,),
        )
        | {
            (Resource.TICKETS, Action.WRITE),
            (Resource.AI_FEATURES, Action.READ),
            (Resource.AI_FEATURES, Action.WRITE),
        }
    ),
}
