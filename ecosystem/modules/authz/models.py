"""
Authorization data contracts.

Permissions, roles and role assignments are the repository's reference data;
``Principal`` is the derived, session-scoped snapshot the engine evaluates.
Every model is frozen: a principal is replaced wholesale, never edited.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import FrozenSet, NewType, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

Resource = NewType("Resource", str)

WILDCARD_RESOURCE = Resource("*")


class PermissionAction(str, Enum):
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    MANAGE = "MANAGE"  # Implies every other action on the same resource
    EXPORT = "EXPORT"
    IMPORT = "IMPORT"


def validate_resource(value: str) -> Resource:
    """Return ``value`` as a Resource, rejecting empty or blank identifiers."""
    if not isinstance(value, str) or not value.strip():
        raise ValueError("resource must be a non-empty string")
    return Resource(value.strip())


class Permission(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    action: PermissionAction
    resource: str
    description: Optional[str] = None

    @field_validator("resource")
    @classmethod
    def _check_resource(cls, value: str) -> str:
        return validate_resource(value)

    def to_grant(self) -> "PermissionGrant":
        return PermissionGrant(action=self.action, resource=self.resource)


class PermissionGrant(BaseModel):
    """An (action, resource) pair held by a hydrated role."""
    model_config = ConfigDict(frozen=True)

    action: PermissionAction
    resource: str

    @field_validator("resource")
    @classmethod
    def _check_resource(cls, value: str) -> str:
        return validate_resource(value)

    @property
    def is_super_admin(self) -> bool:
        return self.action == PermissionAction.MANAGE and self.resource == WILDCARD_RESOURCE


SUPER_ADMIN_GRANT = PermissionGrant(action=PermissionAction.MANAGE, resource=WILDCARD_RESOURCE)


class Role(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    site_id: Optional[str] = None  # None: global role usable in every site
    description: Optional[str] = None
    permission_ids: FrozenSet[str] = frozenset()

    @property
    def is_global(self) -> bool:
        return self.site_id is None


class RoleAssignment(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    user_id: str
    role_id: str
    site_id: Optional[str] = None
    campus_id: Optional[str] = None

    def key(self) -> Tuple[str, str, Optional[str], Optional[str]]:
        return (self.user_id, self.role_id, self.site_id, self.campus_id)


class Scope(BaseModel):
    model_config = ConfigDict(frozen=True)

    site_id: Optional[str] = None
    campus_id: Optional[str] = None

    def normalized(self) -> "Scope":
        """Treat empty or blank identifiers as absent.

        The engine compares scope fields verbatim, so an empty ``site_id``
        never matches anything; callers normalize before asking.
        """
        return Scope(
            site_id=(self.site_id or "").strip() or None,
            campus_id=(self.campus_id or "").strip() or None,
        )


class User(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class HydratedRole(BaseModel):
    """One resolved assignment: a role's permissions plus the assignment's own scope."""
    model_config = ConfigDict(frozen=True)

    role_id: str
    role_name: str
    site_id: Optional[str] = None
    campus_id: Optional[str] = None
    permissions: Tuple[PermissionGrant, ...] = ()

    @property
    def is_super_admin(self) -> bool:
        return any(p.is_super_admin for p in self.permissions)


class Principal(BaseModel):
    """The authenticated user with every role assignment resolved.

    Built by ``build_principal`` only; never persisted.
    """
    model_config = ConfigDict(frozen=True)

    user: User
    roles: Tuple[HydratedRole, ...] = ()
    built_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
