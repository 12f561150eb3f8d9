"""
Authorization core: principal hydration and the ``can`` decision.
"""

from ecosystem.modules.authz.builder import StaleReference, build_principal
from ecosystem.modules.authz.engine import can, effective_grants, is_super_admin
from ecosystem.modules.authz.models import (
    HydratedRole,
    Permission,
    PermissionAction,
    PermissionGrant,
    Principal,
    Resource,
    Role,
    RoleAssignment,
    Scope,
    User,
    WILDCARD_RESOURCE,
)
from ecosystem.modules.authz.session import PrincipalSession

__all__ = [
    "PermissionAction",
    "Resource",
    "WILDCARD_RESOURCE",
    "Permission",
    "PermissionGrant",
    "Role",
    "RoleAssignment",
    "Scope",
    "User",
    "HydratedRole",
    "Principal",
    "StaleReference",
    "build_principal",
    "can",
    "is_super_admin",
    "effective_grants",
    "PrincipalSession",
]
