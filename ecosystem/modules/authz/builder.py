"""
Principal builder: hydrates a raw user and its role assignments into a Principal.

Pure transformation over already-fetched catalogs. References that no longer
resolve are dropped so a principal can always be built from partially stale
data; each drop is reported to the optional ``on_stale`` hook and logged.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from ecosystem.modules.authz.models import (
    HydratedRole,
    Permission,
    PermissionGrant,
    Principal,
    Role,
    RoleAssignment,
    User,
)

logger = logging.getLogger(__name__)

STALE_FOREIGN_ASSIGNMENT = "foreign_assignment"
STALE_MISSING_ROLE = "missing_role"
STALE_MISSING_PERMISSION = "missing_permission"
STALE_SITE_MISMATCH = "site_mismatch"


@dataclass(frozen=True)
class StaleReference:
    kind: str
    user_id: str
    assignment: RoleAssignment
    reference_id: str


StaleHook = Callable[[StaleReference], None]


def _report(on_stale: Optional[StaleHook], stale: StaleReference) -> None:
    logger.warning(
        "Dropped %s reference %s while building principal for user %s",
        stale.kind, stale.reference_id, stale.user_id
    )
    if on_stale is None:
        return
    try:
        on_stale(stale)
    except Exception:
        logger.exception("Stale reference hook failed for %s", stale.reference_id)


def _resolve_grants(
    role: Role,
    assignment: RoleAssignment,
    permissions_by_id: Dict[str, Permission],
    on_stale: Optional[StaleHook],
) -> tuple:
    grants: List[PermissionGrant] = []
    seen = set()
    for permission_id in sorted(role.permission_ids):
        permission = permissions_by_id.get(permission_id)
        if permission is None:
            _report(on_stale, StaleReference(STALE_MISSING_PERMISSION, assignment.user_id, assignment, permission_id))
            continue
        grant = permission.to_grant()
        if grant in seen:
            continue
        seen.add(grant)
        grants.append(grant)
    return tuple(grants)


def build_principal(
    user: User,
    assignments: Iterable[RoleAssignment],
    roles: Iterable[Role],
    permissions: Iterable[Permission],
    on_stale: Optional[StaleHook] = None,
) -> Principal:
    """
    Resolve every assignment of ``user`` into a hydrated role entry.

    Args:
        user: The authenticated user.
        assignments: The user's assignment rows. Rows for other users are ignored.
        roles: The full role catalog.
        permissions: The full permission catalog.
        on_stale: Optional diagnostic hook called for every dropped reference.
            It cannot change the outcome.

    Returns:
        A Principal whose role entries each keep their own site/campus scope.
    """
    roles_by_id = {role.id: role for role in roles}
    permissions_by_id = {permission.id: permission for permission in permissions}

    hydrated: List[HydratedRole] = []
    for assignment in assignments:
        if assignment.user_id != user.id:
            _report(on_stale, StaleReference(STALE_FOREIGN_ASSIGNMENT, user.id, assignment, assignment.user_id))
            continue

        role = roles_by_id.get(assignment.role_id)
        if role is None:
            _report(on_stale, StaleReference(STALE_MISSING_ROLE, user.id, assignment, assignment.role_id))
            continue

        site_id = assignment.site_id
        if not role.is_global:
            # Tenant-custom roles only apply inside their owning site
            if site_id is None:
                site_id = role.site_id
            elif site_id != role.site_id:
                _report(on_stale, StaleReference(STALE_SITE_MISMATCH, user.id, assignment, role.id))
                continue

        hydrated.append(HydratedRole(
            role_id=role.id,
            role_name=role.name,
            site_id=site_id,
            campus_id=assignment.campus_id,
            permissions=_resolve_grants(role, assignment, permissions_by_id, on_stale),
        ))

    return Principal(user=user, roles=tuple(hydrated))
