"""
Authorization engine.

``can`` is a pure decision over an immutable Principal snapshot. It never
raises and never caches: anything missing or malformed resolves to a denial.

Grants are additive. A role entry grants a request when it holds a
permission whose resource is the requested one or ``"*"`` and whose action is
the requested one or MANAGE, and its scope is compatible with the request's.
``{MANAGE, "*"}`` grants everything regardless of scope. ``{READ, "*"}`` is a
read-anything grant, not a super admin.

Scope compatibility only constrains where both sides carry a value: an
unscoped request is granted by a site-scoped role entry. Call sites that need
tenant isolation must pass the site explicitly.
"""

from typing import Any, List, Mapping, Optional, Union

from ecosystem.modules.authz.models import (
    HydratedRole,
    PermissionAction,
    PermissionGrant,
    Principal,
    Scope,
    WILDCARD_RESOURCE,
)

ScopeLike = Union[Scope, Mapping[str, Any], None]


def _coerce_action(action: Any) -> Optional[PermissionAction]:
    try:
        return PermissionAction(action)
    except (TypeError, ValueError):
        return None


def _lookup(scope: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if scope.get(key) is not None:
            return scope[key]
    return None


def _coerce_scope(scope: ScopeLike) -> Optional[Scope]:
    if scope is None:
        return Scope()
    if isinstance(scope, Scope):
        return scope
    if isinstance(scope, Mapping):
        site_id = _lookup(scope, "site_id", "siteId")
        campus_id = _lookup(scope, "campus_id", "campusId")
        if not isinstance(site_id, (str, type(None))) or not isinstance(campus_id, (str, type(None))):
            return None
        return Scope(site_id=site_id, campus_id=campus_id)
    return None


def _grant_matches(grant: PermissionGrant, action: PermissionAction, resource: str) -> bool:
    resource_match = grant.resource == resource or grant.resource == WILDCARD_RESOURCE
    action_match = grant.action == action or grant.action == PermissionAction.MANAGE
    return resource_match and action_match


def _scope_matches(role: HydratedRole, scope: Scope) -> bool:
    site_match = scope.site_id is None or role.site_id is None or scope.site_id == role.site_id
    campus_match = scope.campus_id is None or role.campus_id is None or scope.campus_id == role.campus_id
    return site_match and campus_match


def can(
    principal: Optional[Principal],
    action: Union[PermissionAction, str],
    resource: str,
    scope: ScopeLike = None,
) -> bool:
    """
    Decide whether ``principal`` may perform ``action`` on ``resource``.

    Args:
        principal: The current principal, or None when unauthenticated.
        action: A PermissionAction or its string value.
        resource: The protected resource identifier.
        scope: Optional Scope (or mapping with site_id/campus_id) narrowing the request.

    Returns:
        True when any role entry grants the request, otherwise False.
    """
    if principal is None:
        return False

    requested_action = _coerce_action(action)
    if requested_action is None or not isinstance(resource, str) or not resource:
        return False

    requested_scope = _coerce_scope(scope)
    if requested_scope is None:
        return False

    for role in principal.roles:
        if role.is_super_admin:
            return True
        if not any(_grant_matches(grant, requested_action, resource) for grant in role.permissions):
            continue
        if _scope_matches(role, requested_scope):
            return True
    return False


def is_super_admin(principal: Optional[Principal]) -> bool:
    """True when some role entry of ``principal`` holds ``{MANAGE, "*"}``."""
    if principal is None:
        return False
    return any(role.is_super_admin for role in principal.roles)


def effective_grants(principal: Optional[Principal], scope: ScopeLike = None) -> List[PermissionGrant]:
    """Distinct grants of the role entries whose scope is compatible with ``scope``."""
    if principal is None:
        return []
    requested_scope = _coerce_scope(scope)
    if requested_scope is None:
        return []
    grants: List[PermissionGrant] = []
    for role in principal.roles:
        if not role.is_super_admin and not _scope_matches(role, requested_scope):
            continue
        for grant in role.permissions:
            if grant not in grants:
                grants.append(grant)
    return grants
