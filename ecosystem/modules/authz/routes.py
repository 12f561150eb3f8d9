from fastapi import APIRouter, Depends
from ecosystem.core.dependencies import get_principal
from ecosystem.modules.authz.engine import can, effective_grants, is_super_admin
from ecosystem.modules.authz.models import Principal, Scope
from ecosystem.modules.authz.schemas import (
    AccessCheckRequest, AccessCheckResponse, HydratedRoleResponse, PrincipalResponse
)
from typing import Optional

router = APIRouter(prefix="/authz", tags=["authz"])


def to_principal_response(principal: Principal, scope: Optional[Scope] = None) -> PrincipalResponse:
    return PrincipalResponse(
        user=principal.user,
        roles=[HydratedRoleResponse.model_validate(role) for role in principal.roles],
        is_super_admin=is_super_admin(principal),
        effective_permissions=effective_grants(principal, scope),
        built_at=principal.built_at
    )


@router.get("/me", response_model=PrincipalResponse)
async def get_my_principal(
    site_id: Optional[str] = None,
    campus_id: Optional[str] = None,
    principal: Principal = Depends(get_principal)
):
    """Current principal with every role entry, its scope and its grants (for frontend UI).
    effective_permissions lists the grants usable in the given site/campus."""
    return to_principal_response(principal, Scope(site_id=site_id, campus_id=campus_id).normalized())


@router.post("/check", response_model=AccessCheckResponse)
async def check_access(
    check: AccessCheckRequest,
    principal: Principal = Depends(get_principal)
):
    """Evaluate can(action, resource, scope) for the current principal"""
    # Empty scope fields from the client mean "absent"; an omitted site_id is
    # an unscoped request and is granted by site-scoped roles too.
    scope = Scope(site_id=check.site_id, campus_id=check.campus_id).normalized()
    return AccessCheckResponse(
        allowed=can(principal, check.action, check.resource, scope),
        action=check.action,
        resource=check.resource,
        site_id=scope.site_id,
        campus_id=scope.campus_id
    )
