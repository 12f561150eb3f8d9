from fastapi import APIRouter, Depends, HTTPException, status
from ecosystem.database.supabase_client import get_supabase
from ecosystem.modules.roles.schemas import (
    PermissionResponse,
    RoleCreate, RoleUpdate, RoleResponse, RoleWithPermissionsResponse,
    AssignmentCreate, GlobalAssignmentCreate, AssignmentResponse,
)
from ecosystem.modules.roles.service import RoleService, PermissionService, AssignmentService
from ecosystem.core.dependencies import get_principal, require_permission, require_super_admin
from ecosystem.modules.authz.engine import can
from ecosystem.modules.authz.models import PermissionAction, Principal
from supabase import Client
from typing import List, Optional

router = APIRouter(tags=["roles"])


def get_role_service(supabase: Client = Depends(get_supabase)) -> RoleService:
    return RoleService(supabase)


def get_permission_service(supabase: Client = Depends(get_supabase)) -> PermissionService:
    return PermissionService(supabase)


def get_assignment_service(supabase: Client = Depends(get_supabase)) -> AssignmentService:
    return AssignmentService(supabase)


# Permission catalog
@router.get("/permissions", response_model=List[PermissionResponse])
async def list_permissions(
    resource: Optional[str] = None,
    # The catalog is not partitioned by site, so a site-scoped READ roles grant is enough
    principal: Principal = Depends(require_permission(PermissionAction.READ, "roles", site_param=None)),
    service: PermissionService = Depends(get_permission_service)
):
    """List the permission catalog"""
    return service.list_permissions(resource=resource)


# Site roles
@router.get("/sites/{site_id}/roles", response_model=List[RoleResponse])
async def list_roles(
    site_id: str,
    principal: Principal = Depends(require_permission(PermissionAction.READ, "roles")),
    service: RoleService = Depends(get_role_service)
):
    """List global roles and the custom roles of this site"""
    return service.list_roles(site_id)


@router.get("/sites/{site_id}/roles/{role_id}", response_model=RoleWithPermissionsResponse)
async def get_role(
    site_id: str,
    role_id: str,
    principal: Principal = Depends(require_permission(PermissionAction.READ, "roles")),
    service: RoleService = Depends(get_role_service)
):
    """Get role with permissions"""
    return service.get_role_with_permissions(site_id, role_id)


@router.post("/sites/{site_id}/roles", response_model=RoleWithPermissionsResponse, status_code=201)
async def create_role(
    site_id: str,
    role_data: RoleCreate,
    principal: Principal = Depends(require_permission(PermissionAction.MANAGE, "roles")),
    service: RoleService = Depends(get_role_service)
):
    """Create a custom role owned by this site"""
    return service.create_role(principal, site_id, role_data)


@router.put("/sites/{site_id}/roles/{role_id}", response_model=RoleWithPermissionsResponse)
async def update_role(
    site_id: str,
    role_id: str,
    role_data: RoleUpdate,
    principal: Principal = Depends(require_permission(PermissionAction.MANAGE, "roles")),
    service: RoleService = Depends(get_role_service)
):
    """Update a custom role"""
    return service.update_role(principal, site_id, role_id, role_data)


@router.delete("/sites/{site_id}/roles/{role_id}", status_code=204)
async def delete_role(
    site_id: str,
    role_id: str,
    principal: Principal = Depends(require_permission(PermissionAction.MANAGE, "roles")),
    service: RoleService = Depends(get_role_service)
):
    """Delete a custom role and its assignments"""
    service.delete_role(site_id, role_id)
    return None


# Site assignments
@router.get("/sites/{site_id}/assignments", response_model=List[AssignmentResponse])
async def list_site_assignments(
    site_id: str,
    principal: Principal = Depends(require_permission(PermissionAction.READ, "roles")),
    service: AssignmentService = Depends(get_assignment_service)
):
    """List role assignments in this site"""
    return service.list_site_assignments(site_id)


@router.post("/sites/{site_id}/assignments", response_model=AssignmentResponse, status_code=201)
async def assign_role(
    site_id: str,
    assignment_data: AssignmentCreate,
    principal: Principal = Depends(require_permission(PermissionAction.MANAGE, "roles")),
    service: AssignmentService = Depends(get_assignment_service)
):
    """Assign a role to a user within this site"""
    return service.assign_role(
        principal,
        assignment_data.user_id,
        assignment_data.role_id,
        site_id=site_id,
        campus_id=assignment_data.campus_id or None
    )


@router.delete("/sites/{site_id}/assignments/{assignment_id}", status_code=204)
async def revoke_assignment(
    site_id: str,
    assignment_id: str,
    principal: Principal = Depends(require_permission(PermissionAction.MANAGE, "roles")),
    service: AssignmentService = Depends(get_assignment_service)
):
    """Revoke a role assignment in this site"""
    service.revoke_assignment(site_id, assignment_id)
    return None


@router.get("/users/{user_id}/assignments", response_model=List[AssignmentResponse])
async def list_user_assignments(
    user_id: str,
    principal: Principal = Depends(get_principal),
    service: AssignmentService = Depends(get_assignment_service)
):
    """List a user's role assignments. Users can always see their own."""
    if principal.user.id != user_id and not can(principal, PermissionAction.READ, "users"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions. Required: users:read"
        )
    return service.list_user_assignments(user_id)


@router.post("/assignments", response_model=AssignmentResponse, status_code=201)
async def assign_global_role(
    assignment_data: GlobalAssignmentCreate,
    principal: Principal = Depends(require_super_admin),
    service: AssignmentService = Depends(get_assignment_service)
):
    """Assign a role with no site scope. Restricted to super admins."""
    return service.assign_role(principal, assignment_data.user_id, assignment_data.role_id)
