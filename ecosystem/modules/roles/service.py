import logging
from supabase import Client
from ecosystem.config.permissions_config import permission_key
from ecosystem.modules.authz.engine import can
from ecosystem.modules.authz.models import Permission, Principal, Role, RoleAssignment, Scope, WILDCARD_RESOURCE
from ecosystem.modules.authz.repository import SupabaseAuthorizationRepository
from ecosystem.modules.roles.schemas import (
    PermissionResponse,
    RoleCreate, RoleUpdate, RoleResponse, RoleWithPermissionsResponse,
    AssignmentResponse,
)
from typing import Dict, Iterable, List, Optional
from fastapi import HTTPException

logger = logging.getLogger(__name__)


def _assignment_response(row: Dict) -> AssignmentResponse:
    return AssignmentResponse(
        id=row["id"],
        user_id=row["user_id"],
        role_id=row["role_id"],
        site_id=row.get("site_id"),
        campus_id=row.get("campus_id")
    )


def ungrantable_permissions(principal: Principal, permissions: Iterable[Permission], scope: Scope) -> List[str]:
    """Keys of the permissions the principal does not itself hold in scope"""
    return sorted(
        permission_key(p.action, p.resource)
        for p in permissions
        if not can(principal, p.action, p.resource, scope)
    )


def ensure_grantable(principal: Principal, permissions: Iterable[Permission], scope: Scope):
    """Nobody can hand out a permission they could not use themselves"""
    missing = ungrantable_permissions(principal, permissions, scope)
    if missing:
        logger.info(f"User {principal.user.id} tried to grant permissions it does not hold: {missing}")
        raise HTTPException(status_code=403, detail=f"Cannot grant permissions you do not hold: {missing}")


class PermissionService:
    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.repository = SupabaseAuthorizationRepository(supabase)

    def list_permissions(self, resource: Optional[str] = None) -> List[PermissionResponse]:
        """List the permission catalog, optionally filtered by resource"""
        permissions = self.repository.list_permissions()
        if resource:
            permissions = [p for p in permissions if p.resource == resource]
        permissions.sort(key=lambda p: (p.resource, p.action.value))
        return [PermissionResponse.model_validate(p) for p in permissions]

    def get_permissions_by_ids(self, permission_ids: List[str]) -> List[Permission]:
        """Resolve permission ids; raises 400 when any id is unknown"""
        wanted = set(permission_ids)
        if not wanted:
            return []
        found = [p for p in self.repository.list_permissions() if p.id in wanted]
        missing = wanted - {p.id for p in found}
        if missing:
            raise HTTPException(status_code=400, detail=f"Unknown permission ids: {sorted(missing)}")
        return found


class RoleService:
    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.repository = SupabaseAuthorizationRepository(supabase)
        self.permission_service = PermissionService(supabase)

    def _find_role(self, site_id: str, role_id: str) -> Role:
        """Role visible from a site: global or owned by that site"""
        for role in self.repository.list_roles(site_id=site_id):
            if role.id == role_id:
                return role
        raise HTTPException(status_code=404, detail="Role not found")

    def _find_custom_role(self, site_id: str, role_id: str) -> Role:
        role = self._find_role(site_id, role_id)
        if role.is_global:
            raise HTTPException(status_code=403, detail="Global roles are read-only")
        return role

    def _validated_permissions(self, principal: Principal, site_id: str, permission_ids: List[str]) -> List[Permission]:
        permissions = self.permission_service.get_permissions_by_ids(permission_ids)
        if any(p.resource == WILDCARD_RESOURCE for p in permissions):
            raise HTTPException(status_code=400, detail="Wildcard permissions cannot be granted to site roles")
        ensure_grantable(principal, permissions, Scope(site_id=site_id))
        return permissions

    def _ensure_name_free(self, site_id: str, name: str, role_id: Optional[str] = None):
        for role in self.repository.list_roles(site_id=site_id):
            if role.name == name and role.site_id == site_id and role.id != role_id:
                raise HTTPException(status_code=400, detail=f"Role '{name}' already exists in this site")

    def _discard_role(self, role_id: str):
        """Remove a half-created role"""
        try:
            self.supabase.table("role_permissions").delete().eq("role_id", role_id).execute()
            self.supabase.table("roles").delete().eq("id", role_id).execute()
        except Exception:
            logger.exception(f"Failed to discard partially created role {role_id}")

    def _replace_permissions(self, role_id: str, permission_ids: List[str]):
        self.supabase.table("role_permissions")\
            .delete()\
            .eq("role_id", role_id)\
            .execute()
        if permission_ids:
            self.supabase.table("role_permissions").insert([
                {"role_id": role_id, "permission_id": pid}
                for pid in sorted(set(permission_ids))
            ]).execute()

    def list_roles(self, site_id: str) -> List[RoleResponse]:
        """List global roles and the custom roles of a site"""
        roles = sorted(self.repository.list_roles(site_id=site_id), key=lambda r: (not r.is_global, r.name))
        return [RoleResponse.model_validate(role) for role in roles]

    def get_role_with_permissions(self, site_id: str, role_id: str) -> RoleWithPermissionsResponse:
        """Get role with all associated permissions"""
        role = self._find_role(site_id, role_id)
        permissions = [
            p for p in self.repository.list_permissions() if p.id in role.permission_ids
        ]
        return RoleWithPermissionsResponse(
            **RoleResponse.model_validate(role).model_dump(),
            permissions=[PermissionResponse.model_validate(p) for p in permissions]
        )

    def create_role(self, principal: Principal, site_id: str, role_data: RoleCreate) -> RoleWithPermissionsResponse:
        """
        Create a custom role owned by a site.

        The caller can only bundle permissions it holds itself in that site.
        """
        name = role_data.name.strip()
        if not name:
            raise HTTPException(status_code=400, detail="Role name is required")
        self._ensure_name_free(site_id, name)
        self._validated_permissions(principal, site_id, role_data.permission_ids)

        try:
            result = self.supabase.table("roles").insert({
                "name": name,
                "site_id": site_id,
                "description": role_data.description
            }).execute()
        except Exception as e:
            logger.exception(f"Failed to create role {name} for site {site_id}")
            raise HTTPException(status_code=500, detail=str(e))
        if not result.data:
            raise HTTPException(status_code=500, detail="Failed to create role")
        role_id = result.data[0]["id"]

        try:
            self._replace_permissions(role_id, role_data.permission_ids)
        except Exception as e:
            logger.exception(f"Failed to link permissions to new role {role_id}")
            self._discard_role(role_id)
            raise HTTPException(status_code=500, detail=str(e))

        logger.info(f"Created role {role_id} ({name}) for site {site_id}")
        return self.get_role_with_permissions(site_id, role_id)

    def update_role(
        self,
        principal: Principal,
        site_id: str,
        role_id: str,
        role_data: RoleUpdate
    ) -> RoleWithPermissionsResponse:
        """Rename a custom role and/or replace its permission set"""
        self._find_custom_role(site_id, role_id)
        name = (role_data.name or "").strip()
        if name:
            self._ensure_name_free(site_id, name, role_id=role_id)
        if role_data.permission_ids is not None:
            self._validated_permissions(principal, site_id, role_data.permission_ids)

        try:
            update_data = {}
            if name:
                update_data["name"] = name
            if role_data.description is not None:
                update_data["description"] = role_data.description
            if update_data:
                self.supabase.table("roles")\
                    .update(update_data)\
                    .eq("id", role_id)\
                    .execute()
            if role_data.permission_ids is not None:
                self._replace_permissions(role_id, role_data.permission_ids)
        except Exception as e:
            logger.exception(f"Failed to update role {role_id}")
            raise HTTPException(status_code=500, detail=str(e))

        # Principals holding this role pick up the change on their next request
        logger.info(f"Updated role {role_id} in site {site_id}")
        return self.get_role_with_permissions(site_id, role_id)

    def delete_role(self, site_id: str, role_id: str) -> bool:
        """Delete a custom role together with its permission links and assignments"""
        self._find_custom_role(site_id, role_id)
        try:
            self.supabase.table("user_roles")\
                .delete()\
                .eq("role_id", role_id)\
                .execute()
            self.supabase.table("role_permissions")\
                .delete()\
                .eq("role_id", role_id)\
                .execute()
            result = self.supabase.table("roles")\
                .delete()\
                .eq("id", role_id)\
                .execute()
        except Exception as e:
            logger.exception(f"Failed to delete role {role_id}")
            raise HTTPException(status_code=500, detail=str(e))

        logger.info(f"Deleted role {role_id} from site {site_id}")
        return len(result.data) > 0


class AssignmentService:
    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.repository = SupabaseAuthorizationRepository(supabase)

    def _get_role(self, role_id: str) -> Role:
        for role in self.repository.list_roles():
            if role.id == role_id:
                return role
        raise HTTPException(status_code=404, detail="Role not found")

    def _exists(self, assignment: RoleAssignment) -> bool:
        query = self.supabase.table("user_roles")\
            .select("id")\
            .eq("user_id", assignment.user_id)\
            .eq("role_id", assignment.role_id)
        if assignment.site_id is None:
            query = query.is_("site_id", "null")
        else:
            query = query.eq("site_id", assignment.site_id)
        if assignment.campus_id is None:
            query = query.is_("campus_id", "null")
        else:
            query = query.eq("campus_id", assignment.campus_id)
        return bool(query.execute().data)

    def list_site_assignments(self, site_id: str) -> List[AssignmentResponse]:
        """List assignments scoped to a site"""
        try:
            result = self.supabase.table("user_roles")\
                .select("*")\
                .eq("site_id", site_id)\
                .execute()
        except Exception as e:
            logger.exception(f"Failed to list assignments for site {site_id}")
            raise HTTPException(status_code=500, detail=str(e))
        return [_assignment_response(row) for row in result.data or []]

    def list_user_assignments(self, user_id: str) -> List[AssignmentResponse]:
        """List every assignment of a user"""
        return [
            AssignmentResponse.model_validate(a)
            for a in self.repository.list_role_assignments(user_id)
            if a.id is not None
        ]

    def assign_role(
        self,
        principal: Principal,
        user_id: str,
        role_id: str,
        site_id: Optional[str] = None,
        campus_id: Optional[str] = None
    ) -> AssignmentResponse:
        """
        Assign a role to a user, optionally scoped to a site and campus.

        Raises:
            HTTPException(404): The role does not exist.
            HTTPException(400): A custom role is assigned outside its owning site,
                or the same (user, role, site, campus) assignment already exists.
            HTTPException(403): The role carries a permission the caller does
                not hold in that scope, e.g. a site admin handing out SUPER_ADMIN.
        """
        role = self._get_role(role_id)
        if not role.is_global and role.site_id != site_id:
            raise HTTPException(status_code=400, detail="Custom roles can only be assigned within their own site")
        if campus_id is not None and site_id is None:
            raise HTTPException(status_code=400, detail="A campus scope requires a site scope")

        role_permissions = [p for p in self.repository.list_permissions() if p.id in role.permission_ids]
        ensure_grantable(principal, role_permissions, Scope(site_id=site_id, campus_id=campus_id))

        assignment = RoleAssignment(user_id=user_id, role_id=role_id, site_id=site_id, campus_id=campus_id)
        if self._exists(assignment):
            raise HTTPException(status_code=400, detail="Role already assigned to user with this scope")

        try:
            result = self.supabase.table("user_roles").insert({
                "user_id": user_id,
                "role_id": role_id,
                "site_id": site_id,
                "campus_id": campus_id
            }).execute()
        except Exception as e:
            logger.exception(f"Failed to assign role {role_id} to user {user_id}")
            raise HTTPException(status_code=500, detail=str(e))
        if not result.data:
            raise HTTPException(status_code=500, detail="Failed to assign role")

        logger.info(f"Assigned role {role_id} to user {user_id} (site={site_id}, campus={campus_id})")
        return _assignment_response(result.data[0])

    def revoke_assignment(self, site_id: str, assignment_id: str) -> bool:
        """Remove an assignment that belongs to a site"""
        existing = self.supabase.table("user_roles")\
            .select("*")\
            .eq("id", assignment_id)\
            .eq("site_id", site_id)\
            .execute()
        if not existing.data:
            raise HTTPException(status_code=404, detail="Assignment not found")
        try:
            self.supabase.table("user_roles")\
                .delete()\
                .eq("id", assignment_id)\
                .execute()
        except Exception as e:
            logger.exception(f"Failed to revoke assignment {assignment_id}")
            raise HTTPException(status_code=500, detail=str(e))

        logger.info(f"Revoked assignment {assignment_id} in site {site_id}")
        return True
