from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime

from ecosystem.modules.authz.models import PermissionAction, PermissionGrant, User


class AccessCheckRequest(BaseModel):
    action: PermissionAction
    resource: str
    site_id: Optional[str] = None
    campus_id: Optional[str] = None


class AccessCheckResponse(BaseModel):
    allowed: bool
    action: PermissionAction
    resource: str
    site_id: Optional[str] = None
    campus_id: Optional[str] = None


class HydratedRoleResponse(BaseModel):
    role_id: str
    role_name: str
    site_id: Optional[str] = None
    campus_id: Optional[str] = None
    permissions: List[PermissionGrant]

    class Config:
        from_attributes = True


class PrincipalResponse(BaseModel):
    user: User
    roles: List[HydratedRoleResponse]
    is_super_admin: bool
    effective_permissions: List[PermissionGrant]
    built_at: datetime
