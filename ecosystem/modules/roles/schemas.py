from pydantic import BaseModel
from typing import Optional, List

from ecosystem.modules.authz.models import PermissionAction


class PermissionResponse(BaseModel):
    id: str
    action: PermissionAction
    resource: str
    description: Optional[str] = None

    class Config:
        from_attributes = True


class RoleCreate(BaseModel):
    name: str
    description: Optional[str] = None
    permission_ids: List[str] = []


class RoleUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    permission_ids: Optional[List[str]] = None  # None keeps the current set; a list replaces it


class RoleResponse(BaseModel):
    id: str
    name: str
    site_id: Optional[str] = None
    description: Optional[str] = None
    is_global: bool

    class Config:
        from_attributes = True


class RoleWithPermissionsResponse(RoleResponse):
    permissions: List[PermissionResponse]


class AssignmentCreate(BaseModel):
    user_id: str
    role_id: str
    campus_id: Optional[str] = None


class GlobalAssignmentCreate(BaseModel):
    user_id: str
    role_id: str


class AssignmentResponse(BaseModel):
    id: str
    user_id: str
    role_id: str
    site_id: Optional[str] = None
    campus_id: Optional[str] = None

    class Config:
        from_attributes = True
