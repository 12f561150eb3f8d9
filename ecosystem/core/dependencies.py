"""
Core dependencies for route protection and permission checking
"""

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from ecosystem.config.permissions_config import permission_key
from ecosystem.database.supabase_client import get_supabase
from ecosystem.modules.authz.engine import can, is_super_admin
from ecosystem.modules.authz.models import PermissionAction, Principal, Scope, User
from ecosystem.modules.authz.repository import SupabaseAuthorizationRepository
from ecosystem.modules.authz.service import AuthorizationService
from ecosystem.modules.authz.session import PrincipalSession
from supabase import Client
from typing import Optional
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_authz_repository(supabase: Client = Depends(get_supabase)) -> SupabaseAuthorizationRepository:
    return SupabaseAuthorizationRepository(supabase)


def get_authorization_service(
    repository: SupabaseAuthorizationRepository = Depends(get_authz_repository)
) -> AuthorizationService:
    return AuthorizationService(repository)


def get_principal_session(request: Request) -> PrincipalSession:
    """Return the request-scoped principal session. Never shared across requests."""
    if not hasattr(request.state, "principal_session"):
        request.state.principal_session = PrincipalSession()
    return request.state.principal_session


def get_current_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security)
) -> str:
    """Extract JWT token from Authorization header"""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return credentials.credentials


def get_current_user(
    token: str = Depends(get_current_token),
    repository: SupabaseAuthorizationRepository = Depends(get_authz_repository)
) -> User:
    """Resolve the bearer token to the raw user"""
    user = repository.get_authenticated_user(token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_principal(
    user: User = Depends(get_current_user),
    session: PrincipalSession = Depends(get_principal_session),
    service: AuthorizationService = Depends(get_authorization_service)
) -> Principal:
    """Hydrate the principal from fresh repository reads, once per request"""
    principal = session.current
    if principal is None or principal.user.id != user.id:
        principal = service.load_principal(user)
        session.replace(principal)
    return principal


def request_scope(request: Request, site_param: Optional[str], campus_param: Optional[str]) -> Scope:
    """Build the normalized request scope from path parameters, falling back to query parameters"""
    def lookup(name: Optional[str]) -> Optional[str]:
        if not name:
            return None
        return request.path_params.get(name) or request.query_params.get(name)

    return Scope(site_id=lookup(site_param), campus_id=lookup(campus_param)).normalized()


def require_permission(
    action: PermissionAction,
    resource: str,
    site_param: Optional[str] = "site_id",
    campus_param: Optional[str] = "campus_id"
):
    """
    Factory function to create a permission check dependency.

    The scope is read from the named path/query parameters. Passing
    ``site_param=None`` makes the check unscoped, which any site-scoped grant
    satisfies; only do that for data that is not partitioned by site.
    """
    def check_permission(
        request: Request,
        principal: Principal = Depends(get_principal)
    ) -> Principal:
        """Dependency to check if the principal may perform the action"""
        scope = request_scope(request, site_param, campus_param)
        if not can(principal, action, resource, scope):
            logger.info(
                f"Denied {permission_key(action, resource)} for user {principal.user.id} "
                f"(site={scope.site_id}, campus={scope.campus_id})"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required: {permission_key(action, resource)}"
            )
        return principal
    return check_permission


def require_super_admin(principal: Principal = Depends(get_principal)) -> Principal:
    """Allow only principals holding the {MANAGE, "*"} grant"""
    if not is_super_admin(principal):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only super admins can perform this action"
        )
    return principal
