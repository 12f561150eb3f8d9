from fastapi import APIRouter, Depends
from ecosystem.database.supabase_client import get_supabase
from ecosystem.modules.auth.schemas import (
    LoginRequest, RegisterRequest, TokenResponse, RegisterResponse
)
from ecosystem.modules.auth.service import AuthService
from ecosystem.core.dependencies import (
    get_authorization_service,
    get_current_token,
    get_principal,
    get_principal_session,
)
from ecosystem.modules.authz.models import Principal
from ecosystem.modules.authz.repository import forget_token
from ecosystem.modules.authz.routes import to_principal_response
from ecosystem.modules.authz.service import AuthorizationService
from ecosystem.modules.authz.session import PrincipalSession
from supabase import Client

router = APIRouter(prefix="/auth", tags=["auth"])


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(
    register_data: RegisterRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Register a new user"""
    return service.register(register_data)


@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: LoginRequest,
    service: AuthService = Depends(get_auth_service),
    authz: AuthorizationService = Depends(get_authorization_service),
    session: PrincipalSession = Depends(get_principal_session)
):
    """Login, get an access token and the freshly hydrated principal"""
    token, user = service.login(login_data)
    principal = authz.load_principal(user)
    session.replace(principal)
    return token.model_copy(update={"principal": to_principal_response(principal)})


@router.post("/logout", status_code=200)
async def logout(
    token: str = Depends(get_current_token),
    service: AuthService = Depends(get_auth_service),
    session: PrincipalSession = Depends(get_principal_session)
):
    """Logout and drop the cached identity for this token"""
    forget_token(token)
    session.clear()
    service.logout(token)
    return {"message": "Logged out successfully"}


@router.get("/me")
async def get_current_user(principal: Principal = Depends(get_principal)):
    """Get current authenticated user and their hydrated roles (for frontend UI)."""
    return to_principal_response(principal)
