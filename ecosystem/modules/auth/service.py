import logging
from supabase import Client
from ecosystem.modules.auth.schemas import LoginRequest, RegisterRequest, TokenResponse, RegisterResponse
from ecosystem.modules.authz.models import User
from fastapi import HTTPException

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def register(self, register_data: RegisterRequest) -> RegisterResponse:
        """Register a new user using Supabase Auth"""
        try:
            # Prepare user metadata
            user_metadata = {}
            if register_data.first_name:
                user_metadata["first_name"] = register_data.first_name
            if register_data.last_name:
                user_metadata["last_name"] = register_data.last_name

            # Sign up user with Supabase Auth
            auth_response = self.supabase.auth.sign_up({
                "email": register_data.email,
                "password": register_data.password,
                "options": {
                    "data": user_metadata
                }
            })

            if not auth_response.user:
                raise HTTPException(status_code=400, detail="Failed to register user")

            return RegisterResponse(
                user_id=auth_response.user.id,
                email=auth_response.user.email or register_data.email,
                message="User registered successfully"
            )
        except HTTPException:
            raise
        except Exception as e:
            error_message = str(e)
            if "already registered" in error_message.lower() or "already exists" in error_message.lower():
                raise HTTPException(status_code=400, detail="User already exists")
            logger.exception("Registration failed")
            raise HTTPException(status_code=500, detail=f"Registration failed: {error_message}")

    def login(self, login_data: LoginRequest) -> tuple:
        """Authenticate user using Supabase Auth. Returns (TokenResponse, User)"""
        try:
            # Sign in with password
            auth_response = self.supabase.auth.sign_in_with_password({
                "email": login_data.email,
                "password": login_data.password
            })

            if not auth_response.user or not auth_response.session:
                raise HTTPException(status_code=401, detail="Invalid email or password")

            auth_user = auth_response.user
            metadata = auth_user.user_metadata or {}
            user = User(
                id=auth_user.id,
                email=auth_user.email or login_data.email,
                first_name=metadata.get("first_name"),
                last_name=metadata.get("last_name")
            )
            token = TokenResponse(
                access_token=auth_response.session.access_token,
                token_type="bearer",
                user_id=user.id,
                email=user.email
            )
            return token, user
        except HTTPException:
            raise
        except Exception as e:
            error_message = str(e)
            if "invalid" in error_message.lower() or "credentials" in error_message.lower():
                raise HTTPException(status_code=401, detail="Invalid email or password")
            logger.exception("Login failed")
            raise HTTPException(status_code=500, detail=f"Login failed: {error_message}")

    def logout(self, token: str) -> bool:
        """Logout user using Supabase Auth"""
        try:
            # Supabase Auth tokens are stateless JWTs; the token still expires on its own
            self.supabase.auth.sign_out()
            return True
        except Exception as e:
            logger.warning(f"Supabase sign_out failed: {e}")
            return False
