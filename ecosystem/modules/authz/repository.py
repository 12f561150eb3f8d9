"""
Role/permission/assignment repository.

Expected Supabase table structure:

permissions:
- id: uuid (primary key)
- action: text (not null) - CREATE | READ | UPDATE | DELETE | MANAGE | EXPORT | IMPORT
- resource: text (not null) - e.g. "conference_portal", or "*"
- description: text (nullable)
- unique constraint on (action, resource)

roles:
- id: uuid (primary key)
- name: text (not null)
- site_id: text (nullable) - null for global roles
- description: text (nullable)

role_permissions:
- role_id: uuid (foreign key to roles.id, not null)
- permission_id: uuid (foreign key to permissions.id, not null)
- unique constraint on (role_id, permission_id)

user_roles:
- id: uuid (primary key)
- user_id: uuid (auth.users.id, not null)
- role_id: uuid (not null)
- site_id: text (nullable)
- campus_id: text (nullable)
- unique constraint on (user_id, role_id, site_id, campus_id)

Reads degrade to empty results on failure so a broken catalog can only
reduce access.
"""

import hashlib
import logging
import time
from typing import Any, Dict, List, Optional, Protocol

from pydantic import ValidationError
from supabase import Client

from ecosystem.config import settings
from ecosystem.modules.authz.models import Permission, Role, RoleAssignment, User

logger = logging.getLogger(__name__)

# Token -> User identity cache; keeps parallel requests with the same token off the auth API
_AUTH_USER_CACHE: Dict[str, tuple] = {}


def clear_auth_user_cache():
    _AUTH_USER_CACHE.clear()


def forget_token(token: str):
    _AUTH_USER_CACHE.pop(hashlib.sha256(token.encode()).hexdigest(), None)


class AuthorizationRepository(Protocol):
    def list_permissions(self) -> List[Permission]:
        ...

    def list_roles(self, site_id: Optional[str] = None, global_only: bool = False) -> List[Role]:
        ...

    def list_role_assignments(self, user_id: str) -> List[RoleAssignment]:
        ...

    def get_authenticated_user(self, token: str) -> Optional[User]:
        ...


def _user_from_auth(user: Any) -> User:
    metadata = user.user_metadata or {}
    first_name = metadata.get("first_name")
    last_name = metadata.get("last_name")
    if not first_name and metadata.get("full_name"):
        first_name, _, last_name = metadata["full_name"].partition(" ")
    return User(
        id=user.id,
        email=user.email,
        first_name=first_name or None,
        last_name=last_name or None,
    )


class SupabaseAuthorizationRepository:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def list_permissions(self) -> List[Permission]:
        """All permissions in the catalog; malformed rows are dropped"""
        try:
            result = self.supabase.table("permissions").select("*").execute()
        except Exception as e:
            logger.error(f"Error listing permissions: {e}")
            return []
        permissions = []
        for row in result.data or []:
            try:
                permissions.append(Permission(
                    id=row["id"],
                    action=row["action"],
                    resource=row["resource"],
                    description=row.get("description")
                ))
            except (KeyError, ValidationError) as e:
                logger.warning(f"Skipping malformed permission row {row.get('id')}: {e}")
        return permissions

    def list_roles(self, site_id: Optional[str] = None, global_only: bool = False) -> List[Role]:
        """
        List roles with their permission ids.

        Args:
            site_id: When set, global roles plus the custom roles owned by this site.
            global_only: When set, only global roles.

        With neither filter every role is returned.
        """
        try:
            if global_only or site_id is not None:
                rows = self.supabase.table("roles").select("*").is_("site_id", "null").execute().data or []
                if site_id is not None and not global_only:
                    rows += self.supabase.table("roles").select("*").eq("site_id", site_id).execute().data or []
            else:
                rows = self.supabase.table("roles").select("*").execute().data or []

            role_ids = [row["id"] for row in rows if row.get("id")]
            links = []
            if role_ids:
                links = self.supabase.table("role_permissions")\
                    .select("role_id, permission_id")\
                    .in_("role_id", role_ids)\
                    .execute().data or []
        except Exception as e:
            logger.error(f"Error listing roles: {e}")
            return []

        permission_ids: Dict[str, set] = {}
        for link in links:
            permission_ids.setdefault(link.get("role_id"), set()).add(link.get("permission_id"))

        roles = []
        for row in rows:
            try:
                roles.append(Role(
                    id=row["id"],
                    name=row["name"],
                    site_id=row.get("site_id"),
                    description=row.get("description"),
                    permission_ids=frozenset(
                        pid for pid in permission_ids.get(row["id"], ()) if isinstance(pid, str)
                    )
                ))
            except (KeyError, ValidationError) as e:
                logger.warning(f"Skipping malformed role row {row.get('id')}: {e}")
        return roles

    def list_role_assignments(self, user_id: str) -> List[RoleAssignment]:
        """Assignment rows of one user; malformed rows are dropped"""
        try:
            result = self.supabase.table("user_roles")\
                .select("*")\
                .eq("user_id", user_id)\
                .execute()
        except Exception as e:
            logger.error(f"Error listing role assignments for user {user_id}: {e}")
            return []
        assignments = []
        for row in result.data or []:
            try:
                assignments.append(RoleAssignment(
                    id=row.get("id"),
                    user_id=row["user_id"],
                    role_id=row["role_id"],
                    site_id=row.get("site_id"),
                    campus_id=row.get("campus_id")
                ))
            except (KeyError, ValidationError) as e:
                logger.warning(f"Skipping malformed assignment row {row.get('id')}: {e}")
        return assignments

    def get_authenticated_user(self, token: str) -> Optional[User]:
        """Resolve a Supabase Auth token to a User, or None. Uses short TTL cache to reduce auth API calls."""
        if not token:
            return None
        cache_key = hashlib.sha256(token.encode()).hexdigest()
        now = time.monotonic()
        if cache_key in _AUTH_USER_CACHE:
            user, expiry = _AUTH_USER_CACHE[cache_key]
            if now < expiry:
                return user
            del _AUTH_USER_CACHE[cache_key]
        try:
            user_response = self.supabase.auth.get_user(jwt=token)
        except Exception as e:
            logger.info(f"Token rejected by auth provider: {e}")
            return None
        if not user_response or not user_response.user:
            return None
        user = _user_from_auth(user_response.user)
        if len(_AUTH_USER_CACHE) < settings.auth_cache_max_size:
            _AUTH_USER_CACHE[cache_key] = (user, now + settings.auth_cache_ttl_sec)
        return user
