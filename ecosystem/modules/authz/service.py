import logging
from typing import Optional

from ecosystem.modules.authz.builder import StaleHook, StaleReference, build_principal
from ecosystem.modules.authz.models import Principal, User
from ecosystem.modules.authz.repository import AuthorizationRepository

logger = logging.getLogger(__name__)


class AuthorizationService:
    def __init__(self, repository: AuthorizationRepository, on_stale: Optional[StaleHook] = None):
        self.repository = repository
        self.on_stale = on_stale

    def load_principal(self, user: User) -> Principal:
        """Read the user's assignments and the current catalogs, then hydrate a fresh Principal"""
        assignments = self.repository.list_role_assignments(user.id)
        roles = self.repository.list_roles()
        permissions = self.repository.list_permissions()

        stale = []

        def collect(reference: StaleReference):
            stale.append(reference)
            if self.on_stale is not None:
                self.on_stale(reference)

        principal = build_principal(user, assignments, roles, permissions, on_stale=collect)
        if stale:
            logger.warning(
                f"Principal for user {user.id} built with {len(stale)} dropped reference(s); "
                "role assignments and the role catalog have drifted"
            )
        logger.debug(f"Built principal for user {user.id} with {len(principal.roles)} role(s)")
        return principal
