import pytest
from fastapi.testclient import TestClient

from ecosystem.database.supabase_client import get_supabase
from ecosystem.main import app
from ecosystem.modules.authz.models import (
    HydratedRole,
    PermissionAction,
    PermissionGrant,
    Principal,
    User,
)
from ecosystem.modules.authz.repository import clear_auth_user_cache
from ecosystem.scripts.seed_catalog import seed_catalog
from tests.fakes import FakeSupabase

SITE_CONF = "site_conf_1"
SITE_HOTEL = "site_hotel_1"


@pytest.fixture(autouse=True)
def _reset_auth_cache():
    clear_auth_user_cache()
    yield
    clear_auth_user_cache()


@pytest.fixture
def supabase():
    """Fake Supabase seeded with the permission catalog and global roles"""
    fake = FakeSupabase()
    seed_catalog(fake)
    return fake


@pytest.fixture
def client(supabase):
    app.dependency_overrides[get_supabase] = lambda: supabase
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def users(supabase):
    """
    Bearer tokens for a set of users:
    root is SUPER_ADMIN, alice manages roles in SITE_CONF, carol is a
    conference manager in SITE_CONF, nobody has no assignments.
    """
    auth = supabase.auth
    auth.add_user("root-token", "root", "root@example.com", "Root", "Admin")
    auth.add_user("alice-token", "alice", "alice@example.com", "Alice", "Site")
    auth.add_user("carol-token", "carol", "carol@example.com", "Carol", "Conf")
    auth.add_user("nobody-token", "nobody", "nobody@example.com")

    supabase.assign("root", supabase.role_id("SUPER_ADMIN"))
    supabase.assign("alice", supabase.role_id("SITE_ADMIN"), site_id=SITE_CONF)
    supabase.assign("carol", supabase.role_id("CONFERENCE_MANAGER"), site_id=SITE_CONF)
    return {
        "root": {"Authorization": "Bearer root-token"},
        "alice": {"Authorization": "Bearer alice-token"},
        "carol": {"Authorization": "Bearer carol-token"},
        "nobody": {"Authorization": "Bearer nobody-token"},
    }


def grant(action, resource):
    return PermissionGrant(action=action, resource=resource)


def make_principal(*roles, user_id="u1"):
    """Principal built directly from (grants, site_id, campus_id) tuples"""
    hydrated = []
    for index, (grants, site_id, campus_id) in enumerate(roles):
        hydrated.append(HydratedRole(
            role_id=f"role-{index}",
            role_name=f"Role {index}",
            site_id=site_id,
            campus_id=campus_id,
            permissions=tuple(grants),
        ))
    return Principal(user=User(id=user_id, email=f"{user_id}@example.com"), roles=tuple(hydrated))


READ = PermissionAction.READ
MANAGE = PermissionAction.MANAGE
