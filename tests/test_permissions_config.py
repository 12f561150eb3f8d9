import pytest

from ecosystem.config import permissions_config
from ecosystem.config.permissions_config import (
    GLOBAL_ROLES,
    PERMISSION_MATRIX,
    SUPER_ADMIN_ROLE,
    get_permission_matrix,
    permission_key,
)
from ecosystem.modules.authz.models import PermissionAction


def test_permission_key_format():
    assert permission_key(PermissionAction.MANAGE, "roles") == "roles:manage"
    assert permission_key("READ", "conference_portal") == "conference_portal:read"


def test_catalog_keys_are_unique_and_include_the_super_admin_grant():
    keys = [p["key"] for p in PERMISSION_MATRIX["permissions"]]
    assert len(keys) == len(set(keys))
    assert "*:manage" in keys


def test_every_catalog_action_is_a_known_action():
    for permission in PERMISSION_MATRIX["permissions"]:
        PermissionAction(permission["action"])
        assert permission["resource"].strip()
        assert permission["description"]


def test_global_roles_are_all_exported():
    names = [role["name"] for role in PERMISSION_MATRIX["roles"]]
    assert names == list(GLOBAL_ROLES)
    super_admin = next(role for role in PERMISSION_MATRIX["roles"] if role["name"] == SUPER_ADMIN_ROLE)
    assert super_admin["permissions"] == ["*:manage"]


def test_role_referencing_unknown_permission_is_rejected(monkeypatch):
    broken = dict(GLOBAL_ROLES)
    broken["BROKEN"] = {"description": "x", "permissions": [(PermissionAction.EXPORT, "hotel_portal")]}
    monkeypatch.setattr(permissions_config, "GLOBAL_ROLES", broken)
    with pytest.raises(ValueError, match="hotel_portal:export"):
        get_permission_matrix()
