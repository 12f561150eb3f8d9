import logging

from ecosystem.modules.authz.builder import (
    STALE_FOREIGN_ASSIGNMENT,
    STALE_MISSING_PERMISSION,
    STALE_MISSING_ROLE,
    STALE_SITE_MISMATCH,
    build_principal,
)
from ecosystem.modules.authz.engine import can
from ecosystem.modules.authz.models import (
    Permission,
    PermissionAction,
    PermissionGrant,
    Role,
    RoleAssignment,
    Scope,
    User,
)

USER = User(id="u1", email="u1@example.com")

PERMISSIONS = [
    Permission(id="p-read-conf", action=PermissionAction.READ, resource="conference_portal"),
    Permission(id="p-read-hotel", action=PermissionAction.READ, resource="hotel_portal"),
    Permission(id="p-super", action=PermissionAction.MANAGE, resource="*"),
]

ROLES = [
    Role(id="r-conf", name="CONFERENCE_MANAGER", permission_ids=frozenset({"p-read-conf"})),
    Role(id="r-hotel", name="HOTEL_MANAGER", permission_ids=frozenset({"p-read-hotel"})),
    Role(id="r-super", name="SUPER_ADMIN", permission_ids=frozenset({"p-super"})),
    Role(id="r-front-desk", name="Front desk", site_id="S1", permission_ids=frozenset({"p-read-hotel"})),
]


def assignment(role_id, site_id=None, campus_id=None, user_id="u1"):
    return RoleAssignment(user_id=user_id, role_id=role_id, site_id=site_id, campus_id=campus_id)


def test_each_assignment_becomes_a_hydrated_role_with_its_own_scope():
    principal = build_principal(USER, [
        assignment("r-conf", site_id="S1"),
        assignment("r-conf", site_id="S2", campus_id="C1"),
    ], ROLES, PERMISSIONS)

    assert principal.user == USER
    assert [(r.role_id, r.site_id, r.campus_id) for r in principal.roles] == [
        ("r-conf", "S1", None),
        ("r-conf", "S2", "C1"),
    ]
    assert principal.roles[0].role_name == "CONFERENCE_MANAGER"
    assert principal.roles[0].permissions == (
        PermissionGrant(action=PermissionAction.READ, resource="conference_portal"),
    )


def test_no_assignments_gives_a_principal_without_roles():
    principal = build_principal(USER, [], ROLES, PERMISSIONS)
    assert principal.roles == ()
    assert not can(principal, PermissionAction.READ, "conference_portal")


def test_dangling_role_is_skipped_and_reported():
    reported = []
    principal = build_principal(USER, [
        assignment("r-deleted", site_id="S1"),
        assignment("r-hotel", site_id="S1"),
    ], ROLES, PERMISSIONS, on_stale=reported.append)

    assert [r.role_id for r in principal.roles] == ["r-hotel"]
    assert [(s.kind, s.reference_id) for s in reported] == [(STALE_MISSING_ROLE, "r-deleted")]
    assert reported[0].user_id == "u1"


def test_permission_only_the_deleted_role_granted_is_denied():
    roles = [r for r in ROLES if r.id != "r-conf"]
    principal = build_principal(USER, [assignment("r-conf", site_id="S1")], roles, PERMISSIONS)
    assert principal.roles == ()
    assert not can(principal, PermissionAction.READ, "conference_portal", Scope(site_id="S1"))


def test_dangling_permission_is_skipped_and_the_role_kept():
    roles = [Role(id="r-mixed", name="Mixed", permission_ids=frozenset({"p-read-conf", "p-gone"}))]
    reported = []
    principal = build_principal(USER, [assignment("r-mixed")], roles, PERMISSIONS, on_stale=reported.append)

    assert len(principal.roles) == 1
    assert principal.roles[0].permissions == (
        PermissionGrant(action=PermissionAction.READ, resource="conference_portal"),
    )
    assert [(s.kind, s.reference_id) for s in reported] == [(STALE_MISSING_PERMISSION, "p-gone")]


def test_duplicate_grants_are_collapsed():
    permissions = PERMISSIONS + [
        Permission(id="p-read-conf-copy", action=PermissionAction.READ, resource="conference_portal"),
    ]
    roles = [Role(id="r", name="R", permission_ids=frozenset({"p-read-conf", "p-read-conf-copy"}))]
    principal = build_principal(USER, [assignment("r")], roles, permissions)
    assert len(principal.roles[0].permissions) == 1


def test_assignments_of_other_users_are_ignored():
    reported = []
    principal = build_principal(USER, [
        assignment("r-super", user_id="someone-else"),
    ], ROLES, PERMISSIONS, on_stale=reported.append)

    assert principal.roles == ()
    assert reported[0].kind == STALE_FOREIGN_ASSIGNMENT


def test_custom_role_without_site_is_narrowed_to_its_owning_site():
    principal = build_principal(USER, [assignment("r-front-desk")], ROLES, PERMISSIONS)
    assert principal.roles[0].site_id == "S1"
    assert can(principal, PermissionAction.READ, "hotel_portal", Scope(site_id="S1"))
    assert not can(principal, PermissionAction.READ, "hotel_portal", Scope(site_id="S2"))


def test_custom_role_assigned_in_another_site_is_skipped():
    reported = []
    principal = build_principal(USER, [assignment("r-front-desk", site_id="S2")], ROLES, PERMISSIONS,
                                on_stale=reported.append)
    assert principal.roles == ()
    assert reported[0].kind == STALE_SITE_MISMATCH


def test_failing_hook_does_not_change_the_outcome(caplog):
    def broken_hook(stale):
        raise RuntimeError("audit sink down")

    with caplog.at_level(logging.WARNING):
        principal = build_principal(USER, [
            assignment("r-deleted"),
            assignment("r-hotel", site_id="S1"),
        ], ROLES, PERMISSIONS, on_stale=broken_hook)

    assert [r.role_id for r in principal.roles] == ["r-hotel"]
    assert "r-deleted" in caplog.text
