from tests.conftest import SITE_CONF, SITE_HOTEL


def check(client, headers, **payload):
    response = client.post("/api/v1/authz/check", headers=headers, json=payload)
    assert response.status_code == 200
    return response.json()["allowed"]


def test_check_conference_manager(client, users):
    carol = users["carol"]
    assert check(client, carol, action="READ", resource="conference_portal", site_id=SITE_CONF)
    assert not check(client, carol, action="READ", resource="conference_portal", site_id=SITE_HOTEL)
    assert not check(client, carol, action="UPDATE", resource="conference_portal", site_id=SITE_CONF)


def test_check_super_admin(client, users):
    assert check(client, users["root"], action="DELETE", resource="anything", site_id="whatever")


def test_check_without_assignments_denies(client, users):
    assert not check(client, users["nobody"], action="READ", resource="conference_portal")


def test_check_empty_site_is_treated_as_unscoped(client, users):
    # Unscoped checks are granted by a role scoped to any site
    response = client.post("/api/v1/authz/check", headers=users["carol"], json={
        "action": "READ", "resource": "conference_portal", "site_id": ""
    })
    body = response.json()
    assert body["allowed"] is True
    assert body["site_id"] is None


def test_check_unknown_action_is_422(client, users):
    response = client.post("/api/v1/authz/check", headers=users["carol"], json={
        "action": "FLY", "resource": "conference_portal"
    })
    assert response.status_code == 422


def test_my_principal_effective_permissions_follow_scope(client, users):
    response = client.get("/api/v1/authz/me", headers=users["carol"], params={"site_id": SITE_HOTEL})
    assert response.status_code == 200
    assert response.json()["effective_permissions"] == []

    response = client.get("/api/v1/authz/me", headers=users["carol"], params={"site_id": SITE_CONF})
    assert response.json()["effective_permissions"] == [{"action": "READ", "resource": "conference_portal"}]


def test_principal_is_rebuilt_on_every_request(client, users, supabase):
    assert not check(client, users["nobody"], action="READ", resource="hotel_portal", site_id=SITE_HOTEL)
    supabase.assign("nobody", supabase.role_id("HOTEL_MANAGER"), site_id=SITE_HOTEL)
    assert check(client, users["nobody"], action="READ", resource="hotel_portal", site_id=SITE_HOTEL)


def test_corrupt_assignment_row_does_not_break_the_request(client, users, supabase):
    supabase.rows("user_roles").append({"id": "bad", "user_id": "carol", "role_id": None})
    response = client.get("/api/v1/authz/me", headers=users["carol"])
    assert response.status_code == 200
    assert [r["role_name"] for r in response.json()["roles"]] == ["CONFERENCE_MANAGER"]
