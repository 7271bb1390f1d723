def _new_client(username):
    return {
        "username": username,
        "email": f"{username}@example.com",
        "password": "password123",
        "name": username.title(),
    }


def test_therapist_lists_only_own_clients(login):
    c = login("therapist")
    r = c.get("/api/users/clients")
    assert r.status_code == 200
    assert [u["username"] for u in r.json] == ["client"]


def test_admin_lists_all_clients(login):
    r = login("admin").get("/api/users/clients")
    assert sorted(u["username"] for u in r.json) == ["client", "stranger"]


def test_client_cannot_list_clients(login):
    r = login("client").get("/api/users/clients")
    assert r.status_code == 403


def test_therapist_creates_client_until_plan_limit(login):
    c = login("therapist")
    # Trial plan allows 2 clients; one is seeded.
    r = c.post("/api/users/clients", json=_new_client("second"))
    assert r.status_code == 201
    assert r.json["role"] == "client"
    assert r.json["therapistId"] is not None

    r = c.post("/api/users/clients", json=_new_client("third"))
    assert r.status_code == 403
    assert "plan allows 2 client" in r.json["message"]


def test_create_client_duplicate_is_409(login):
    r = login("therapist").post("/api/users/clients", json=_new_client("stranger"))
    assert r.status_code == 409


def test_user_detail_respects_therapist_relationship(login, users):
    c = login("therapist")
    assert c.get(f"/api/users/{users['client']}").status_code == 200
    r = c.get(f"/api/users/{users['stranger']}")
    assert r.status_code == 403


def test_audit_trail_admin_only(login):
    assert login("therapist").get("/api/audit").status_code == 403
    r = login("admin").get("/api/audit?action=auth.login")
    assert r.status_code == 200
    assert all("auth.login" in e["action"] for e in r.json)


def test_admin_creating_client_respects_therapist_plan(login, users):
    a = login("admin")
    # "therapist" is on a 2-client trial plan and already has one client
    statuses = [
        a.post("/api/users/clients", json={**_new_client(f"assigned{i}"), "therapistId": users["therapist"]}).status_code
        for i in range(3)
    ]
    assert statuses == [201, 403, 403]

    r = a.post("/api/users/clients", json=_new_client("unassigned"))
    assert r.status_code == 201
    assert r.json["therapistId"] is None


def test_admin_client_therapist_id_must_be_integer(login):
    r = login("admin").post("/api/users/clients", json={**_new_client("typo"), "therapistId": "abc"})
    assert r.status_code == 400
    assert r.json["errors"] == ["therapistId must be a whole number."]


def test_non_string_password_is_rejected(login):
    r = login("therapist").post("/api/users/clients", json={**_new_client("numeric"), "password": 123456789})
    assert r.status_code == 400
    assert "Password is required." in r.json["errors"]
