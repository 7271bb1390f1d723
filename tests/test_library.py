import pytest


@pytest.fixture(params=["protective-factors", "coping-strategies"])
def slug(request):
    return request.param


def test_client_item_is_never_global(login, users, slug):
    c = login("client")
    r = c.post(f"/api/users/{users['client']}/{slug}", json={"name": "Morning walks", "isGlobal": True})
    assert r.status_code == 201
    assert r.json["isGlobal"] is False
    assert r.json["userId"] == users["client"]


def test_name_must_be_two_characters(login, users, slug):
    r = login("client").post(f"/api/users/{users['client']}/{slug}", json={"name": "x"})
    assert r.status_code == 400
    assert r.json["errors"] == ["Name must be at least 2 characters."]


def test_include_global_merges_own_global_and_therapist_items(login, users, slug):
    t = login("therapist")
    t.post(f"/api/users/{users['therapist']}/{slug}", json={"name": "Therapist private"})
    t.post(f"/api/users/{users['therapist']}/{slug}", json={"name": "Breathing", "isGlobal": True})
    login("othertherapist").post(f"/api/users/{users['othertherapist']}/{slug}", json={"name": "Not visible"})

    c = login("client")
    c.post(f"/api/users/{users['client']}/{slug}", json={"name": "Art"})

    r = c.get(f"/api/users/{users['client']}/{slug}")
    assert [i["name"] for i in r.json] == ["Art", "Breathing", "Therapist private"]

    r = c.get(f"/api/users/{users['client']}/{slug}?includeGlobal=false")
    assert [i["name"] for i in r.json] == ["Art"]


def test_update_and_delete_by_author_therapist(login, users, slug):
    c = login("client")
    item = c.post(f"/api/users/{users['client']}/{slug}", json={"name": "Music"}).json
    url = f"/api/users/{users['client']}/{slug}/{item['id']}"

    r = c.put(url, json={"name": "Music and singing", "description": "Choir on Tuesdays"})
    assert r.status_code == 200
    assert r.json["name"] == "Music and singing"
    assert r.json["description"] == "Choir on Tuesdays"

    assert login("othertherapist").delete(url).status_code == 403
    assert login("therapist").delete(url).status_code == 200
    assert c.put(url, json={"name": "Gone"}).status_code == 404


def test_stranger_cannot_touch_another_users_list(login, users, slug):
    r = login("stranger").get(f"/api/users/{users['client']}/{slug}")
    assert r.status_code == 403
