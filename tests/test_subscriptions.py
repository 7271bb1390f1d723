import pytest

from app.rhub.db import session_scope
from app.rhub.modules.subscriptions.models import SubscriptionPlan
from app.rhub.modules.subscriptions.service import validate_plan_payload


def _plan(**overrides):
    payload = {
        "name": "Professional",
        "description": "For growing practices",
        "price": 4900,
        "interval": "month",
        "features": ["Up to 25 clients", "Priority support"],
        "maxClients": 25,
    }
    payload.update(overrides)
    return payload


def _defaults(app):
    with session_scope(app) as s:
        return [p.name for p in s.query(SubscriptionPlan).filter(SubscriptionPlan.is_default.is_(True)).all()]


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"price": -1}, "Price"),
        ({"price": 49.5}, "Price"),
        ({"interval": "week"}, "interval"),
        ({"features": []}, "feature"),
        ({"maxClients": 0}, "Maximum clients"),
        ({"name": "  "}, "Name"),
    ],
)
def test_validate_plan_payload_rejects(overrides, message):
    errors = validate_plan_payload(_plan(**overrides))
    assert any(message in e for e in errors)


def test_validate_plan_payload_partial_only_checks_present_keys():
    assert validate_plan_payload({"price": 100}, partial=True) == []
    assert validate_plan_payload({"isDefault": True, "isActive": False}, partial=True)


def test_public_listing_active_only_ordered_by_price(app, client, login):
    admin = login("admin")
    admin.post("/api/subscription-plans", json=_plan(name="Enterprise", price=9900))
    admin.post("/api/subscription-plans", json=_plan(name="Basic", price=1900))
    legacy = admin.post("/api/subscription-plans", json=_plan(name="Legacy", price=500)).json
    assert admin.post(f"/api/subscription-plans/{legacy['id']}/deactivate").status_code == 200

    r = client.get("/api/subscription-plans")
    assert r.status_code == 200
    assert [p["name"] for p in r.json] == ["Free Trial", "Basic", "Enterprise"]

    assert client.get("/api/subscription-plans?includeInactive=true").status_code == 403
    r = admin.get("/api/subscription-plans?includeInactive=true")
    assert "Legacy" in [p["name"] for p in r.json]


def test_create_requires_plans_manage(login):
    r = login("therapist").post("/api/subscription-plans", json=_plan())
    assert r.status_code == 403


def test_create_invalid_is_400_with_errors(login):
    r = login("admin").post("/api/subscription-plans", json=_plan(features=[], price="free"))
    assert r.status_code == 400
    assert r.json["message"] == "Invalid data"
    assert len(r.json["errors"]) == 2


def test_set_default_keeps_single_default(app, login):
    admin = login("admin")
    plan = admin.post("/api/subscription-plans", json=_plan()).json

    r = admin.post(f"/api/subscription-plans/{plan['id']}/set-default")
    assert r.status_code == 200
    assert r.json["isDefault"] is True
    assert _defaults(app) == ["Professional"]

    r = admin.get("/api/subscription-plans/default")
    assert r.json["id"] == plan["id"]


def test_create_with_is_default_moves_default(app, login):
    login("admin").post("/api/subscription-plans", json=_plan(isDefault=True))
    assert _defaults(app) == ["Professional"]


def test_inactive_plan_cannot_become_default(login):
    admin = login("admin")
    plan = admin.post("/api/subscription-plans", json=_plan(isActive=False)).json
    r = admin.post(f"/api/subscription-plans/{plan['id']}/set-default")
    assert r.status_code == 400


def test_default_plan_cannot_be_deactivated(login):
    admin = login("admin")
    default = admin.get("/api/subscription-plans/default").json
    r = admin.post(f"/api/subscription-plans/{default['id']}/deactivate")
    assert r.status_code == 400

    r = admin.patch(f"/api/subscription-plans/{default['id']}", json={"isActive": False})
    assert r.status_code == 400


def test_patch_updates_fields(login):
    admin = login("admin")
    plan = admin.post("/api/subscription-plans", json=_plan()).json
    r = admin.patch(f"/api/subscription-plans/{plan['id']}", json={"price": 5900, "maxClients": 30})
    assert r.status_code == 200
    assert r.json["price"] == 5900
    assert r.json["maxClients"] == 30
    assert r.json["name"] == "Professional"


def test_delete_in_use_plan_conflicts(login):
    admin = login("admin")
    default = admin.get("/api/subscription-plans/default").json
    # The seeded therapist is on the trial plan
    r = admin.delete(f"/api/subscription-plans/{default['id']}")
    assert r.status_code == 409

    plan = admin.post("/api/subscription-plans", json=_plan()).json
    assert admin.delete(f"/api/subscription-plans/{plan['id']}").status_code == 200
    assert admin.get(f"/api/subscription-plans/{plan['id']}").status_code == 404


def test_assign_plan_and_read_own_subscription(login, users):
    admin = login("admin")
    plan = admin.post("/api/subscription-plans", json=_plan()).json
    r = admin.post(
        f"/api/users/{users['therapist']}/subscription",
        json={"planId": plan["id"], "status": "active", "endDate": "2027-01-31"},
    )
    assert r.status_code == 200
    assert r.json["subscriptionPlanId"] == plan["id"]
    assert r.json["subscriptionEndDate"] == "2027-01-31"

    me = login("therapist").get("/api/users/me/subscription").json
    assert me["plan"]["name"] == "Professional"
    assert me["status"] == "active"
    assert me["clientCount"] == 1
