from app.rhub.modules.goals.service import validate_goal_payload


def _goal(**overrides):
    payload = {
        "title": "Sleep better",
        "specific": "Be in bed by 23:00 on weeknights",
        "measurable": "Track bedtime in the journal",
        "achievable": "Phone goes on the charger at 22:30",
        "relevant": "Poor sleep worsens my anxiety",
        "timebound": "For the next four weeks",
        "deadline": "2026-11-30",
    }
    payload.update(overrides)
    return payload


def test_validate_goal_payload_lengths():
    errors = validate_goal_payload(_goal(title="ab", specific="too short", deadline="someday"))
    assert errors == [
        "Title must be at least 3 characters.",
        "Specific must be at least 10 characters.",
        "Deadline must be an ISO date.",
    ]
    assert validate_goal_payload(_goal(deadline=None)) == []


def test_client_creates_pending_goal(login, users):
    c = login("client")
    r = c.post(f"/api/users/{users['client']}/goals", json=_goal(status="completed"))
    assert r.status_code == 201
    assert r.json["status"] == "pending"
    assert r.json["deadline"] == "2026-11-30"
    assert r.json["progress"] == 0
    assert r.json["milestones"] == []


def test_therapist_cannot_create_goals(login, users):
    r = login("therapist").post(f"/api/users/{users['client']}/goals", json=_goal())
    assert r.status_code == 403


def test_status_update_by_therapist_with_comments(login, users):
    goal = login("client").post(f"/api/users/{users['client']}/goals", json=_goal()).json
    t = login("therapist")

    r = t.patch(f"/api/goals/{goal['id']}/status", json={"status": "done"})
    assert r.status_code == 400

    r = t.patch(f"/api/goals/{goal['id']}/status", json={"status": "approved", "therapistComments": "Good plan."})
    assert r.status_code == 200
    assert r.json["status"] == "approved"
    assert r.json["therapistComments"] == "Good plan."

    # Comments are kept when not provided
    r = t.patch(f"/api/goals/{goal['id']}/status", json={"status": "in_progress"})
    assert r.json["therapistComments"] == "Good plan."

    assert login("othertherapist").patch(f"/api/goals/{goal['id']}/status", json={"status": "completed"}).status_code == 403


def test_milestones_ordering_progress_and_completion(login, users):
    c = login("client")
    goal = c.post(f"/api/users/{users['client']}/goals", json=_goal()).json
    url = f"/api/goals/{goal['id']}/milestones"

    assert c.post(url, json={"title": "no"}).status_code == 400
    undated = c.post(url, json={"title": "Buy an alarm clock"}).json
    late = c.post(url, json={"title": "Two weeks streak", "dueDate": "2026-11-15"}).json
    early = c.post(url, json={"title": "First week streak", "dueDate": "2026-11-08"}).json

    r = c.get(url)
    assert [m["id"] for m in r.json] == [early["id"], late["id"], undated["id"]]

    done = f"/api/milestones/{early['id']}/completion"
    assert c.patch(done, json={}).status_code == 400
    r = c.patch(done, json={"isCompleted": True})
    assert r.status_code == 200
    assert r.json["isCompleted"] is True

    goals = c.get(f"/api/users/{users['client']}/goals").json
    assert goals[0]["progress"] == 33


def test_delete_goal_owner_only(login, users):
    c = login("client")
    goal = c.post(f"/api/users/{users['client']}/goals", json=_goal()).json
    c.post(f"/api/goals/{goal['id']}/milestones", json={"title": "Step one"})

    assert login("therapist").delete(f"/api/goals/{goal['id']}").status_code == 403
    assert c.delete(f"/api/goals/{goal['id']}").status_code == 200
    assert c.get(f"/api/goals/{goal['id']}").status_code == 404
