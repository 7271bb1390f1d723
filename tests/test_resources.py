from io import BytesIO
from pathlib import Path

from sqlalchemy.orm import Session

from app.rhub.modules.resources import service as resources_service

FAKE_PDF = b"%PDF-1.4\n% handout\n"


def _resource(**overrides):
    payload = {
        "title": "Thought records 101",
        "description": "How to fill in a thought record",
        "content": "## Step one\nNotice the situation.",
        "category": "cbt-basics",
        "tags": ["cbt", "worksheet"],
        "type": "article",
    }
    payload.update(overrides)
    return payload


def _upload(c, resource_id, data=FAKE_PDF, mimetype="application/pdf", name="handout.pdf"):
    return c.post(
        f"/api/resources/{resource_id}/attachment",
        data={"file": (BytesIO(data), name, mimetype)},
        content_type="multipart/form-data",
    )


def test_clients_cannot_create_resources(login):
    r = login("client").post("/api/resources", json=_resource())
    assert r.status_code == 403


def test_create_validates(login):
    t = login("therapist")
    r = t.post("/api/resources", json=_resource(title="", type="podcast", tags="cbt"))
    assert r.status_code == 400
    assert len(r.json["errors"]) == 3

    r = t.post("/api/resources", json=_resource(content=""))
    assert r.status_code == 400
    # PDF resources may be created empty and filled from the attachment
    r = t.post("/api/resources", json=_resource(content="", type="pdf"))
    assert r.status_code == 201


def test_listing_filters_and_drafts(login):
    t = login("therapist")
    t.post("/api/resources", json=_resource())
    t.post("/api/resources", json=_resource(title="Box breathing", description="Four-count breathing", category="anxiety", tags=["breathing"]))
    t.post("/api/resources", json=_resource(title="Draft notes", isPublished=False))

    assert len(t.get("/api/resources").json) == 3
    c = login("client")
    assert sorted(r["title"] for r in c.get("/api/resources").json) == ["Box breathing", "Thought records 101"]
    assert [r["title"] for r in c.get("/api/resources?category=anxiety").json] == ["Box breathing"]
    assert [r["title"] for r in c.get("/api/resources?tag=Breathing").json] == ["Box breathing"]
    assert [r["title"] for r in c.get("/api/resources?q=thought").json] == ["Thought records 101"]


def test_only_creator_or_admin_edits(login):
    t = login("therapist")
    res = t.post("/api/resources", json=_resource()).json

    assert login("othertherapist").put(f"/api/resources/{res['id']}", json={"title": "Mine"}).status_code == 403
    r = t.put(f"/api/resources/{res['id']}", json={"title": "Thought records, revised"})
    assert r.status_code == 200
    assert r.json["title"] == "Thought records, revised"
    assert login("admin").delete(f"/api/resources/{res['id']}").status_code == 200
    assert t.get(f"/api/resources/{res['id']}").status_code == 404


def test_categories_include_defaults_and_custom(login):
    t = login("therapist")
    t.post("/api/resources", json=_resource(category="sleep-hygiene"))
    cats = t.get("/api/resources/categories").json
    assert cats[0] == "cbt-basics"
    assert cats[-1] == "sleep-hygiene"
    assert cats.count("cbt-basics") == 1


def test_pdf_attachment_upload_and_download(login, monkeypatch):
    monkeypatch.setattr(resources_service, "extract_pdf_text", lambda data: "Extracted handout text")
    t = login("therapist")
    res = t.post("/api/resources", json=_resource(content="", type="pdf")).json

    assert _upload(t, res["id"], mimetype="text/plain", name="notes.txt").status_code == 400
    r = _upload(t, res["id"])
    assert r.status_code == 200
    assert r.json["content"] == "Extracted handout text"
    assert r.json["attachment"]["filename"] == "handout.pdf"
    assert r.json["attachment"]["sizeBytes"] == len(FAKE_PDF)
    assert len(r.json["attachment"]["sha256"]) == 64

    dl = login("client").get(f"/api/resources/{res['id']}/attachment")
    assert dl.status_code == 200
    assert dl.mimetype == "application/pdf"
    assert dl.data == FAKE_PDF


def test_upload_keeps_existing_content(login):
    t = login("therapist")
    res = t.post("/api/resources", json=_resource(type="pdf")).json
    r = _upload(t, res["id"])
    assert r.status_code == 200
    assert r.json["content"] == _resource()["content"]


def test_upload_size_limits(login):
    t = login("therapist")
    res = t.post("/api/resources", json=_resource(type="pdf")).json
    limit = resources_service.MAX_ATTACHMENT_BYTES

    r = _upload(t, res["id"], data=b"%PDF" + b"0" * (limit - 4))
    assert r.status_code == 200
    assert r.json["attachment"]["sizeBytes"] == limit

    r = _upload(t, res["id"], data=b"%PDF" + b"0" * (limit - 3))
    assert r.status_code == 400
    assert "10 MB" in r.json["message"]


def test_oversize_request_is_413(login):
    t = login("therapist")
    res = t.post("/api/resources", json=_resource(type="pdf")).json
    r = _upload(t, res["id"], data=b"%PDF" + b"0" * (11 * 1024 * 1024))
    assert r.status_code == 413


def test_clone_creates_unpublished_copy(login):
    t = login("therapist")
    res = t.post("/api/resources", json=_resource()).json

    other = login("othertherapist")
    r = other.post(f"/api/resources/{res['id']}/clone")
    assert r.status_code == 201
    clone = r.json
    assert clone["parentResourceId"] == res["id"]
    assert clone["isPublished"] is False
    assert clone["title"] == res["title"]
    # Drafts stay private to their owner
    assert t.get(f"/api/resources/{clone['id']}").status_code == 404
    assert other.put(f"/api/resources/{clone['id']}", json={"content": "Adapted for teens"}).status_code == 200


def test_assignments_lifecycle(login, users):
    t = login("therapist")
    res = t.post("/api/resources", json=_resource()).json

    r = t.post("/api/resource-assignments", json={"resourceId": res["id"], "assignedTo": users["stranger"]})
    assert r.status_code == 403

    r = t.post(
        "/api/resource-assignments",
        json={"resourceId": res["id"], "assignedTo": users["client"], "isPriority": True, "notes": "Before Thursday"},
    )
    assert r.status_code == 201
    assignment = r.json
    assert assignment["status"] == "assigned"
    assert assignment["resource"]["id"] == res["id"]

    assert [a["id"] for a in t.get("/api/therapist/assignments").json] == [assignment["id"]]

    c = login("client")
    assert [a["id"] for a in c.get(f"/api/users/{users['client']}/assignments").json] == [assignment["id"]]

    url = f"/api/resource-assignments/{assignment['id']}"
    assert c.patch(url, json={"status": "archived"}).status_code == 400
    r = c.patch(url, json={"status": "completed"})
    assert r.status_code == 200
    assert r.json["completedAt"] is not None

    assert login("stranger").patch(url, json={"status": "viewed"}).status_code == 403


def test_extract_pdf_text_tolerates_broken_files():
    assert resources_service.extract_pdf_text(b"%PDF-1.4 truncated") == ""


def test_retyping_needs_content(login):
    t = login("therapist")
    res = t.post("/api/resources", json=_resource(content="", type="pdf")).json

    r = t.put(f"/api/resources/{res['id']}", json={"type": "article"})
    assert r.status_code == 400
    assert r.json["errors"] == ["Content is required."]

    r = t.put(f"/api/resources/{res['id']}", json={"type": "article", "content": "Now written out."})
    assert r.status_code == 200
    assert r.json["type"] == "article"

    # Clearing the content of a pdf resource stays allowed
    t.put(f"/api/resources/{res['id']}", json={"type": "pdf"})
    assert t.put(f"/api/resources/{res['id']}", json={"content": ""}).status_code == 200


def test_stored_file_survives_failed_delete(app, login, monkeypatch):
    t = login("therapist")
    res = t.post("/api/resources", json=_resource(type="pdf")).json
    _upload(t, res["id"])
    stored = list(Path(app.config["STORAGE_ROOT"]).rglob("*.pdf"))
    assert len(stored) == 1

    def fail_commit(self):
        raise RuntimeError("database unavailable")

    with monkeypatch.context() as m:
        m.setattr(Session, "commit", fail_commit)
        assert t.delete(f"/api/resources/{res['id']}").status_code == 500
    assert stored[0].exists()
    assert t.get(f"/api/resources/{res['id']}/attachment").status_code == 200

    assert t.delete(f"/api/resources/{res['id']}").status_code == 200
    assert not stored[0].exists()
