import io
import os
from datetime import date

from app.squadron.db import session_scope
from app.squadron.modules.lessons.models import LessonResource
from app.squadron.modules.lessons.service import build_resource_storage_key


def _create_lesson(admin_client):
    r = admin_client.post(
        "/api/admin/lessons",
        json={"title": "Radio procedure", "description": "Prowords", "lesson_date": "2025-03-04T19:00:00"},
    )
    assert r.status_code == 201
    return r.json["id"]


def test_storage_key_is_sanitised():
    key = build_resource_storage_key(7, "../../etc/passwd notes.pdf", upload_date=date(2025, 3, 4))
    assert key.startswith("lessons/7/2025-03-04/")
    assert key.endswith("_etc_passwd_notes.pdf")
    assert ".." not in key


def test_lesson_requires_title_and_date(admin_client):
    r = admin_client.post("/api/admin/lessons", json={"title": "", "lesson_date": "2025-03-04"})
    assert r.status_code == 400
    r = admin_client.post("/api/admin/lessons", json={"title": "Drill", "lesson_date": "next tuesday"})
    assert r.status_code == 400


def test_lesson_admin_flow(admin_client, alice_client, bob_client, user_ids):
    lesson_id = _create_lesson(admin_client)

    r = admin_client.get("/api/admin/lessons")
    assert r.status_code == 200
    assert r.json[0]["created_by"] == "Flt Lt Admin"
    assert r.json[0]["assignment_count"] == 0

    r = admin_client.post(f"/api/admin/lessons/{lesson_id}/assignments", json={"user_id": user_ids["alice"]})
    assert r.status_code == 201
    r = admin_client.post(f"/api/admin/lessons/{lesson_id}/assignments", json={"user_id": user_ids["alice"]})
    assert r.status_code == 409

    r = admin_client.get(f"/api/admin/lessons/{lesson_id}")
    assert r.status_code == 200
    assert [a["full_name"] for a in r.json["lesson"]["assignments"]] == ["Alice Adams"]
    assert len(r.json["all_users"]) == 3

    r = admin_client.put(
        f"/api/admin/lessons/{lesson_id}",
        json={"title": "Radio procedure II", "lesson_date": "2025-03-11T19:00:00"},
    )
    assert r.status_code == 200
    assert r.json["title"] == "Radio procedure II"

    r = alice_client.get("/api/rota/my-lessons")
    assert [l["title"] for l in r.json] == ["Radio procedure II"]
    assert bob_client.get("/api/rota/my-lessons").json == []

    r = alice_client.get("/api/rota/all")
    assert any(e["type"] == "lesson" and e["color"] == "#3498db" for e in r.json)

    r = admin_client.delete(f"/api/admin/lessons/{lesson_id}/assignments", json={"user_id": user_ids["bob"]})
    assert r.status_code == 404

    r = alice_client.post("/api/admin/lessons", json={"title": "x", "lesson_date": "2025-03-04"})
    assert r.status_code == 403


def test_lesson_resources(app, admin_client, alice_client, bob_client, user_ids):
    lesson_id = _create_lesson(admin_client)
    admin_client.post(f"/api/admin/lessons/{lesson_id}/assignments", json={"user_id": user_ids["alice"]})

    r = admin_client.post(
        f"/api/admin/lessons/{lesson_id}/resources",
        data={"file": (io.BytesIO(b"prowords handout"), "handout.txt")},
        content_type="multipart/form-data",
    )
    assert r.status_code == 201
    resource_id = r.json["id"]
    assert r.json["size_bytes"] == len(b"prowords handout")

    r = alice_client.get("/api/rota/my-lessons")
    assert [res["file_name"] for res in r.json[0]["resources"]] == ["handout.txt"]

    r = alice_client.get(f"/api/lessons/resources/{resource_id}")
    assert r.status_code == 200
    assert r.data == b"prowords handout"
    r.close()

    r = bob_client.get(f"/api/lessons/resources/{resource_id}")
    assert r.status_code == 403

    with session_scope(app) as s:
        key = s.get(LessonResource, resource_id).storage_key
    stored = os.path.join(app.config["STORAGE_ROOT"], key)

    r = admin_client.delete(f"/api/admin/lessons/{lesson_id}/resources", json={"resource_id": resource_id})
    assert r.status_code == 200
    with session_scope(app) as s:
        assert s.get(LessonResource, resource_id) is None
    assert not os.path.exists(stored)
    assert alice_client.get(f"/api/lessons/resources/{resource_id}").status_code == 404


def test_upload_without_file_rejected(admin_client):
    lesson_id = _create_lesson(admin_client)
    r = admin_client.post(f"/api/admin/lessons/{lesson_id}/resources", data={}, content_type="multipart/form-data")
    assert r.status_code == 400
