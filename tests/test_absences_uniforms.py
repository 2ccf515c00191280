from app.squadron.db import session_scope
from app.squadron.models import AuditEvent
from app.squadron.modules.uniforms.models import UniformItem


def test_absence_flow(admin_client, alice_client, bob_client, user_ids):
    r = alice_client.post(
        "/api/absences",
        json={"start_date": "2025-03-01", "end_date": "2025-03-03T00:00:00+10:00", "reason": "Exams"},
    )
    assert r.status_code == 201
    absence = r.json
    assert absence["user_id"] == user_ids["alice"]
    assert absence["end_date"] == "2025-03-03"

    r = alice_client.post("/api/absences", json={"start_date": "2025-03-05", "end_date": "2025-03-04"})
    assert r.status_code == 400

    r = alice_client.post(
        "/api/absences",
        json={"start_date": "2025-03-05", "end_date": "2025-03-05", "user_id": user_ids["bob"]},
    )
    assert r.status_code == 403

    r = admin_client.post(
        "/api/absences",
        json={"start_date": "2025-03-05", "end_date": "2025-03-05", "user_id": user_ids["bob"]},
    )
    assert r.status_code == 201
    assert r.json["full_name"] == "Bob Brown"

    r = bob_client.get("/api/absences")
    assert r.status_code == 200
    assert {a["full_name"] for a in r.json} == {"Alice Adams", "Bob Brown"}

    r = bob_client.put(
        f"/api/absences/{absence['id']}",
        json={"start_date": "2025-03-01", "end_date": "2025-03-02"},
    )
    assert r.status_code == 403
    r = bob_client.delete(f"/api/absences/{absence['id']}")
    assert r.status_code == 403

    r = alice_client.put(
        f"/api/absences/{absence['id']}",
        json={"start_date": "2025-03-01", "end_date": "2025-03-02", "reason": "Exams (moved)"},
    )
    assert r.status_code == 200
    assert r.json["end_date"] == "2025-03-02"

    r = admin_client.delete(f"/api/absences/{absence['id']}")
    assert r.status_code == 200
    r = admin_client.delete(f"/api/absences/{absence['id']}")
    assert r.status_code == 404


def test_uniform_store_flow(app, alice_client):
    r = alice_client.post("/api/uniforms", json={"type": "brassard", "size": "M", "condition": "GOOD", "quantity": 3})
    assert r.status_code == 201
    assert len(r.json) == 3
    assert {i["type_label"] for i in r.json} == {"Brassard"}

    r = alice_client.post("/api/uniforms", json={"type": "BERET_AND_BADGE", "size": "56", "condition": "NEW"})
    assert r.status_code == 201
    assert len(r.json) == 1

    r = alice_client.get("/api/uniforms")
    assert r.status_code == 200
    assert len(r.json) == 4
    assert r.json[0]["type"] == "BERET_AND_BADGE"
    assert r.json[0]["added_by"] == "Alice Adams"

    for bad in (
        {"type": "CAPE", "size": "M", "condition": "GOOD"},
        {"type": "BRASSARD", "size": "", "condition": "GOOD"},
        {"type": "BRASSARD", "size": "M", "condition": "GOOD", "quantity": 0},
    ):
        assert alice_client.post("/api/uniforms", json=bad).status_code == 400

    item_id = r.json[-1]["id"]
    assert alice_client.delete(f"/api/uniforms/{item_id}").status_code == 200
    assert alice_client.delete(f"/api/uniforms/{item_id}").status_code == 404

    with session_scope(app) as s:
        assert s.query(UniformItem).count() == 3
        assert s.query(AuditEvent).filter(AuditEvent.action == "uniform.create").count() == 2
        assert s.query(AuditEvent).filter(AuditEvent.action == "uniform.delete").count() == 1


def test_uniform_store_requires_login(client):
    assert client.get("/api/uniforms").status_code == 401
