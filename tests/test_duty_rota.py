from datetime import date

import pytest

from app.squadron.db import session_scope
from app.squadron.errors import ConflictError, NotFoundError, ValidationError
from app.squadron.models import User
from app.squadron.modules.duty_rota import service as duty_service
from app.squadron.modules.duty_rota.models import DutyRota, DutyStatus
from app.squadron.modules.duty_rota.service import (
    DUTY_COLORS,
    color_for_duty,
    delete_duty,
    duty_stats_by_user,
    normalize_duty_date,
    upsert_duty,
)


@pytest.mark.parametrize(
    "raw",
    [
        "2025-03-30",
        "2025-03-30T00:00:00",
        "2025-03-30T00:00:00Z",
        "2025-03-30T00:00:00-05:00",
        "2025-03-30T00:00:00+10:00",
        "2025-03-30T23:59:59+01:00",
        "2025-03-30 01:30:00",
        date(2025, 3, 30),
    ],
)
def test_duty_date_is_calendar_day_as_written(raw):
    # 30 March 2025 is the UK clocks-forward day.
    assert normalize_duty_date(raw) == date(2025, 3, 30)


@pytest.mark.parametrize(
    "raw",
    [
        "",
        None,
        "30/03/2025",
        "2025-02-30",
        "2025-03-01Tgarbage",
        "2025-03-01 nonsense",
        "2025-03-01Zzz",
        "2025-03-01T25:00:00",
        "2025-03-011",
    ],
)
def test_bad_duty_date_rejected(raw):
    with pytest.raises(ValidationError):
        normalize_duty_date(raw)


def test_date_only_with_zulu_suffix_accepted():
    assert normalize_duty_date("2025-03-01Z") == date(2025, 3, 1)


def test_bad_duty_date_creates_no_row(app, user_ids):
    with session_scope(app) as s:
        with pytest.raises(ValidationError):
            upsert_duty(s, "2025-03-01Tgarbage", actual_senior_id=user_ids["alice"], actual_junior_id=user_ids["bob"])
        assert s.query(DutyRota).count() == 0


def test_same_person_senior_and_junior_rejected(app, user_ids):
    with session_scope(app) as s:
        with pytest.raises(ValidationError):
            upsert_duty(s, "2025-03-01", actual_senior_id=user_ids["alice"], actual_junior_id=user_ids["alice"])
        assert s.query(DutyRota).count() == 0


def test_same_person_update_leaves_existing_row(app, user_ids):
    with session_scope(app) as s:
        upsert_duty(s, "2025-03-01", actual_senior_id=user_ids["alice"], actual_junior_id=user_ids["bob"])
    with session_scope(app) as s:
        with pytest.raises(ValidationError):
            upsert_duty(s, "2025-03-01", actual_senior_id=user_ids["bob"], actual_junior_id=user_ids["bob"])
    with session_scope(app) as s:
        duty = s.query(DutyRota).one()
        assert duty.duty_date == date(2025, 3, 1)
        assert duty.actual_senior_id == user_ids["alice"]
        assert duty.actual_junior_id == user_ids["bob"]
        assert duty.original_senior_id == user_ids["alice"]
        assert duty.original_junior_id == user_ids["bob"]


def test_missing_assignee_rejected(app, user_ids):
    with session_scope(app) as s:
        with pytest.raises(ValidationError):
            upsert_duty(s, "2025-03-01", actual_senior_id=user_ids["alice"], actual_junior_id=None)


def test_unknown_user_is_not_found(app, user_ids):
    with session_scope(app) as s:
        with pytest.raises(NotFoundError):
            upsert_duty(s, "2025-03-01", actual_senior_id=user_ids["alice"], actual_junior_id=9999)


def test_create_sets_originals_and_unconfirmed(app, user_ids):
    with session_scope(app) as s:
        duty = upsert_duty(s, "2025-03-01", actual_senior_id=user_ids["alice"], actual_junior_id=user_ids["bob"])
        assert duty.original_senior_id == user_ids["alice"]
        assert duty.original_junior_id == user_ids["bob"]
        assert duty.senior_status == DutyStatus.UNCONFIRMED
        assert duty.junior_status == DutyStatus.UNCONFIRMED
        assert color_for_duty(duty) == DUTY_COLORS["pending"]


def test_upsert_with_other_offset_updates_same_row(app, user_ids):
    with session_scope(app) as s:
        upsert_duty(s, "2025-03-01T00:00:00+10:00", actual_senior_id=user_ids["alice"], actual_junior_id=user_ids["bob"])
    with session_scope(app) as s:
        upsert_duty(
            s,
            "2025-03-01T00:00:00-05:00",
            actual_senior_id=user_ids["bob"],
            actual_junior_id=user_ids["alice"],
        )
    with session_scope(app) as s:
        rows = s.query(DutyRota).all()
        assert len(rows) == 1
        assert rows[0].duty_date == date(2025, 3, 1)
        assert rows[0].actual_senior_id == user_ids["bob"]
        # originals never move after creation
        assert rows[0].original_senior_id == user_ids["alice"]
        assert rows[0].original_junior_id == user_ids["bob"]


def test_changing_original_on_update_rejected(app, user_ids):
    with session_scope(app) as s:
        upsert_duty(s, "2025-03-01", actual_senior_id=user_ids["alice"], actual_junior_id=user_ids["bob"])
    with session_scope(app) as s:
        with pytest.raises(ValidationError):
            upsert_duty(
                s,
                "2025-03-01",
                actual_senior_id=user_ids["alice"],
                actual_junior_id=user_ids["bob"],
                original_senior_id=user_ids["admin"],
            )


def test_absent_without_replacement_rejected(app, user_ids):
    with session_scope(app) as s:
        upsert_duty(s, "2025-03-01", actual_senior_id=user_ids["alice"], actual_junior_id=user_ids["bob"])
    with session_scope(app) as s:
        with pytest.raises(ValidationError):
            upsert_duty(
                s,
                "2025-03-01",
                actual_senior_id=user_ids["alice"],
                actual_junior_id=user_ids["bob"],
                senior_status="ABSENT",
            )


def test_absent_with_replacement_is_attention(app, user_ids):
    with session_scope(app) as s:
        upsert_duty(s, "2025-03-01", actual_senior_id=user_ids["alice"], actual_junior_id=user_ids["bob"])
    with session_scope(app) as s:
        duty = upsert_duty(
            s,
            "2025-03-01",
            actual_senior_id=user_ids["admin"],
            actual_junior_id=user_ids["bob"],
            senior_status=DutyStatus.ABSENT,
            junior_status="attended",
        )
        assert duty.original_senior_id == user_ids["alice"]
        assert duty.actual_senior_id == user_ids["admin"]
        assert color_for_duty(duty) == DUTY_COLORS["attention"]


def test_both_attended_is_confirmed(app, user_ids):
    with session_scope(app) as s:
        duty = upsert_duty(
            s,
            "2025-03-01",
            actual_senior_id=user_ids["alice"],
            actual_junior_id=user_ids["bob"],
            senior_status="ATTENDED",
            junior_status="ATTENDED",
        )
        assert color_for_duty(duty) == DUTY_COLORS["confirmed"]


def test_bad_status_rejected(app, user_ids):
    with session_scope(app) as s:
        with pytest.raises(ValidationError):
            upsert_duty(
                s,
                "2025-03-01",
                actual_senior_id=user_ids["alice"],
                actual_junior_id=user_ids["bob"],
                senior_status="LATE",
            )


def test_lost_insert_race_is_conflict(app, user_ids, monkeypatch):
    with session_scope(app) as s:
        upsert_duty(s, "2025-03-01", actual_senior_id=user_ids["alice"], actual_junior_id=user_ids["bob"])

    # Another writer inserted the day between our read and our insert.
    monkeypatch.setattr(duty_service, "get_duty_for_date", lambda s, value: None)
    with session_scope(app) as s:
        with pytest.raises(ConflictError):
            upsert_duty(s, "2025-03-01", actual_senior_id=user_ids["bob"], actual_junior_id=user_ids["alice"])

    with session_scope(app) as s:
        assert s.query(DutyRota).count() == 1


def test_delete_missing_day_not_found(app):
    with session_scope(app) as s:
        with pytest.raises(NotFoundError):
            delete_duty(s, "2031-01-01")


def test_delete_removes_day(app, user_ids):
    with session_scope(app) as s:
        upsert_duty(s, "2025-03-01", actual_senior_id=user_ids["alice"], actual_junior_id=user_ids["bob"])
    with session_scope(app) as s:
        delete_duty(s, "2025-03-01T12:00:00+02:00")
    with session_scope(app) as s:
        assert s.query(DutyRota).count() == 0


def test_stats_include_users_without_duties(app, user_ids):
    with session_scope(app) as s:
        upsert_duty(
            s,
            "2025-03-01",
            actual_senior_id=user_ids["alice"],
            actual_junior_id=user_ids["bob"],
            senior_status="ATTENDED",
            junior_status="ATTENDED",
        )
        upsert_duty(
            s,
            "2025-03-08",
            actual_senior_id=user_ids["alice"],
            actual_junior_id=user_ids["bob"],
            senior_status="ATTENDED",
        )
    with session_scope(app) as s:
        stats = {row["id"]: row for row in duty_stats_by_user(s)}
        assert set(stats) == {u.id for u in s.query(User).all()}
        assert stats[user_ids["alice"]]["senior_duties"] == 2
        assert stats[user_ids["alice"]]["junior_duties"] == 0
        assert stats[user_ids["bob"]]["junior_duties"] == 1
        assert stats[user_ids["admin"]]["total_duties"] == 0


def test_duty_api_flow(admin_client, alice_client, user_ids):
    r = admin_client.post(
        "/api/admin/duties",
        json={"duty_date": "2025-03-01T00:00:00Z", "duty_senior_id": user_ids["alice"], "duty_junior_id": user_ids["bob"]},
    )
    assert r.status_code == 200
    assert r.json["duty_date"] == "2025-03-01"
    assert r.json["state"] == "pending"

    r = admin_client.post(
        "/api/admin/duties",
        json={"duty_date": "2025-03-01", "actual_senior_id": user_ids["alice"], "actual_junior_id": user_ids["alice"]},
    )
    assert r.status_code == 400
    assert r.json["error"] == "ValidationError"

    r = admin_client.get("/api/admin/duties/2025-03-01")
    assert r.status_code == 200
    assert r.json["actual_senior"]["full_name"] == "Alice Adams"

    r = alice_client.get("/api/rota/my-duties")
    assert r.status_code == 200
    assert [d["user_duty"] for d in r.json] == ["Duty Senior"]

    r = alice_client.get("/api/rota/all")
    assert r.status_code == 200
    assert any(e["type"] == "duty" and e["start"] == "2025-03-01" for e in r.json)

    r = alice_client.post(
        "/api/admin/duties",
        json={"duty_date": "2025-03-02", "actual_senior_id": user_ids["alice"], "actual_junior_id": user_ids["bob"]},
    )
    assert r.status_code == 403

    r = admin_client.get("/api/admin/stats/duties")
    assert r.status_code == 200
    assert len(r.json) == 3

    r = admin_client.delete("/api/admin/duties", json={"duty_date": "2025-03-01"})
    assert r.status_code == 200
    r = admin_client.delete("/api/admin/duties", json={"duty_date": "2025-03-01"})
    assert r.status_code == 404
    r = admin_client.get("/api/admin/duties/2025-03-01")
    assert r.status_code == 404
