from __future__ import annotations

from flask import Blueprint, jsonify

from app.squadron.db import db_session
from app.squadron.errors import NotFoundError
from app.squadron.models import Role
from app.squadron.modules.duty_rota.service import (
    delete_duty,
    duty_stats_by_user,
    duty_to_dict,
    get_duty_for_date,
    list_duties,
    my_duties,
    rota_events,
    upsert_duty,
)
from app.squadron.rbac import current_user, require_login, require_role
from app.squadron.utils import json_payload, parse_optional_int

bp = Blueprint("duty_rota", __name__)


def _id_field(payload: dict, name: str, legacy: str | None = None) -> int | None:
    raw = payload.get(name)
    if raw is None and legacy:
        raw = payload.get(legacy)
    return parse_optional_int(raw, name)


@bp.get("/api/admin/duties")
@require_role(Role.ADMIN)
def duties_list():
    s = db_session()
    return jsonify([duty_to_dict(d) for d in list_duties(s)])


@bp.get("/api/admin/duties/<duty_date>")
@require_role(Role.ADMIN)
def duties_detail(duty_date: str):
    s = db_session()
    duty = get_duty_for_date(s, duty_date)
    if duty is None:
        raise NotFoundError(f"No duty assignment for {duty_date}.")
    return jsonify(duty_to_dict(duty))


@bp.post("/api/admin/duties")
@require_role(Role.ADMIN)
def duties_upsert():
    s = db_session()
    payload = json_payload()
    duty = upsert_duty(
        s,
        payload.get("duty_date"),
        # duty_senior_id / duty_junior_id are what the assignment form posts
        actual_senior_id=_id_field(payload, "actual_senior_id", "duty_senior_id"),
        actual_junior_id=_id_field(payload, "actual_junior_id", "duty_junior_id"),
        original_senior_id=_id_field(payload, "original_senior_id"),
        original_junior_id=_id_field(payload, "original_junior_id"),
        senior_status=payload.get("senior_status"),
        junior_status=payload.get("junior_status"),
        actor=current_user(),
    )
    s.commit()
    return jsonify(duty_to_dict(duty))


@bp.delete("/api/admin/duties")
@require_role(Role.ADMIN)
def duties_delete():
    s = db_session()
    payload = json_payload()
    delete_duty(s, payload.get("duty_date"), actor=current_user())
    s.commit()
    return jsonify({"message": "Assignment deleted."})


@bp.get("/api/admin/stats/duties")
@require_role(Role.ADMIN)
def duty_stats():
    s = db_session()
    return jsonify(duty_stats_by_user(s))


@bp.get("/api/rota/all")
@require_login
def rota_all():
    s = db_session()
    return jsonify(rota_events(s))


@bp.get("/api/rota/my-duties")
@require_login
def rota_my_duties():
    s = db_session()
    return jsonify(my_duties(s, current_user().id))
