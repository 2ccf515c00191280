from __future__ import annotations

from flask import Blueprint, jsonify

from app.squadron.db import db_session
from app.squadron.modules.absences.service import (
    absence_to_dict,
    create_absence,
    delete_absence,
    get_absence,
    list_absences,
    update_absence,
)
from app.squadron.rbac import current_user, require_login
from app.squadron.utils import json_payload

bp = Blueprint("absences", __name__)


@bp.get("/api/absences")
@require_login
def absences_list():
    s = db_session()
    return jsonify([absence_to_dict(a) for a in list_absences(s)])


@bp.post("/api/absences")
@require_login
def absences_create():
    s = db_session()
    absence = create_absence(s, json_payload(), current_user())
    s.commit()
    return jsonify(absence_to_dict(absence)), 201


@bp.put("/api/absences/<int:absence_id>")
@require_login
def absences_update(absence_id: int):
    s = db_session()
    absence = update_absence(s, get_absence(s, absence_id), json_payload(), current_user())
    s.commit()
    return jsonify(absence_to_dict(absence))


@bp.delete("/api/absences/<int:absence_id>")
@require_login
def absences_delete(absence_id: int):
    s = db_session()
    delete_absence(s, get_absence(s, absence_id), current_user())
    s.commit()
    return jsonify({"message": "Absence deleted successfully."})
