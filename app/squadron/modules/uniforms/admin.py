from __future__ import annotations

from flask import Blueprint, jsonify

from app.squadron.db import db_session
from app.squadron.modules.uniforms.models import UNIFORM_CONDITION_LABELS, UNIFORM_TYPE_LABELS
from app.squadron.modules.uniforms.service import add_items, delete_item, item_to_dict, list_items
from app.squadron.rbac import current_user, require_login
from app.squadron.utils import json_payload

bp = Blueprint("uniforms", __name__)


@bp.get("/api/uniforms")
@require_login
def uniforms_list():
    s = db_session()
    return jsonify([item_to_dict(i) for i in list_items(s)])


@bp.get("/api/uniforms/options")
@require_login
def uniforms_options():
    return jsonify(
        {
            "types": {t.value: label for t, label in UNIFORM_TYPE_LABELS.items()},
            "conditions": {c.value: label for c, label in UNIFORM_CONDITION_LABELS.items()},
        }
    )


@bp.post("/api/uniforms")
@require_login
def uniforms_create():
    s = db_session()
    items = add_items(s, json_payload(), current_user())
    s.commit()
    return jsonify([item_to_dict(i) for i in items]), 201


@bp.delete("/api/uniforms/<int:item_id>")
@require_login
def uniforms_delete(item_id: int):
    s = db_session()
    delete_item(s, item_id, current_user())
    s.commit()
    return jsonify({"message": "Uniform item deleted successfully."})
