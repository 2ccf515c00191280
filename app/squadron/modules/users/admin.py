from __future__ import annotations

from flask import Blueprint, jsonify

from app.squadron.db import db_session
from app.squadron.models import Role
from app.squadron.modules.users.service import (
    create_user,
    delete_user,
    get_user,
    list_users,
    set_password,
    update_user,
)
from app.squadron.rbac import current_user, require_role
from app.squadron.utils import json_payload

bp = Blueprint("users", __name__)


@bp.get("/api/admin/users")
@require_role(Role.ADMIN)
def users_list():
    s = db_session()
    return jsonify([u.to_safe_dict() for u in list_users(s)])


@bp.post("/api/admin/users")
@require_role(Role.ADMIN)
def users_create():
    s = db_session()
    user = create_user(s, json_payload(), current_user())
    s.commit()
    return jsonify(user.to_safe_dict()), 201


@bp.put("/api/admin/users/<int:user_id>")
@require_role(Role.ADMIN)
def users_update(user_id: int):
    s = db_session()
    user = update_user(s, get_user(s, user_id), json_payload(), current_user())
    s.commit()
    return jsonify(user.to_safe_dict())


@bp.post("/api/admin/users/<int:user_id>/password")
@require_role(Role.ADMIN)
def users_set_password(user_id: int):
    s = db_session()
    set_password(s, get_user(s, user_id), json_payload().get("password"), current_user())
    s.commit()
    return jsonify({"message": "Password updated successfully."})


@bp.delete("/api/admin/users/<int:user_id>")
@require_role(Role.ADMIN)
def users_delete(user_id: int):
    s = db_session()
    counts = delete_user(s, user_id, current_user())
    s.commit()
    return jsonify({"message": "User and related records deleted successfully.", "deleted": counts})
