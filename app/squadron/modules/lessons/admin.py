from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request, send_file

from app.squadron.db import db_session
from app.squadron.errors import NotFoundError, UnauthorizedError, ValidationError
from app.squadron.models import Role, User
from app.squadron.modules.lessons.service import (
    add_resource,
    assign_user,
    assignment_counts,
    create_lesson,
    delete_resource,
    get_lesson,
    get_resource,
    lesson_to_dict,
    lessons_for_user,
    list_lessons,
    resource_to_dict,
    unassign_user,
    update_lesson,
    user_can_view_resource,
)
from app.squadron.rbac import current_user, require_login, require_role
from app.squadron.storage import StorageError, storage_from_config
from app.squadron.utils import json_payload, parse_int

bp = Blueprint("lessons", __name__)


@bp.get("/api/admin/lessons")
@require_role(Role.ADMIN)
def lessons_list():
    s = db_session()
    counts = assignment_counts(s)
    return jsonify([lesson_to_dict(l, assignment_count=counts.get(l.id, 0)) for l in list_lessons(s)])


@bp.post("/api/admin/lessons")
@require_role(Role.ADMIN)
def lessons_create():
    s = db_session()
    lesson = create_lesson(s, json_payload(), current_user())
    s.commit()
    return jsonify(lesson_to_dict(lesson, detail=True)), 201


@bp.get("/api/admin/lessons/<int:lesson_id>")
@require_role(Role.ADMIN)
def lessons_detail(lesson_id: int):
    s = db_session()
    lesson = get_lesson(s, lesson_id)
    all_users = s.query(User).order_by(User.full_name.asc()).all()
    return jsonify(
        {
            "lesson": lesson_to_dict(lesson, detail=True),
            "all_users": [{"id": u.id, "full_name": u.full_name} for u in all_users],
        }
    )


@bp.put("/api/admin/lessons/<int:lesson_id>")
@require_role(Role.ADMIN)
def lessons_update(lesson_id: int):
    s = db_session()
    lesson = get_lesson(s, lesson_id)
    update_lesson(s, lesson, json_payload(), current_user())
    s.commit()
    return jsonify(lesson_to_dict(lesson, detail=True))


@bp.post("/api/admin/lessons/<int:lesson_id>/assignments")
@require_role(Role.ADMIN)
def lessons_assign(lesson_id: int):
    s = db_session()
    lesson = get_lesson(s, lesson_id)
    user_id = parse_int(json_payload().get("user_id"), "user_id")
    assign_user(s, lesson, user_id, current_user())
    s.commit()
    return jsonify({"message": "User assigned successfully."}), 201


@bp.delete("/api/admin/lessons/<int:lesson_id>/assignments")
@require_role(Role.ADMIN)
def lessons_unassign(lesson_id: int):
    s = db_session()
    lesson = get_lesson(s, lesson_id)
    user_id = parse_int(json_payload().get("user_id"), "user_id")
    unassign_user(s, lesson, user_id, current_user())
    s.commit()
    return jsonify({"message": "User unassigned successfully."})


@bp.post("/api/admin/lessons/<int:lesson_id>/resources")
@require_role(Role.ADMIN)
def lessons_resource_upload(lesson_id: int):
    s = db_session()
    lesson = get_lesson(s, lesson_id)
    f = request.files.get("file")
    if not f or not f.filename:
        raise ValidationError("No file uploaded.")
    storage = storage_from_config(current_app.config)
    resource = add_resource(s, lesson, f.read(), f.filename, f.mimetype, current_user(), storage)
    s.commit()
    return jsonify(resource_to_dict(resource)), 201


@bp.delete("/api/admin/lessons/<int:lesson_id>/resources")
@require_role(Role.ADMIN)
def lessons_resource_delete(lesson_id: int):
    s = db_session()
    lesson = get_lesson(s, lesson_id)
    resource_id = parse_int(json_payload().get("resource_id"), "resource_id")
    delete_resource(s, lesson, resource_id, current_user(), storage_from_config(current_app.config))
    s.commit()
    return jsonify({"message": "Resource deleted successfully."})


@bp.get("/api/rota/my-lessons")
@require_login
def my_lessons():
    s = db_session()
    return jsonify([lesson_to_dict(l, detail=True) for l in lessons_for_user(s, current_user().id)])


@bp.get("/api/lessons/resources/<int:resource_id>")
@require_login
def resource_download(resource_id: int):
    s = db_session()
    resource = get_resource(s, resource_id)
    if not user_can_view_resource(s, resource, current_user()):
        raise UnauthorizedError("You are not assigned to this lesson.")
    storage = storage_from_config(current_app.config)
    try:
        fobj = storage.open(resource.storage_key)
    except StorageError:
        current_app.logger.warning("Lesson resource %s missing from storage (%s)", resource.id, resource.storage_key)
        raise NotFoundError("Resource file is missing.") from None
    return send_file(
        fobj,
        mimetype=resource.content_type or "application/octet-stream",
        as_attachment=True,
        download_name=resource.file_name,
    )
