from __future__ import annotations

import logging
import secrets
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from werkzeug.utils import secure_filename

from app.squadron.audit import record_event
from app.squadron.errors import ConflictError, NotFoundError, ValidationError
from app.squadron.models import User
from app.squadron.modules.lessons.models import Lesson, LessonAssignment, LessonResource
from app.squadron.utils import clean_str, parse_datetime

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.squadron.storage import Storage

logger = logging.getLogger(__name__)


def _validate_lesson_payload(payload: dict) -> tuple[str, str | None, datetime]:
    title = clean_str(payload.get("title"))
    if not title or not payload.get("lesson_date"):
        raise ValidationError("Title and date are required.")
    return title, clean_str(payload.get("description")), parse_datetime(payload.get("lesson_date"), "Lesson date")


def get_lesson(s: "Session", lesson_id: int) -> Lesson:
    lesson = s.get(Lesson, lesson_id)
    if lesson is None:
        raise NotFoundError("Lesson not found.")
    return lesson


def list_lessons(s: "Session") -> list[Lesson]:
    return s.query(Lesson).order_by(Lesson.lesson_date.desc(), Lesson.id.desc()).all()


def create_lesson(s: "Session", payload: dict, user: User) -> Lesson:
    title, description, lesson_date = _validate_lesson_payload(payload)
    lesson = Lesson(
        title=title,
        description=description,
        lesson_date=lesson_date,
        created_by_id=user.id,
        created_at=datetime.utcnow(),
    )
    s.add(lesson)
    s.flush()
    record_event(s, actor=user, action="lesson.create", entity_type="Lesson", entity_id=str(lesson.id), metadata={"title": title})
    return lesson


def update_lesson(s: "Session", lesson: Lesson, payload: dict, user: User) -> Lesson:
    title, description, lesson_date = _validate_lesson_payload(payload)
    changes = {}
    for attr, val in (("title", title), ("description", description), ("lesson_date", lesson_date)):
        if getattr(lesson, attr) != val:
            changes[attr] = {"old": getattr(lesson, attr), "new": val}
            setattr(lesson, attr, val)
    s.flush()
    record_event(s, actor=user, action="lesson.edit", entity_type="Lesson", entity_id=str(lesson.id), metadata={"changes": changes})
    return lesson


def assign_user(s: "Session", lesson: Lesson, user_id: int, actor: User) -> LessonAssignment:
    if s.get(User, user_id) is None:
        raise NotFoundError("User not found.")
    existing = (
        s.query(LessonAssignment)
        .filter(LessonAssignment.lesson_id == lesson.id, LessonAssignment.user_id == user_id)
        .one_or_none()
    )
    if existing is not None:
        raise ConflictError("User is already assigned to this lesson.")
    assignment = LessonAssignment(lesson_id=lesson.id, user_id=user_id, assigned_at=datetime.utcnow())
    s.add(assignment)
    try:
        s.flush()
    except IntegrityError:
        s.rollback()
        raise ConflictError("User is already assigned to this lesson.") from None
    record_event(
        s,
        actor=actor,
        action="lesson.assign",
        entity_type="Lesson",
        entity_id=str(lesson.id),
        metadata={"user_id": user_id},
    )
    return assignment


def unassign_user(s: "Session", lesson: Lesson, user_id: int, actor: User) -> None:
    assignment = (
        s.query(LessonAssignment)
        .filter(LessonAssignment.lesson_id == lesson.id, LessonAssignment.user_id == user_id)
        .one_or_none()
    )
    if assignment is None:
        raise NotFoundError("User is not assigned to this lesson.")
    s.delete(assignment)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="lesson.unassign",
        entity_type="Lesson",
        entity_id=str(lesson.id),
        metadata={"user_id": user_id},
    )


def build_resource_storage_key(lesson_id: int, filename: str, upload_date: date | None = None) -> str:
    if upload_date is None:
        upload_date = date.today()
    safe_filename = secure_filename(filename) or "resource.bin"
    return f"lessons/{lesson_id}/{upload_date.isoformat()}/{secrets.token_hex(4)}_{safe_filename}"


def add_resource(
    s: "Session",
    lesson: Lesson,
    file_bytes: bytes,
    filename: str,
    content_type: str | None,
    user: User,
    storage: "Storage",
) -> LessonResource:
    if not file_bytes:
        raise ValidationError("No file uploaded.")
    key = build_resource_storage_key(lesson.id, filename)
    storage.put_bytes(key, file_bytes, content_type=content_type)
    resource = LessonResource(
        lesson_id=lesson.id,
        file_name=filename or "Untitled",
        storage_key=key,
        content_type=content_type,
        size_bytes=len(file_bytes),
        uploaded_at=datetime.utcnow(),
    )
    s.add(resource)
    s.flush()
    logger.info("Stored resource %s for lesson %s (%s bytes)", key, lesson.id, len(file_bytes))
    record_event(
        s,
        actor=user,
        action="lesson.resource_upload",
        entity_type="LessonResource",
        entity_id=str(resource.id),
        metadata={"lesson_id": lesson.id, "file_name": resource.file_name, "size_bytes": resource.size_bytes},
    )
    return resource


def get_resource(s: "Session", resource_id: int) -> LessonResource:
    resource = s.get(LessonResource, resource_id)
    if resource is None:
        raise NotFoundError("Resource not found.")
    return resource


def delete_resource(s: "Session", lesson: Lesson, resource_id: int, user: User, storage: "Storage") -> None:
    resource = get_resource(s, resource_id)
    if resource.lesson_id != lesson.id:
        raise NotFoundError("Resource not found.")
    key = resource.storage_key
    s.delete(resource)
    s.flush()
    storage.delete(key)
    record_event(
        s,
        actor=user,
        action="lesson.resource_delete",
        entity_type="LessonResource",
        entity_id=str(resource_id),
        metadata={"lesson_id": lesson.id, "storage_key": key},
    )


def user_can_view_resource(s: "Session", resource: LessonResource, user: User) -> bool:
    if user.is_admin:
        return True
    return (
        s.query(LessonAssignment.id)
        .filter(LessonAssignment.lesson_id == resource.lesson_id, LessonAssignment.user_id == user.id)
        .first()
        is not None
    )


def lessons_for_user(s: "Session", user_id: int) -> list[Lesson]:
    """Lessons the user is assigned to, soonest first."""
    return (
        s.query(Lesson)
        .join(LessonAssignment, LessonAssignment.lesson_id == Lesson.id)
        .filter(LessonAssignment.user_id == user_id)
        .order_by(Lesson.lesson_date.asc(), Lesson.id.asc())
        .all()
    )


def assignment_counts(s: "Session") -> dict[int, int]:
    return dict(
        s.query(LessonAssignment.lesson_id, func.count(LessonAssignment.id)).group_by(LessonAssignment.lesson_id).all()
    )


def resource_to_dict(resource: LessonResource) -> dict:
    return {
        "id": resource.id,
        "lesson_id": resource.lesson_id,
        "file_name": resource.file_name,
        "content_type": resource.content_type,
        "size_bytes": resource.size_bytes,
        "uploaded_at": resource.uploaded_at.isoformat() if resource.uploaded_at else None,
    }


def lesson_to_dict(lesson: Lesson, *, detail: bool = False, assignment_count: int | None = None) -> dict:
    data: dict[str, Any] = {
        "id": lesson.id,
        "title": lesson.title,
        "description": lesson.description,
        "lesson_date": lesson.lesson_date.isoformat(),
        "created_by": lesson.created_by.full_name if lesson.created_by else None,
    }
    if assignment_count is not None:
        data["assignment_count"] = assignment_count
    if detail:
        data["assignments"] = [
            {"user_id": a.user_id, "full_name": a.user.full_name} for a in sorted(lesson.assignments, key=lambda a: a.user.full_name)
        ]
        data["resources"] = [resource_to_dict(r) for r in lesson.resources]
    return data
