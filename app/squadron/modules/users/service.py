from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError
from werkzeug.security import generate_password_hash

from app.squadron.audit import record_event
from app.squadron.errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from app.squadron.models import AuditEvent, Role, User
from app.squadron.modules.absences.models import Absence
from app.squadron.modules.duty_rota.models import DutyRota
from app.squadron.modules.lessons.models import Lesson, LessonAssignment
from app.squadron.modules.uniforms.models import UniformItem
from app.squadron.utils import clean_str, parse_enum

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def _validate_password(password: str | None) -> str:
    if not password:
        raise ValidationError("Password is required.")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.")
    return password


def get_user(s: "Session", user_id: int) -> User:
    user = s.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found.")
    return user


def list_users(s: "Session") -> list[User]:
    return s.query(User).order_by(User.full_name.asc(), User.id.asc()).all()


def create_user(s: "Session", payload: dict, actor: User | None) -> User:
    username = clean_str(payload.get("username"))
    full_name = clean_str(payload.get("full_name"))
    if not username or not full_name or not payload.get("password") or not payload.get("role"):
        raise ValidationError("All fields are required.")
    password = _validate_password(payload.get("password"))
    role = parse_enum(Role, payload.get("role"), "role")

    if s.query(User.id).filter(func.lower(User.username) == username.lower()).first() is not None:
        raise ConflictError("Username already exists.")

    user = User(
        username=username,
        full_name=full_name,
        password_hash=generate_password_hash(password),
        role=role,
        is_active=True,
        created_at=datetime.utcnow(),
    )
    s.add(user)
    try:
        s.flush()
    except IntegrityError:
        s.rollback()
        raise ConflictError("Username already exists.") from None
    record_event(
        s,
        actor=actor,
        action="user.create",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"username": username, "role": role.value},
    )
    return user


def update_user(s: "Session", user: User, payload: dict, actor: User) -> User:
    full_name = clean_str(payload.get("full_name"))
    if not full_name or not payload.get("role"):
        raise ValidationError("Full name and role are required.")
    role = parse_enum(Role, payload.get("role"), "role")
    before = {"full_name": user.full_name, "role": user.role.value}
    user.full_name = full_name
    user.role = role
    s.flush()
    record_event(
        s,
        actor=actor,
        action="user.update",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"before": before, "after": {"full_name": full_name, "role": role.value}},
    )
    return user


def set_password(s: "Session", user: User, password: str | None, actor: User) -> None:
    user.password_hash = generate_password_hash(_validate_password(password))
    s.flush()
    record_event(s, actor=actor, action="user.password_reset", entity_type="User", entity_id=str(user.id))


def delete_user(s: "Session", user_id: int, actor: User) -> dict[str, int]:
    """
    Remove a user and everything that only makes sense with them.

    Lesson assignments, duty rows naming the user in any of the four person
    columns and absences are deleted; uniform items, lessons and audit events
    keep their rows with the user reference cleared. Nothing is committed
    here: the caller's transaction makes the whole cascade atomic.
    """
    if actor.id == user_id:
        raise UnauthorizedError("You cannot delete your own account.")
    user = get_user(s, user_id)

    counts = {
        "lesson_assignments": s.query(LessonAssignment)
        .filter(LessonAssignment.user_id == user_id)
        .delete(synchronize_session=False),
        "duties": s.query(DutyRota)
        .filter(
            or_(
                DutyRota.original_senior_id == user_id,
                DutyRota.original_junior_id == user_id,
                DutyRota.actual_senior_id == user_id,
                DutyRota.actual_junior_id == user_id,
            )
        )
        .delete(synchronize_session=False),
        "absences": s.query(Absence).filter(Absence.user_id == user_id).delete(synchronize_session=False),
    }
    s.execute(update(UniformItem).where(UniformItem.added_by_id == user_id).values(added_by_id=None))
    s.execute(update(Lesson).where(Lesson.created_by_id == user_id).values(created_by_id=None))
    s.execute(update(AuditEvent).where(AuditEvent.actor_user_id == user_id).values(actor_user_id=None))

    username = user.username
    s.delete(user)
    s.flush()
    # Objects still in the identity map may reference the deleted rows.
    s.expire_all()

    record_event(
        s,
        actor=actor,
        action="user.delete",
        entity_type="User",
        entity_id=str(user_id),
        metadata={"username": username, **counts},
    )
    logger.info("Deleted user %s with %s", username, counts)
    return counts
