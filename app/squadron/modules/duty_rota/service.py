from __future__ import annotations

import logging
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from app.squadron.audit import record_event
from app.squadron.errors import ConflictError, NotFoundError, ValidationError
from app.squadron.models import User
from app.squadron.modules.duty_rota.models import DutyRota, DutyStatus
from app.squadron.utils import parse_calendar_date, parse_enum

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

DUTY_COLORS = {
    "confirmed": "#27ae60",
    "attention": "#e74c3c",
    "pending": "#95a5a6",
}
LESSON_COLOR = "#3498db"


def normalize_duty_date(value: Any) -> date:
    """
    Canonical calendar day for a duty.

    "2025-03-01", "2025-03-01T00:00:00-05:00" and "2025-03-01T00:00:00+10:00"
    are all 1 March 2025: the day as written by the client, offset ignored.
    """
    return parse_calendar_date(value, "Duty date")


def duty_state(duty: DutyRota) -> str:
    if duty.senior_status == DutyStatus.ABSENT or duty.junior_status == DutyStatus.ABSENT:
        return "attention"
    if duty.senior_status == DutyStatus.ATTENDED and duty.junior_status == DutyStatus.ATTENDED:
        return "confirmed"
    return "pending"


def color_for_duty(duty: DutyRota) -> str:
    return DUTY_COLORS[duty_state(duty)]


def get_duty_for_date(s: "Session", value: Any) -> DutyRota | None:
    day = normalize_duty_date(value)
    return s.query(DutyRota).filter(DutyRota.duty_date == day).one_or_none()


def _parse_status(value: Any, field: str) -> DutyStatus | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_enum(DutyStatus, value, field)


def _ensure_users_exist(s: "Session", *user_ids: int) -> None:
    wanted = set(user_ids)
    found = {uid for (uid,) in s.query(User.id).filter(User.id.in_(wanted)).all()}
    missing = sorted(wanted - found)
    if missing:
        raise NotFoundError(f"User not found: {', '.join(str(m) for m in missing)}.")


def upsert_duty(
    s: "Session",
    duty_date: Any,
    *,
    actual_senior_id: int | None,
    actual_junior_id: int | None,
    original_senior_id: int | None = None,
    original_junior_id: int | None = None,
    senior_status: DutyStatus | str | None = None,
    junior_status: DutyStatus | str | None = None,
    actor: User | None = None,
) -> DutyRota:
    """
    Find-or-create the duty row keyed by normalized date.

    On create the originals default to the actual people. On update only the
    actual people and the statuses change.
    """
    day = normalize_duty_date(duty_date)
    if actual_senior_id is None or actual_junior_id is None:
        raise ValidationError("Duty Senior and Duty Junior are both required.")
    if actual_senior_id == actual_junior_id:
        raise ValidationError("Duty Senior and Duty Junior cannot be the same person.")
    new_senior_status = _parse_status(senior_status, "Senior status")
    new_junior_status = _parse_status(junior_status, "Junior status")

    existing = get_duty_for_date(s, day)
    if existing is not None:
        if original_senior_id is not None and original_senior_id != existing.original_senior_id:
            raise ValidationError("The original Duty Senior is fixed once the duty is created.")
        if original_junior_id is not None and original_junior_id != existing.original_junior_id:
            raise ValidationError("The original Duty Junior is fixed once the duty is created.")
        orig_senior, orig_junior = existing.original_senior_id, existing.original_junior_id
        new_senior_status = new_senior_status or existing.senior_status
        new_junior_status = new_junior_status or existing.junior_status
    else:
        orig_senior = original_senior_id if original_senior_id is not None else actual_senior_id
        orig_junior = original_junior_id if original_junior_id is not None else actual_junior_id
        if orig_senior == orig_junior:
            raise ValidationError("Duty Senior and Duty Junior cannot be the same person.")
        new_senior_status = new_senior_status or DutyStatus.UNCONFIRMED
        new_junior_status = new_junior_status or DutyStatus.UNCONFIRMED

    # An absence must name who covered instead.
    if new_senior_status == DutyStatus.ABSENT and actual_senior_id == orig_senior:
        raise ValidationError("Duty Senior is marked absent: choose a replacement Duty Senior.")
    if new_junior_status == DutyStatus.ABSENT and actual_junior_id == orig_junior:
        raise ValidationError("Duty Junior is marked absent: choose a replacement Duty Junior.")

    _ensure_users_exist(s, actual_senior_id, actual_junior_id, orig_senior, orig_junior)

    now = datetime.utcnow()
    if existing is not None:
        duty = existing
        changes = {}
        for attr, val in (
            ("actual_senior_id", actual_senior_id),
            ("actual_junior_id", actual_junior_id),
            ("senior_status", new_senior_status),
            ("junior_status", new_junior_status),
        ):
            old = getattr(duty, attr)
            if old != val:
                changes[attr] = {"old": getattr(old, "value", old), "new": getattr(val, "value", val)}
                setattr(duty, attr, val)
        duty.updated_at = now
        action = "duty.update"
    else:
        duty = DutyRota(
            duty_date=day,
            original_senior_id=orig_senior,
            original_junior_id=orig_junior,
            actual_senior_id=actual_senior_id,
            actual_junior_id=actual_junior_id,
            senior_status=new_senior_status,
            junior_status=new_junior_status,
            created_at=now,
            updated_at=now,
        )
        s.add(duty)
        changes = {"created": True}
        action = "duty.create"

    try:
        s.flush()
    except IntegrityError:
        s.rollback()
        logger.warning("Duty upsert lost uniqueness race for %s", day.isoformat())
        raise ConflictError(f"A duty for {day.isoformat()} was saved by someone else; reload and try again.") from None

    if duty.actual_senior_id != duty.original_senior_id or duty.actual_junior_id != duty.original_junior_id:
        logger.info(
            "Duty %s covered by replacement (senior %s->%s, junior %s->%s)",
            day.isoformat(),
            duty.original_senior_id,
            duty.actual_senior_id,
            duty.original_junior_id,
            duty.actual_junior_id,
        )

    record_event(
        s,
        actor=actor,
        action=action,
        entity_type="DutyRota",
        entity_id=day.isoformat(),
        metadata={"changes": changes},
    )
    return duty


def delete_duty(s: "Session", value: Any, actor: User | None = None) -> None:
    """Remove the whole day (both roles). Missing day raises NotFoundError."""
    day = normalize_duty_date(value)
    duty = get_duty_for_date(s, day)
    if duty is None:
        raise NotFoundError(f"No duty assignment for {day.isoformat()}.")
    s.delete(duty)
    s.flush()
    record_event(s, actor=actor, action="duty.delete", entity_type="DutyRota", entity_id=day.isoformat())


def duty_stats_by_user(s: "Session") -> list[dict]:
    """Attended senior/junior duty counts for every user, zeros included."""
    senior_counts = dict(
        s.query(DutyRota.actual_senior_id, func.count(DutyRota.id))
        .filter(DutyRota.senior_status == DutyStatus.ATTENDED)
        .group_by(DutyRota.actual_senior_id)
        .all()
    )
    junior_counts = dict(
        s.query(DutyRota.actual_junior_id, func.count(DutyRota.id))
        .filter(DutyRota.junior_status == DutyStatus.ATTENDED)
        .group_by(DutyRota.actual_junior_id)
        .all()
    )
    stats = []
    for user in s.query(User).order_by(User.full_name.asc(), User.id.asc()).all():
        senior = int(senior_counts.get(user.id, 0))
        junior = int(junior_counts.get(user.id, 0))
        stats.append(
            {
                "id": user.id,
                "full_name": user.full_name,
                "senior_duties": senior,
                "junior_duties": junior,
                "total_duties": senior + junior,
            }
        )
    return stats


def _person(u: User | None) -> dict | None:
    if u is None:
        return None
    return {"id": u.id, "full_name": u.full_name}


def duty_to_dict(duty: DutyRota) -> dict:
    return {
        "id": duty.id,
        "duty_date": duty.duty_date.isoformat(),
        "original_senior": _person(duty.original_senior),
        "original_junior": _person(duty.original_junior),
        "actual_senior": _person(duty.actual_senior),
        "actual_junior": _person(duty.actual_junior),
        "senior_status": duty.senior_status.value,
        "junior_status": duty.junior_status.value,
        "state": duty_state(duty),
        "color": color_for_duty(duty),
    }


def list_duties(s: "Session") -> list[DutyRota]:
    return s.query(DutyRota).order_by(DutyRota.duty_date.desc()).all()


def my_duties(s: "Session", user_id: int) -> list[dict]:
    """Duties the user actually covers, soonest first, with their role on the day."""
    duties = (
        s.query(DutyRota)
        .filter(or_(DutyRota.actual_senior_id == user_id, DutyRota.actual_junior_id == user_id))
        .order_by(DutyRota.duty_date.asc())
        .all()
    )
    out = []
    for duty in duties:
        row = duty_to_dict(duty)
        row["user_duty"] = "Duty Senior" if duty.actual_senior_id == user_id else "Duty Junior"
        out.append(row)
    return out


def rota_events(s: "Session") -> list[dict]:
    """Calendar feed: every lesson and every duty day."""
    from app.squadron.modules.lessons.models import Lesson

    events: list[dict] = []
    for lesson in s.query(Lesson).order_by(Lesson.lesson_date.asc()).all():
        events.append(
            {
                "title": lesson.title,
                "start": lesson.lesson_date.isoformat(),
                "end": lesson.lesson_date.isoformat(),
                "type": "lesson",
                "color": LESSON_COLOR,
            }
        )
    for duty in s.query(DutyRota).order_by(DutyRota.duty_date.asc()).all():
        events.append(
            {
                "title": f"DS: {duty.actual_senior.full_name}\nDJ: {duty.actual_junior.full_name}",
                "start": duty.duty_date.isoformat(),
                "end": duty.duty_date.isoformat(),
                "type": "duty",
                "color": color_for_duty(duty),
                "state": duty_state(duty),
            }
        )
    return events
