from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.squadron.audit import record_event
from app.squadron.errors import NotFoundError, UnauthorizedError, ValidationError
from app.squadron.models import User
from app.squadron.modules.absences.models import Absence
from app.squadron.utils import clean_str, parse_calendar_date, parse_optional_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def _parse_range(payload: dict):
    if not payload.get("start_date") or not payload.get("end_date"):
        raise ValidationError("Start and end dates are required.")
    start = parse_calendar_date(payload.get("start_date"), "start_date")
    end = parse_calendar_date(payload.get("end_date"), "end_date")
    if start > end:
        raise ValidationError("Start date must be on or before end date.")
    return start, end


def _ensure_can_modify(absence: Absence, user: User) -> None:
    if absence.user_id != user.id and not user.is_admin:
        raise UnauthorizedError("You can only change your own absences.")


def get_absence(s: "Session", absence_id: int) -> Absence:
    absence = s.get(Absence, absence_id)
    if absence is None:
        raise NotFoundError("Absence not found.")
    return absence


def list_absences(s: "Session") -> list[Absence]:
    return s.query(Absence).order_by(Absence.start_date.desc(), Absence.id.desc()).all()


def create_absence(s: "Session", payload: dict, user: User) -> Absence:
    start, end = _parse_range(payload)
    owner_id = user.id
    on_behalf = parse_optional_int(payload.get("user_id"), "user_id")
    if on_behalf is not None and on_behalf != user.id:
        if not user.is_admin:
            raise UnauthorizedError("Only admins can record absences for other users.")
        if s.get(User, on_behalf) is None:
            raise NotFoundError("User not found.")
        owner_id = on_behalf
    absence = Absence(
        user_id=owner_id,
        start_date=start,
        end_date=end,
        reason=clean_str(payload.get("reason")),
        created_at=datetime.utcnow(),
    )
    s.add(absence)
    s.flush()
    record_event(
        s,
        actor=user,
        action="absence.create",
        entity_type="Absence",
        entity_id=str(absence.id),
        metadata={"user_id": owner_id, "start_date": start, "end_date": end},
    )
    return absence


def update_absence(s: "Session", absence: Absence, payload: dict, user: User) -> Absence:
    _ensure_can_modify(absence, user)
    start, end = _parse_range(payload)
    absence.start_date = start
    absence.end_date = end
    absence.reason = clean_str(payload.get("reason"))
    s.flush()
    record_event(
        s,
        actor=user,
        action="absence.update",
        entity_type="Absence",
        entity_id=str(absence.id),
        metadata={"start_date": start, "end_date": end},
    )
    return absence


def delete_absence(s: "Session", absence: Absence, user: User) -> None:
    _ensure_can_modify(absence, user)
    absence_id = absence.id
    s.delete(absence)
    s.flush()
    record_event(s, actor=user, action="absence.delete", entity_type="Absence", entity_id=str(absence_id))


def absence_to_dict(absence: Absence) -> dict:
    return {
        "id": absence.id,
        "user_id": absence.user_id,
        "full_name": absence.user.full_name if absence.user else None,
        "start_date": absence.start_date.isoformat(),
        "end_date": absence.end_date.isoformat(),
        "reason": absence.reason,
        "created_at": absence.created_at.isoformat() if absence.created_at else None,
    }
