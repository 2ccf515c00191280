from __future__ import annotations

import enum
import re
from datetime import date, datetime, timezone
from typing import Any, TypeVar

from flask import request

from app.squadron.errors import ValidationError

E = TypeVar("E", bound=enum.Enum)

_ISO_DAY = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(.*)$", re.DOTALL)


def json_payload() -> dict[str, Any]:
    """Request body as a dict; accepts JSON or a classic form post."""
    if request.is_json:
        data = request.get_json(silent=True)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object.")
        return data
    return request.form.to_dict()


def clean_str(value: Any) -> str | None:
    if value is None:
        return None
    v = str(value).strip()
    return v or None


def require_fields(payload: dict[str, Any], *names: str, message: str = "All fields are required.") -> None:
    missing = [n for n in names if payload.get(n) is None or (isinstance(payload.get(n), str) and not payload[n].strip())]
    if missing:
        raise ValidationError(message)


def parse_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a whole number.")
    if isinstance(value, int):
        return value
    v = (str(value) if value is not None else "").strip()
    if not v:
        raise ValidationError(f"{field} is required.")
    try:
        return int(v)
    except ValueError:
        raise ValidationError(f"{field} must be a whole number.") from None


def parse_optional_int(value: Any, field: str) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_int(value, field)


def parse_enum(enum_cls: type[E], value: Any, field: str) -> E:
    if isinstance(value, enum_cls):
        return value
    v = (str(value) if value is not None else "").strip().upper()
    try:
        return enum_cls(v)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{field} must be one of: {allowed}.") from None


def parse_calendar_date(value: Any, field: str = "date") -> date:
    """
    The calendar day written in `value`.

    Accepts date, datetime, "YYYY-MM-DD" or an ISO-8601 datetime string with or
    without offset. The offset is never applied: "2025-03-01T00:00:00+10:00" is
    1 March, same as "2025-03-01T00:00:00-05:00" and "2025-03-01Z".
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required.")
    raw = value.strip()
    m = _ISO_DAY.match(raw)
    if not m:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD).")
    year, month, day = (int(p) for p in m.group(1, 2, 3))
    try:
        parsed = date(year, month, day)
    except ValueError:
        raise ValidationError(f"{field} is not a valid calendar date.") from None
    rest = m.group(4)
    if rest and rest != "Z":
        # A time part must be a real ISO time; only its offset is ignored.
        iso = raw[:-1] + "+00:00" if raw.endswith("Z") else raw
        if rest[0] not in "T ":
            raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD).")
        try:
            datetime.fromisoformat(iso)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO date or datetime.") from None
    return parsed


def parse_datetime(value: Any, field: str = "date") -> datetime:
    """Naive UTC datetime from a date/datetime/ISO string; aware values are converted to UTC."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(raw)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO date or datetime.") from None
    else:
        raise ValidationError(f"{field} is required.")
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt
