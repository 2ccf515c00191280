from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from app.squadron.audit import record_event
from app.squadron.errors import NotFoundError, ValidationError
from app.squadron.models import User
from app.squadron.modules.uniforms.models import (
    UNIFORM_CONDITION_LABELS,
    UNIFORM_TYPE_LABELS,
    UniformCondition,
    UniformItem,
    UniformType,
)
from app.squadron.utils import clean_str, parse_enum, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

MAX_QUANTITY = 100


def list_items(s: "Session") -> list[UniformItem]:
    return s.query(UniformItem).order_by(UniformItem.added_at.desc(), UniformItem.id.desc()).all()


def add_items(s: "Session", payload: dict, user: User) -> list[UniformItem]:
    size = clean_str(payload.get("size"))
    if not payload.get("type") or not payload.get("condition") or not size:
        raise ValidationError("All fields are required.")
    item_type = parse_enum(UniformType, payload.get("type"), "type")
    condition = parse_enum(UniformCondition, payload.get("condition"), "condition")
    raw_qty = payload.get("quantity")
    quantity = 1 if raw_qty in (None, "") else parse_int(raw_qty, "quantity")
    if quantity < 1 or quantity > MAX_QUANTITY:
        raise ValidationError(f"quantity must be between 1 and {MAX_QUANTITY}.")

    now = datetime.utcnow()
    items = [
        UniformItem(type=item_type, size=size, condition=condition, added_by_id=user.id, added_at=now)
        for _ in range(quantity)
    ]
    s.add_all(items)
    s.flush()
    record_event(
        s,
        actor=user,
        action="uniform.create",
        entity_type="UniformItem",
        entity_id=",".join(str(i.id) for i in items),
        metadata={"type": item_type.value, "size": size, "condition": condition.value, "quantity": quantity},
    )
    logger.info("Added %s x %s (%s) to uniform store", quantity, item_type.value, size)
    return items


def delete_item(s: "Session", item_id: int, user: User) -> None:
    item = s.get(UniformItem, item_id)
    if item is None:
        raise NotFoundError("Uniform item not found.")
    s.delete(item)
    s.flush()
    record_event(s, actor=user, action="uniform.delete", entity_type="UniformItem", entity_id=str(item_id))


def item_to_dict(item: UniformItem) -> dict:
    return {
        "id": item.id,
        "type": item.type.value,
        "type_label": UNIFORM_TYPE_LABELS[item.type],
        "size": item.size,
        "condition": item.condition.value,
        "condition_label": UNIFORM_CONDITION_LABELS[item.condition],
        "added_by": item.added_by.full_name if item.added_by else None,
        "added_at": item.added_at.isoformat() if item.added_at else None,
    }
