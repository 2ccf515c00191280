from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.squadron.models import Base

if TYPE_CHECKING:
    from app.squadron.models import User


class UniformType(str, enum.Enum):
    MENS_TROUSERS = "MENS_TROUSERS"
    MENS_WEDGEWOOD_SHIRT = "MENS_WEDGEWOOD_SHIRT"
    MENS_WORKING_BLUE_SHIRT = "MENS_WORKING_BLUE_SHIRT"
    BRASSARD = "BRASSARD"
    BLUE_GREY_BELT = "BLUE_GREY_BELT"
    BLACK_SOCKS = "BLACK_SOCKS"
    BLACK_LEATHER_GLOVES = "BLACK_LEATHER_GLOVES"
    WOMENS_TROUSERS = "WOMENS_TROUSERS"
    WOMENS_SLACKS = "WOMENS_SLACKS"
    WOMENS_WORKING_BLUE_SHIRT = "WOMENS_WORKING_BLUE_SHIRT"
    WOMENS_SKIRT = "WOMENS_SKIRT"
    WOMENS_WEDGEWOOD_SHIRT = "WOMENS_WEDGEWOOD_SHIRT"
    FOUL_WEATHER_JACKET = "FOUL_WEATHER_JACKET"
    BERET_AND_BADGE = "BERET_AND_BADGE"
    MISC = "MISC"


class UniformCondition(str, enum.Enum):
    NEW = "NEW"
    GOOD = "GOOD"
    SERVICEABLE = "SERVICEABLE"
    POOR = "POOR"


UNIFORM_TYPE_LABELS: dict[UniformType, str] = {
    UniformType.MENS_TROUSERS: "Men's Trousers",
    UniformType.MENS_WEDGEWOOD_SHIRT: "Men's Wedgewood Shirt",
    UniformType.MENS_WORKING_BLUE_SHIRT: "Men's Working Blue Shirt",
    UniformType.BRASSARD: "Brassard",
    UniformType.BLUE_GREY_BELT: "Blue Grey Belt",
    UniformType.BLACK_SOCKS: "Black Socks",
    UniformType.BLACK_LEATHER_GLOVES: "Black Leather Gloves",
    UniformType.WOMENS_TROUSERS: "Women's Trousers",
    UniformType.WOMENS_SLACKS: "Women's Slacks",
    UniformType.WOMENS_WORKING_BLUE_SHIRT: "Women's Working Blue Shirt",
    UniformType.WOMENS_SKIRT: "Women's Skirt",
    UniformType.WOMENS_WEDGEWOOD_SHIRT: "Women's Wedgewood Shirt",
    UniformType.FOUL_WEATHER_JACKET: "Foul Weather Jacket",
    UniformType.BERET_AND_BADGE: "Beret and Badge",
    UniformType.MISC: "Misc",
}

UNIFORM_CONDITION_LABELS: dict[UniformCondition, str] = {
    UniformCondition.NEW: "New",
    UniformCondition.GOOD: "Good",
    UniformCondition.SERVICEABLE: "Serviceable",
    UniformCondition.POOR: "Poor",
}


class UniformItem(Base):
    __tablename__ = "uniform_items"
    __table_args__ = (Index("idx_uniform_items_type", "type"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    type: Mapped[UniformType] = mapped_column(
        Enum(UniformType, native_enum=False, length=32, name="uniform_type"), nullable=False
    )
    size: Mapped[str] = mapped_column(String(32), nullable=False)
    condition: Mapped[UniformCondition] = mapped_column(
        Enum(UniformCondition, native_enum=False, length=16, name="uniform_condition"), nullable=False
    )
    added_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    added_by: Mapped["User | None"] = relationship("User", lazy="selectin")
