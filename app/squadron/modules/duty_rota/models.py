from __future__ import annotations

import enum
from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Date, DateTime, Enum, ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.squadron.models import Base

if TYPE_CHECKING:
    from app.squadron.models import User


class DutyStatus(str, enum.Enum):
    UNCONFIRMED = "UNCONFIRMED"
    ATTENDED = "ATTENDED"
    ABSENT = "ABSENT"


def _status_column():
    return mapped_column(
        Enum(DutyStatus, name="duty_status", native_enum=False, length=16),
        nullable=False,
        default=DutyStatus.UNCONFIRMED,
    )


class DutyRota(Base):
    """
    One row per calendar day.

    original_* is who was first rostered and never changes after creation;
    actual_* is who covered (replaced when the original is marked absent).
    """

    __tablename__ = "duty_rota"
    __table_args__ = (
        Index("idx_duty_rota_actual_senior", "actual_senior_id"),
        Index("idx_duty_rota_actual_junior", "actual_junior_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    duty_date: Mapped[date] = mapped_column(Date, nullable=False, unique=True)

    original_senior_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    original_junior_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    actual_senior_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    actual_junior_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)

    senior_status: Mapped[DutyStatus] = _status_column()
    junior_status: Mapped[DutyStatus] = _status_column()

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    original_senior: Mapped["User"] = relationship("User", foreign_keys=[original_senior_id], lazy="selectin")
    original_junior: Mapped["User"] = relationship("User", foreign_keys=[original_junior_id], lazy="selectin")
    actual_senior: Mapped["User"] = relationship("User", foreign_keys=[actual_senior_id], lazy="selectin")
    actual_junior: Mapped["User"] = relationship("User", foreign_keys=[actual_junior_id], lazy="selectin")
