from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.squadron.models import Base

if TYPE_CHECKING:
    from app.squadron.models import User


class Lesson(Base):
    __tablename__ = "lessons"
    __table_args__ = (Index("idx_lessons_date", "lesson_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    lesson_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_by: Mapped["User | None"] = relationship("User", lazy="selectin")
    assignments: Mapped[list["LessonAssignment"]] = relationship(
        "LessonAssignment",
        back_populates="lesson",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    resources: Mapped[list["LessonResource"]] = relationship(
        "LessonResource",
        back_populates="lesson",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="LessonResource.uploaded_at",
    )


class LessonAssignment(Base):
    __tablename__ = "lesson_assignments"
    __table_args__ = (
        UniqueConstraint("lesson_id", "user_id", name="uq_lesson_assignment_lesson_user"),
        Index("idx_lesson_assignments_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    lesson_id: Mapped[int] = mapped_column(ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    lesson: Mapped["Lesson"] = relationship("Lesson", back_populates="assignments")
    user: Mapped["User"] = relationship("User", lazy="selectin")


class LessonResource(Base):
    __tablename__ = "lesson_resources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    lesson_id: Mapped[int] = mapped_column(ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_key: Mapped[str] = mapped_column(String(512), nullable=False)
    content_type: Mapped[str | None] = mapped_column(String(128), nullable=True)
    size_bytes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    lesson: Mapped["Lesson"] = relationship("Lesson", back_populates="resources")
