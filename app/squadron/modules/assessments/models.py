from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.squadron.models import Base


class AssessmentStatus(str, enum.Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    PENDING = "PENDING"


class AssessmentType(str, enum.Enum):
    BASIC_RADIO_OPERATOR = "BASIC_RADIO_OPERATOR"


ASSESSMENT_TYPE_LABELS = {
    AssessmentType.BASIC_RADIO_OPERATOR: "Basic Radio Operator Award",
}

# Column order is the order of the printed award form.
CRITERIA_LABELS: dict[str, str] = {
    "first_class_logbook_completed": "First Class Logbook Completed",
    "basic_cyber_security_video_watched": "Basic Cyber Security video watched",
    "correct_use_of_both_full_callsigns": "Correct use of both full callsigns",
    "authenticate_requested": "Authenticate requested",
    "authenticate_answered_correctly": "Authenticate answered correctly",
    "radio_check_requested": "Radio Check requested",
    "radio_check_answered_correctly": "Radio Check answered correctly",
    "tactical_message_fully_answered": "Tactical message fully answered",
    "i_say_again_used_correctly": "I Say Again used correctly",
    "say_again_used": "Say Again used",
    "proword_knowledge_completed_ok": "Proword knowledge completed OK",
    "security_knowledge_completed_ok": "Security knowledge completed OK",
    "general_operating_and_confidence": "General operating and confidence",
}
CRITERIA_KEYS: tuple[str, ...] = tuple(CRITERIA_LABELS)


def _criterion():
    return mapped_column(
        Enum(AssessmentStatus, name="assessment_status", native_enum=False, length=16),
        nullable=False,
        default=AssessmentStatus.PENDING,
    )


class Cadet(Base):
    """A cadet's identity. Not a portal user; may sit in several cohorts over time."""

    __tablename__ = "cadets"
    __table_args__ = (Index("idx_cadets_full_name", "full_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    serial: Mapped[str | None] = mapped_column(String(64), nullable=True)
    sqn: Mapped[str] = mapped_column(String(32), nullable=False)
    rank: Mapped[str] = mapped_column(String(32), nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)


class AssessmentCohort(Base):
    __tablename__ = "assessment_cohorts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[AssessmentType] = mapped_column(
        Enum(AssessmentType, name="assessment_type", native_enum=False, length=32),
        nullable=False,
        default=AssessmentType.BASIC_RADIO_OPERATOR,
    )
    # Printed on the award form only.
    instructor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    instructor_sqn: Mapped[str] = mapped_column(String(32), nullable=False)
    assessor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    assessor_sqn: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    assessments: Mapped[list["RadioAssessment"]] = relationship(
        "RadioAssessment",
        back_populates="cohort",
        cascade="all, delete-orphan",
        lazy="select",
    )


class RadioAssessment(Base):
    __tablename__ = "radio_assessments"
    __table_args__ = (
        UniqueConstraint("cohort_id", "cadet_id", name="uq_radio_assessment_cohort_cadet"),
        Index("idx_radio_assessments_cohort", "cohort_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    cohort_id: Mapped[int] = mapped_column(ForeignKey("assessment_cohorts.id", ondelete="CASCADE"), nullable=False)
    cadet_id: Mapped[int] = mapped_column(ForeignKey("cadets.id"), nullable=False)

    first_class_logbook_completed: Mapped[AssessmentStatus] = _criterion()
    basic_cyber_security_video_watched: Mapped[AssessmentStatus] = _criterion()
    correct_use_of_both_full_callsigns: Mapped[AssessmentStatus] = _criterion()
    authenticate_requested: Mapped[AssessmentStatus] = _criterion()
    authenticate_answered_correctly: Mapped[AssessmentStatus] = _criterion()
    radio_check_requested: Mapped[AssessmentStatus] = _criterion()
    radio_check_answered_correctly: Mapped[AssessmentStatus] = _criterion()
    tactical_message_fully_answered: Mapped[AssessmentStatus] = _criterion()
    i_say_again_used_correctly: Mapped[AssessmentStatus] = _criterion()
    say_again_used: Mapped[AssessmentStatus] = _criterion()
    proword_knowledge_completed_ok: Mapped[AssessmentStatus] = _criterion()
    security_knowledge_completed_ok: Mapped[AssessmentStatus] = _criterion()
    general_operating_and_confidence: Mapped[AssessmentStatus] = _criterion()

    # Derived from the thirteen criteria; only the service layer writes it.
    pass_fail: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    cohort: Mapped["AssessmentCohort"] = relationship("AssessmentCohort", back_populates="assessments")
    cadet: Mapped["Cadet"] = relationship("Cadet", lazy="joined")

    def criteria(self) -> dict[str, AssessmentStatus]:
        return {key: getattr(self, key) for key in CRITERIA_KEYS}
