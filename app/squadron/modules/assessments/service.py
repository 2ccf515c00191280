from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from app.squadron.audit import record_event
from app.squadron.errors import ConflictError, NotFoundError, ValidationError
from app.squadron.modules.assessments.models import (
    ASSESSMENT_TYPE_LABELS,
    CRITERIA_KEYS,
    AssessmentCohort,
    AssessmentStatus,
    AssessmentType,
    Cadet,
    RadioAssessment,
)
from app.squadron.utils import clean_str, parse_enum

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.squadron.models import User


def compute_pass_fail(statuses: Mapping[str, AssessmentStatus]) -> bool:
    """True iff every one of the thirteen criteria is PASS."""
    return all(statuses.get(key) == AssessmentStatus.PASS for key in CRITERIA_KEYS)


def get_assessment(s: "Session", assessment_id: int) -> RadioAssessment:
    assessment = s.get(RadioAssessment, assessment_id)
    if assessment is None:
        raise NotFoundError("Assessment not found.")
    return assessment


def update_criteria(
    s: "Session",
    assessment_id: int,
    updates: Mapping[str, Any],
    actor: "User | None" = None,
) -> RadioAssessment:
    """
    Apply one or more criterion changes and the recomputed pass/fail in a single write.
    """
    if not updates:
        raise ValidationError("No criteria supplied.")
    parsed: dict[str, AssessmentStatus] = {}
    for key, value in updates.items():
        if key == "pass_fail":
            raise ValidationError("pass_fail is derived from the criteria and cannot be set directly.")
        if key not in CRITERIA_KEYS:
            raise ValidationError(f"Unknown criterion: {key}.")
        parsed[key] = parse_enum(AssessmentStatus, value, key)

    assessment = get_assessment(s, assessment_id)
    statuses = assessment.criteria()
    statuses.update(parsed)
    overall = compute_pass_fail(statuses)

    for key, status in parsed.items():
        setattr(assessment, key, status)
    assessment.pass_fail = overall
    assessment.updated_at = datetime.utcnow()
    s.flush()

    record_event(
        s,
        actor=actor,
        action="assessment.score",
        entity_type="RadioAssessment",
        entity_id=str(assessment.id),
        metadata={"criteria": {k: v.value for k, v in parsed.items()}, "pass_fail": overall},
    )
    return assessment


def set_criterion(
    s: "Session",
    assessment_id: int,
    criterion_key: str,
    status: AssessmentStatus | str,
    actor: "User | None" = None,
) -> RadioAssessment:
    return update_criteria(s, assessment_id, {criterion_key: status}, actor=actor)


def _new_assessment(cohort_id: int, cadet_id: int) -> RadioAssessment:
    assessment = RadioAssessment(cohort_id=cohort_id, cadet_id=cadet_id, pass_fail=False, updated_at=datetime.utcnow())
    for key in CRITERIA_KEYS:
        setattr(assessment, key, AssessmentStatus.PENDING)
    return assessment


def get_cohort(s: "Session", cohort_id: int) -> AssessmentCohort:
    cohort = s.get(AssessmentCohort, cohort_id)
    if cohort is None:
        raise NotFoundError("Cohort not found.")
    return cohort


def add_cadet_to_cohort(
    s: "Session",
    cohort_id: int,
    sqn: str | None,
    rank: str | None,
    full_name: str | None,
    serial: str | None = None,
    actor: "User | None" = None,
) -> RadioAssessment:
    """
    Create a cadet and their all-PENDING assessment. Both rows are flushed in
    the caller's transaction: commit keeps both, rollback drops both.
    """
    sqn, rank, full_name = clean_str(sqn), clean_str(rank), clean_str(full_name)
    if not sqn or not rank or not full_name:
        raise ValidationError("Squadron, rank and full name are required.")
    get_cohort(s, cohort_id)

    cadet = Cadet(sqn=sqn, rank=rank, full_name=full_name, serial=clean_str(serial))
    s.add(cadet)
    s.flush()
    assessment = _new_assessment(cohort_id, cadet.id)
    s.add(assessment)
    s.flush()

    record_event(
        s,
        actor=actor,
        action="assessment.add_cadet",
        entity_type="RadioAssessment",
        entity_id=str(assessment.id),
        metadata={"cohort_id": cohort_id, "cadet_id": cadet.id, "full_name": full_name},
    )
    return assessment


def enroll_cadet(s: "Session", cohort_id: int, cadet_id: int, actor: "User | None" = None) -> RadioAssessment:
    """Put an existing cadet into another cohort. One assessment per cohort per cadet."""
    get_cohort(s, cohort_id)
    if s.get(Cadet, cadet_id) is None:
        raise NotFoundError("Cadet not found.")
    existing = (
        s.query(RadioAssessment)
        .filter(RadioAssessment.cohort_id == cohort_id, RadioAssessment.cadet_id == cadet_id)
        .one_or_none()
    )
    if existing is not None:
        raise ConflictError("Cadet is already in this cohort.")
    assessment = _new_assessment(cohort_id, cadet_id)
    s.add(assessment)
    try:
        s.flush()
    except IntegrityError:
        s.rollback()
        raise ConflictError("Cadet is already in this cohort.") from None
    record_event(
        s,
        actor=actor,
        action="assessment.enroll_cadet",
        entity_type="RadioAssessment",
        entity_id=str(assessment.id),
        metadata={"cohort_id": cohort_id, "cadet_id": cadet_id},
    )
    return assessment


def remove_cadet_from_cohort(s: "Session", assessment_id: int, actor: "User | None" = None) -> None:
    """Drops the assessment only; the cadet record stays."""
    assessment = get_assessment(s, assessment_id)
    meta = {"cohort_id": assessment.cohort_id, "cadet_id": assessment.cadet_id}
    s.delete(assessment)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="assessment.remove_cadet",
        entity_type="RadioAssessment",
        entity_id=str(assessment_id),
        metadata=meta,
    )


def list_cohort_assessments(s: "Session", cohort_id: int) -> list[RadioAssessment]:
    """Cohort results ordered by cadet full name (id breaks ties)."""
    get_cohort(s, cohort_id)
    return (
        s.query(RadioAssessment)
        .join(Cadet, RadioAssessment.cadet_id == Cadet.id)
        .filter(RadioAssessment.cohort_id == cohort_id)
        .order_by(Cadet.full_name.asc(), RadioAssessment.id.asc())
        .all()
    )


def create_cohort(s: "Session", payload: dict, actor: "User | None" = None) -> AssessmentCohort:
    fields = ("name", "type", "instructor_name", "instructor_sqn", "assessor_name", "assessor_sqn")
    values = {f: clean_str(payload.get(f)) for f in fields}
    if any(v is None for v in values.values()):
        raise ValidationError("All fields are required.")
    cohort = AssessmentCohort(
        name=values["name"],
        type=parse_enum(AssessmentType, values["type"], "type"),
        instructor_name=values["instructor_name"],
        instructor_sqn=values["instructor_sqn"],
        assessor_name=values["assessor_name"],
        assessor_sqn=values["assessor_sqn"],
        created_at=datetime.utcnow(),
    )
    s.add(cohort)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="assessment.cohort_create",
        entity_type="AssessmentCohort",
        entity_id=str(cohort.id),
        metadata={"name": cohort.name},
    )
    return cohort


def list_cohorts(s: "Session") -> list[tuple[AssessmentCohort, int]]:
    """Newest cohorts first, each with its number of assessments."""
    counts = (
        s.query(RadioAssessment.cohort_id, func.count(RadioAssessment.id).label("assessment_count"))
        .group_by(RadioAssessment.cohort_id)
        .subquery()
    )
    rows = (
        s.query(AssessmentCohort, func.coalesce(counts.c.assessment_count, 0))
        .outerjoin(counts, counts.c.cohort_id == AssessmentCohort.id)
        .order_by(AssessmentCohort.created_at.desc(), AssessmentCohort.id.desc())
        .all()
    )
    return [(cohort, int(n)) for cohort, n in rows]


def list_cadets(s: "Session") -> list[Cadet]:
    return s.query(Cadet).order_by(Cadet.full_name.asc(), Cadet.id.asc()).all()


def create_cadet(s: "Session", payload: dict, actor: "User | None" = None) -> Cadet:
    sqn, rank, full_name = (clean_str(payload.get(k)) for k in ("sqn", "rank", "full_name"))
    if not sqn or not rank or not full_name:
        raise ValidationError("Squadron, rank and full name are required.")
    cadet = Cadet(sqn=sqn, rank=rank, full_name=full_name, serial=clean_str(payload.get("serial")))
    s.add(cadet)
    s.flush()
    record_event(s, actor=actor, action="cadet.create", entity_type="Cadet", entity_id=str(cadet.id))
    return cadet


def cadet_to_dict(cadet: Cadet) -> dict:
    return {
        "id": cadet.id,
        "serial": cadet.serial,
        "sqn": cadet.sqn,
        "rank": cadet.rank,
        "full_name": cadet.full_name,
    }


def assessment_to_dict(assessment: RadioAssessment, *, include_cohort: bool = False) -> dict:
    data = {
        "id": assessment.id,
        "cohort_id": assessment.cohort_id,
        "cadet": cadet_to_dict(assessment.cadet),
        "criteria": {k: v.value for k, v in assessment.criteria().items()},
        "pass_fail": assessment.pass_fail,
    }
    if include_cohort:
        data["cohort"] = cohort_to_dict(assessment.cohort)
    return data


def cohort_to_dict(cohort: AssessmentCohort, assessment_count: int | None = None) -> dict:
    data = {
        "id": cohort.id,
        "name": cohort.name,
        "type": cohort.type.value,
        "type_label": ASSESSMENT_TYPE_LABELS[cohort.type],
        "instructor_name": cohort.instructor_name,
        "instructor_sqn": cohort.instructor_sqn,
        "assessor_name": cohort.assessor_name,
        "assessor_sqn": cohort.assessor_sqn,
        "created_at": cohort.created_at.isoformat() if cohort.created_at else None,
    }
    if assessment_count is not None:
        data["assessment_count"] = assessment_count
    return data
