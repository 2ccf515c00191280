import pytest

from app.squadron.db import session_scope
from app.squadron.errors import ConflictError, ValidationError
from app.squadron.modules.assessments.models import CRITERIA_KEYS, AssessmentStatus, Cadet, RadioAssessment
from app.squadron.modules.assessments.service import (
    add_cadet_to_cohort,
    compute_pass_fail,
    create_cohort,
    enroll_cadet,
    list_cohort_assessments,
    list_cohorts,
    remove_cadet_from_cohort,
    set_criterion,
    update_criteria,
)

COHORT = {
    "name": "Spring BRO",
    "type": "BASIC_RADIO_OPERATOR",
    "instructor_name": "Sgt Jones",
    "instructor_sqn": "123",
    "assessor_name": "Fg Off Smith",
    "assessor_sqn": "456",
}

ALL_PASS = {k: "PASS" for k in CRITERIA_KEYS}


@pytest.fixture()
def cohort_id(app):
    with session_scope(app) as s:
        return create_cohort(s, COHORT).id


def _add(app, cohort_id, name):
    with session_scope(app) as s:
        return add_cadet_to_cohort(s, cohort_id, "123", "Cdt", name).id


def test_compute_pass_fail_requires_every_criterion():
    statuses = {k: AssessmentStatus.PASS for k in CRITERIA_KEYS}
    assert compute_pass_fail(statuses) is True
    statuses[CRITERIA_KEYS[-1]] = AssessmentStatus.PENDING
    assert compute_pass_fail(statuses) is False
    statuses[CRITERIA_KEYS[-1]] = AssessmentStatus.FAIL
    assert compute_pass_fail(statuses) is False
    assert compute_pass_fail({}) is False


def test_new_cadet_starts_all_pending(app, cohort_id):
    _add(app, cohort_id, "Carol Clark")
    with session_scope(app) as s:
        (assessment,) = list_cohort_assessments(s, cohort_id)
        assert assessment.cadet.full_name == "Carol Clark"
        assert all(v == AssessmentStatus.PENDING for v in assessment.criteria().values())
        assert assessment.pass_fail is False


def test_add_cadet_requires_fields(app, cohort_id):
    with session_scope(app) as s:
        with pytest.raises(ValidationError):
            add_cadet_to_cohort(s, cohort_id, "123", "", "Carol Clark")


def test_pass_fail_tracks_criteria(app, cohort_id):
    assessment_id = _add(app, cohort_id, "Carol Clark")
    twelve = {k: "PASS" for k in CRITERIA_KEYS[:-1]}
    with session_scope(app) as s:
        assert update_criteria(s, assessment_id, twelve).pass_fail is False
    with session_scope(app) as s:
        assert set_criterion(s, assessment_id, CRITERIA_KEYS[-1], "PASS").pass_fail is True
    # repeating the same write changes nothing
    with session_scope(app) as s:
        assert set_criterion(s, assessment_id, CRITERIA_KEYS[-1], "PASS").pass_fail is True
    with session_scope(app) as s:
        assert set_criterion(s, assessment_id, CRITERIA_KEYS[0], AssessmentStatus.FAIL).pass_fail is False
    with session_scope(app) as s:
        stored = s.get(RadioAssessment, assessment_id)
        assert stored.pass_fail is False
        assert stored.first_class_logbook_completed == AssessmentStatus.FAIL


def test_pass_fail_cannot_be_set_directly(app, cohort_id):
    assessment_id = _add(app, cohort_id, "Carol Clark")
    with session_scope(app) as s:
        with pytest.raises(ValidationError):
            update_criteria(s, assessment_id, {"pass_fail": True})
        with pytest.raises(ValidationError):
            update_criteria(s, assessment_id, {"not_a_criterion": "PASS"})
        with pytest.raises(ValidationError):
            update_criteria(s, assessment_id, {CRITERIA_KEYS[0]: "MAYBE"})


def test_remove_keeps_cadet(app, cohort_id):
    assessment_id = _add(app, cohort_id, "Carol Clark")
    with session_scope(app) as s:
        remove_cadet_from_cohort(s, assessment_id)
    with session_scope(app) as s:
        assert list_cohort_assessments(s, cohort_id) == []
        assert s.query(Cadet).filter(Cadet.full_name == "Carol Clark").count() == 1


def test_enroll_existing_cadet_once_per_cohort(app, cohort_id):
    assessment_id = _add(app, cohort_id, "Carol Clark")
    with session_scope(app) as s:
        cadet_id = s.get(RadioAssessment, assessment_id).cadet_id
        other = create_cohort(s, {**COHORT, "name": "Autumn BRO"})
        other_id = other.id
    with session_scope(app) as s:
        enroll_cadet(s, other_id, cadet_id)
    with session_scope(app) as s:
        with pytest.raises(ConflictError):
            enroll_cadet(s, cohort_id, cadet_id)
    with session_scope(app) as s:
        counts = {c.name: n for c, n in list_cohorts(s)}
        assert counts == {"Spring BRO": 1, "Autumn BRO": 1}


def test_cohort_listing_sorted_by_cadet_name(app, cohort_id):
    for name in ("Zoe Young", "Adam Ant", "Mia Moss"):
        _add(app, cohort_id, name)
    with session_scope(app) as s:
        names = [a.cadet.full_name for a in list_cohort_assessments(s, cohort_id)]
    assert names == ["Adam Ant", "Mia Moss", "Zoe Young"]


def test_create_cohort_requires_all_fields(app):
    with session_scope(app) as s:
        with pytest.raises(ValidationError):
            create_cohort(s, {**COHORT, "assessor_sqn": ""})
        with pytest.raises(ValidationError):
            create_cohort(s, {**COHORT, "type": "ADVANCED"})


def test_assessment_api_flow(admin_client, alice_client):
    r = admin_client.post("/api/assessments/cohorts", json=COHORT)
    assert r.status_code == 201
    cohort_id = r.json["id"]

    r = alice_client.post("/api/assessments/cohorts", json=COHORT)
    assert r.status_code == 403

    r = admin_client.post(
        f"/api/assessments/cohorts/{cohort_id}",
        json={"sqn": "123", "rank": "Cdt", "full_name": "Carol Clark"},
    )
    assert r.status_code == 201
    assessment_id = r.json["id"]
    assert r.json["pass_fail"] is False

    r = alice_client.put(f"/api/assessments/results/{assessment_id}", json=ALL_PASS)
    assert r.status_code == 200
    assert r.json["pass_fail"] is True

    r = alice_client.put(f"/api/assessments/results/{assessment_id}", json={"pass_fail": False})
    assert r.status_code == 400

    r = alice_client.get(f"/api/assessments/cohorts/{cohort_id}")
    assert r.status_code == 200
    assert r.json["assessments"][0]["cadet"]["full_name"] == "Carol Clark"

    r = alice_client.get("/api/assessments/cohorts")
    assert r.json[0]["assessment_count"] == 1

    r = admin_client.post(f"/api/assessments/cohorts/{cohort_id}", json={"cadet_id": 999})
    assert r.status_code == 404

    r = admin_client.delete(f"/api/assessments/cohorts/{cohort_id}", json={"assessment_id": assessment_id})
    assert r.status_code == 200
    r = admin_client.get("/api/cadets")
    assert [c["full_name"] for c in r.json] == ["Carol Clark"]
