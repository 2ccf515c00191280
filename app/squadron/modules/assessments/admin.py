from __future__ import annotations

import io

from flask import Blueprint, current_app, jsonify, render_template, send_file

from app.squadron.db import db_session
from app.squadron.errors import NotFoundError
from app.squadron.models import Role
from app.squadron.modules.assessments.export import (
    paginate_for_print,
    load_template_bytes,
    pdf_filename,
    render_assessment_pdf,
)
from app.squadron.modules.assessments.models import ASSESSMENT_TYPE_LABELS, CRITERIA_LABELS
from app.squadron.modules.assessments.service import (
    add_cadet_to_cohort,
    assessment_to_dict,
    cadet_to_dict,
    cohort_to_dict,
    create_cadet,
    create_cohort,
    enroll_cadet,
    get_assessment,
    get_cohort,
    list_cadets,
    list_cohort_assessments,
    list_cohorts,
    remove_cadet_from_cohort,
    update_criteria,
)
from app.squadron.rbac import current_user, require_login, require_role
from app.squadron.utils import json_payload, parse_int, parse_optional_int

bp = Blueprint("assessments", __name__)


@bp.get("/api/assessments/cohorts")
@require_login
def cohorts_list():
    s = db_session()
    return jsonify([cohort_to_dict(c, n) for c, n in list_cohorts(s)])


@bp.get("/api/assessments/types")
@require_login
def assessment_types():
    return jsonify({t.value: label for t, label in ASSESSMENT_TYPE_LABELS.items()})


@bp.post("/api/assessments/cohorts")
@require_role(Role.ADMIN)
def cohorts_create():
    s = db_session()
    cohort = create_cohort(s, json_payload(), actor=current_user())
    s.commit()
    return jsonify(cohort_to_dict(cohort, 0)), 201


@bp.get("/api/assessments/cohorts/<int:cohort_id>")
@require_login
def cohort_detail(cohort_id: int):
    s = db_session()
    cohort = get_cohort(s, cohort_id)
    data = cohort_to_dict(cohort)
    data["assessments"] = [assessment_to_dict(a) for a in list_cohort_assessments(s, cohort_id)]
    return jsonify(data)


@bp.post("/api/assessments/cohorts/<int:cohort_id>")
@require_role(Role.ADMIN)
def cohort_add_cadet(cohort_id: int):
    s = db_session()
    payload = json_payload()
    cadet_id = parse_optional_int(payload.get("cadet_id"), "cadet_id")
    if cadet_id is not None:
        assessment = enroll_cadet(s, cohort_id, cadet_id, actor=current_user())
    else:
        assessment = add_cadet_to_cohort(
            s,
            cohort_id,
            payload.get("sqn"),
            payload.get("rank"),
            payload.get("full_name"),
            serial=payload.get("serial"),
            actor=current_user(),
        )
    s.commit()
    return jsonify(assessment_to_dict(assessment)), 201


@bp.delete("/api/assessments/cohorts/<int:cohort_id>")
@require_role(Role.ADMIN)
def cohort_remove_cadet(cohort_id: int):
    s = db_session()
    assessment_id = parse_int(json_payload().get("assessment_id"), "assessment_id")
    assessment = get_assessment(s, assessment_id)
    if assessment.cohort_id != cohort_id:
        raise NotFoundError("Assessment not found in this cohort.")
    remove_cadet_from_cohort(s, assessment_id, actor=current_user())
    s.commit()
    return jsonify({"message": "Cadet removed from cohort."})


@bp.get("/api/assessments/cohorts/<int:cohort_id>/pdf")
@require_login
def cohort_pdf(cohort_id: int):
    s = db_session()
    cohort = get_cohort(s, cohort_id)
    assessments = list_cohort_assessments(s, cohort_id)
    template = load_template_bytes(current_app.config["BRO_TEMPLATE_PATH"], current_app.root_path)
    pdf_bytes = render_assessment_pdf(cohort, assessments, template)
    return send_file(
        io.BytesIO(pdf_bytes),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=pdf_filename(cohort),
    )


@bp.get("/api/assessments/results/<int:assessment_id>")
@require_login
def result_detail(assessment_id: int):
    s = db_session()
    return jsonify(assessment_to_dict(get_assessment(s, assessment_id), include_cohort=True))


@bp.put("/api/assessments/results/<int:assessment_id>")
@require_login
def result_update(assessment_id: int):
    s = db_session()
    payload = json_payload()
    payload.pop("csrf_token", None)
    assessment = update_criteria(s, assessment_id, payload, actor=current_user())
    s.commit()
    return jsonify(assessment_to_dict(assessment))


@bp.get("/api/cadets")
@require_login
def cadets_list():
    s = db_session()
    return jsonify([cadet_to_dict(c) for c in list_cadets(s)])


@bp.post("/api/cadets")
@require_role(Role.ADMIN)
def cadets_create():
    s = db_session()
    cadet = create_cadet(s, json_payload(), actor=current_user())
    s.commit()
    return jsonify(cadet_to_dict(cadet)), 201


@bp.get("/admin/assessments/<int:cohort_id>/print")
@require_role(Role.ADMIN)
def cohort_print(cohort_id: int):
    s = db_session()
    cohort = get_cohort(s, cohort_id)
    pages = paginate_for_print(list_cohort_assessments(s, cohort_id))
    return render_template(
        "assessments/print.html",
        cohort=cohort,
        pages=pages,
        criteria_labels=list(CRITERIA_LABELS.values()) + ["PASS / FAIL"],
    )
