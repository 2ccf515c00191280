from datetime import date

from flask import Blueprint, current_app, render_template
from sqlalchemy import func, text

from app.squadron.db import db_session
from app.squadron.models import Role, User
from app.squadron.modules.absences.models import Absence
from app.squadron.modules.assessments.models import AssessmentCohort
from app.squadron.modules.duty_rota.models import DutyRota
from app.squadron.modules.lessons.models import Lesson
from app.squadron.modules.uniforms.models import UniformItem
from app.squadron.rbac import require_role

bp = Blueprint("admin", __name__)


@bp.get("/")
@require_role(Role.ADMIN)
def index():
    s = db_session()
    status = {
        "env": (current_app.config.get("ENV") or "development").strip().lower(),
        "db_connected": False,
        "db_error": None,
        "storage_backend": current_app.config.get("STORAGE_BACKEND") or "local",
    }
    try:
        s.execute(text("SELECT 1"))
        status["db_connected"] = True
    except Exception as e:
        current_app.logger.warning("Dashboard DB check failed: %s", e)
        status["db_error"] = str(e)

    today = date.today()
    counts = {}
    if status["db_connected"]:
        counts = {
            "users": s.query(func.count(User.id)).scalar() or 0,
            "lessons": s.query(func.count(Lesson.id)).scalar() or 0,
            "upcoming_duties": s.query(func.count(DutyRota.id)).filter(DutyRota.duty_date >= today).scalar() or 0,
            "current_absences": s.query(func.count(Absence.id))
            .filter(Absence.start_date <= today, Absence.end_date >= today)
            .scalar()
            or 0,
            "uniform_items": s.query(func.count(UniformItem.id)).scalar() or 0,
            "cohorts": s.query(func.count(AssessmentCohort.id)).scalar() or 0,
        }
    next_duty = (
        s.query(DutyRota).filter(DutyRota.duty_date >= today).order_by(DutyRota.duty_date.asc()).first()
        if status["db_connected"]
        else None
    )
    return render_template("admin/index.html", system_status=status, counts=counts, next_duty=next_duty)
