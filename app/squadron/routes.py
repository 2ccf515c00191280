from flask import Blueprint, g, jsonify, render_template

from app.squadron.rbac import current_user, require_login
from app.squadron.security import ensure_csrf_token

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    return render_template("public/index.html", user=getattr(g, "current_user", None))


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for container probes. No DB access, minimal overhead.
    """
    return "ok", 200


@bp.get("/api/session")
@require_login
def session_info():
    """Identity of the caller plus the CSRF token the client must echo on writes."""
    return jsonify({"user": current_user().to_safe_dict(), "csrf_token": ensure_csrf_token()})
