import logging
import os
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, g, jsonify, render_template, request, session

from app.squadron.config import load_config
from app.squadron.db import init_db, teardown_db_session
from app.squadron.errors import PortalError
from app.squadron.routes import bp as routes_bp
from app.squadron.auth import bp as auth_bp, load_current_user
from app.squadron.admin import bp as admin_bp
from app.squadron.modules.absences.admin import bp as absences_bp
from app.squadron.modules.assessments.admin import bp as assessments_bp
from app.squadron.modules.duty_rota.admin import bp as duty_rota_bp
from app.squadron.modules.lessons.admin import bp as lessons_bp
from app.squadron.modules.uniforms.admin import bp as uniforms_bp
from app.squadron.modules.users.admin import bp as users_bp
from app.squadron.rbac import admin_path_gate, is_api_request

logger = logging.getLogger(__name__)

_UNGUARDED_PREFIXES = ("/static/", "/health", "/healthz")


def create_app(config_overrides: dict | None = None) -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    if config_overrides:
        app.config.update(config_overrides)
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    from app.squadron.security import ensure_csrf_token, validate_csrf

    @app.context_processor
    def _inject_csrf() -> dict:
        return {"csrf_token": ensure_csrf_token()}

    @app.context_processor
    def _inject_user() -> dict:
        return {"current_user": getattr(g, "current_user", None)}

    @app.template_filter("dateformat")
    def _dateformat_filter(value, format: str = "%Y-%m-%d") -> str:
        if value is None:
            return "-"
        if hasattr(value, "strftime"):
            return value.strftime(format)
        return str(value)

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    if app.config.get("STORAGE_BACKEND") == "s3":
        missing_s3 = [k for k in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY") if not app.config.get(k)]
        if missing_s3:
            app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(admin_bp, url_prefix="/admin")
    app.register_blueprint(duty_rota_bp)
    app.register_blueprint(assessments_bp)
    app.register_blueprint(lessons_bp)
    app.register_blueprint(absences_bp)
    app.register_blueprint(uniforms_bp)
    app.register_blueprint(users_bp)

    # Order matters: identity first, then the admin path gate, then CSRF.
    app.before_request(load_current_user)
    app.before_request(admin_path_gate)

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(_UNGUARDED_PREFIXES):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Login/logout carry no session yet.
            if (request.endpoint or "").startswith("auth."):
                return None
            if not validate_csrf(request):
                message = "CSRF token missing or invalid."
                if is_api_request():
                    return jsonify({"error": "ValidationError", "message": message}), 400
                return render_template("errors/400.html", message=message), 400
        return None

    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(PortalError)
    def _portal_error(e: PortalError):
        if e.status_code == 403:
            app.logger.warning(
                "Forbidden: missing_role=%s request_id=%s",
                getattr(g, "missing_role", None),
                getattr(g, "request_id", None),
            )
        if is_api_request():
            return jsonify({"error": type(e).__name__, "message": e.message}), e.status_code
        return render_template(f"errors/{e.status_code}.html", message=e.message), e.status_code

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        if is_api_request():
            return jsonify({"error": "NotFoundError", "message": "Not found."}), 404
        return render_template("errors/404.html", message=None), 404

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        missing = getattr(g, "missing_role", None)
        app.logger.warning("Forbidden: missing_role=%s request_id=%s", missing, getattr(g, "request_id", None))
        if is_api_request():
            return jsonify({"error": "UnauthorizedError", "message": "Forbidden."}), 403
        return render_template("errors/403.html", message=None), 403

    @app.errorhandler(413)
    def _err_413(e):  # type: ignore[no-redef]
        message = "File too large. Maximum size is 25MB."
        if is_api_request():
            return jsonify({"error": "ValidationError", "message": message}), 413
        return render_template("errors/400.html", message=message), 413

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        if is_api_request():
            return jsonify({"error": "InternalError", "message": "Something went wrong."}), 500
        return render_template("errors/500.html"), 500

    logger.info("create_app() complete; app ready to serve")

    return app
