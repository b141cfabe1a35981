import logging
import os
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request, session
from sqlalchemy import inspect as sa_inspect

from app.boardroom.admin import bp as admin_bp
from app.boardroom.auth import bp as auth_bp, load_current_user
from app.boardroom.config import load_config
from app.boardroom.db import get_engine, init_db, teardown_db_session
from app.boardroom.models import Base
from app.boardroom.modules.agenda.admin import bp as agenda_bp
from app.boardroom.modules.board_members.admin import bp as board_members_bp
from app.boardroom.modules.compliance.admin import bp as compliance_bp
from app.boardroom.modules.documents.admin import bp as documents_bp
from app.boardroom.modules.evaluations.admin import bp as evaluations_bp
from app.boardroom.modules.marketplace.admin import bp as marketplace_bp
from app.boardroom.modules.meetings.admin import bp as meetings_bp
from app.boardroom.modules.organizations.admin import bp as organizations_bp, public_bp
from app.boardroom.modules.resolutions.admin import bp as resolutions_bp
from app.boardroom.modules.search.admin import bp as search_bp
from app.boardroom.routes import bp as routes_bp

_UNGUARDED_PREFIXES = ("/health", "/healthz")
_SAFE_METHODS = ("GET", "HEAD", "OPTIONS")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(config_overrides: dict | None = None) -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    if config_overrides:
        app.config.update(config_overrides)
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    _configure_logging(app.config.get("LOG_LEVEL") or "INFO")
    app.logger.setLevel(app.config.get("LOG_LEVEL") or "INFO")

    # CSRF protection (session token echoed in X-CSRF-Token)
    from app.boardroom.security import ensure_csrf_token, validate_csrf

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(_UNGUARDED_PREFIXES):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method not in _SAFE_METHODS:
            # Login/logout establish and clear the token themselves.
            if (request.endpoint or "").startswith("auth."):
                return None
            if not validate_csrf(request):
                return jsonify({"error": "CSRF token missing or invalid."}), 400
        return None

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
                get_engine(app).dispose()
                app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    # Storage health check (fail loudly on misconfiguration)
    if app.config.get("STORAGE_BACKEND") == "s3":
        missing_s3 = [
            key
            for key in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY")
            if not app.config.get(key)
        ]
        if missing_s3:
            app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))
        else:
            try:
                from app.boardroom.storage import S3Storage, storage_from_config

                storage = storage_from_config(app.config)
                if isinstance(storage, S3Storage):
                    storage._client().head_bucket(Bucket=storage.bucket)
                    app.logger.info("Storage health check PASSED: S3 bucket '%s' accessible", storage.bucket)
            except Exception as e:
                app.logger.error("STORAGE CONFIG ERROR: Cannot access S3 bucket: %s", e)

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(public_bp, url_prefix="/public")
    app.register_blueprint(admin_bp, url_prefix="/api")
    app.register_blueprint(organizations_bp, url_prefix="/api")
    app.register_blueprint(board_members_bp, url_prefix="/api")
    app.register_blueprint(meetings_bp, url_prefix="/api")
    app.register_blueprint(agenda_bp, url_prefix="/api")
    app.register_blueprint(resolutions_bp, url_prefix="/api")
    app.register_blueprint(documents_bp, url_prefix="/api")
    app.register_blueprint(compliance_bp, url_prefix="/api/compliance")
    app.register_blueprint(evaluations_bp, url_prefix="/api")
    app.register_blueprint(marketplace_bp, url_prefix="/api")
    app.register_blueprint(search_bp, url_prefix="/api")

    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)

    # Schema health: every mapped table must exist before API traffic is served.
    app.config.setdefault("_schema_health_ok", True)
    app.config.setdefault("_schema_health_missing", [])

    def _run_schema_health_check() -> None:
        missing: list[str] = []
        try:
            existing = set(sa_inspect(get_engine(app)).get_table_names())
            missing = sorted(name for name in Base.metadata.tables if name not in existing)
        except Exception as e:
            app.logger.exception("Schema health check failed: %s", e)

        app.config["_schema_health_missing"] = missing
        app.config["_schema_health_ok"] = not missing
        if missing:
            app.logger.error("DB schema out of date; run `alembic upgrade head`. Missing: %s", ", ".join(missing))

    _run_schema_health_check()

    @app.before_request
    def _schema_health_guardrail():
        if app.config.get("_schema_health_ok"):
            return None
        # Re-check so a freshly migrated database is picked up without a restart.
        _run_schema_health_check()
        if app.config.get("_schema_health_ok"):
            return None
        if request.path.startswith(("/api", "/auth", "/public")):
            return (
                jsonify(
                    {
                        "error": "Database schema is out of date.",
                        "missing": app.config.get("_schema_health_missing") or [],
                    }
                ),
                503,
            )
        return None

    def _json_error(status: int, message: str):
        return jsonify({"error": message}), status

    @app.errorhandler(400)
    def _err_400(e):
        return _json_error(400, getattr(e, "description", None) or "Bad request.")

    @app.errorhandler(401)
    def _err_401(e):
        return _json_error(401, "Unauthorized")

    @app.errorhandler(403)
    def _err_403(e):
        missing = getattr(g, "missing_permission", None)
        if missing:
            app.logger.warning("Forbidden: missing_permission=%s request_id=%s", missing, getattr(g, "request_id", None))
        body = {"error": "Forbidden"}
        if missing:
            body["missing_permission"] = missing
        return jsonify(body), 403

    @app.errorhandler(404)
    def _err_404(e):
        return _json_error(404, "Not found")

    @app.errorhandler(405)
    def _err_405(e):
        return _json_error(405, "Method not allowed")

    @app.errorhandler(409)
    def _err_409(e):
        return _json_error(409, getattr(e, "description", None) or "Conflict")

    @app.errorhandler(413)
    def _err_413(e):
        limit_mb = (app.config.get("MAX_UPLOAD_BYTES") or 0) // (1024 * 1024)
        return _json_error(413, f"File too large. Maximum size is {limit_mb}MB.")

    @app.errorhandler(500)
    def _err_500(e):
        rid = getattr(g, "request_id", None)
        app.logger.exception("Unhandled 500 (request_id=%s)", rid)
        return jsonify({"error": "Internal server error", "request_id": rid}), 500

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")
    return app
