import logging

from flask import Flask, g, request
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from app.cheongwon.config import load_config
from app.cheongwon.db import init_db, teardown_db_session
from app.cheongwon.errors import ErrorCode, ServiceError
from app.cheongwon.routes import bp as routes_bp
from app.cheongwon.auth import bp as auth_bp, load_current_user
from app.cheongwon.admin import bp as admin_bp
from app.cheongwon.modules.petitions.routes import bp as petitions_bp
from app.cheongwon.modules.petitions.admin import bp as petitions_admin_bp
from app.cheongwon.modules.boards.routes import bp as boards_bp
from app.cheongwon.modules.boards.admin import bp as boards_admin_bp
from app.cheongwon.modules.users.univcert_client import UnivCertError, univcert_from_config
from app.cheongwon.tokens import token_service_from_config


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.json.ensure_ascii = False  # Korean titles stay readable
    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
        if not app.config.get("UNIVCERT_API_KEY"):
            raise RuntimeError("UNIVCERT_API_KEY is required in production.")

    init_db(app)
    app.extensions["token_service"] = token_service_from_config(app.config)
    app.extensions["email_verifier"] = univcert_from_config(app.config)

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(petitions_bp)
    app.register_blueprint(boards_bp)
    app.register_blueprint(admin_bp, url_prefix="/admin")
    app.register_blueprint(petitions_admin_bp, url_prefix="/admin")
    app.register_blueprint(boards_admin_bp, url_prefix="/admin")

    def _load_user_wrapper():
        if request.path.startswith(("/health", "/healthz")):
            g.current_user = None
            return None
        return load_current_user()

    app.before_request(_load_user_wrapper)
    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(ServiceError)
    def _service_error(e: ServiceError):  # type: ignore[no-redef]
        if e.http_status >= 500:
            app.logger.error("%s (request_id=%s): %s", e.code.name, getattr(g, "request_id", None), e.message)
        return e.to_dict(), e.http_status

    @app.errorhandler(UnivCertError)
    def _univcert_error(e: UnivCertError):  # type: ignore[no-redef]
        app.logger.error("Email verification failed (request_id=%s): %s", getattr(g, "request_id", None), e)
        err = ServiceError(ErrorCode.EMAIL_VERIFICATION_FAILED)
        return err.to_dict(), err.http_status

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):  # type: ignore[no-redef]
        return {"ok": False, "code": (e.name or "HTTP_ERROR").upper().replace(" ", "_"), "message": e.description}, e.code or 500

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        # Ensure stack trace shows in logs.
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return {"ok": False, "code": "INTERNAL_ERROR", "message": "Internal server error."}, 500

    @app.after_request
    def _request_id_header(resp):  # type: ignore[no-redef]
        rid = getattr(g, "request_id", None)
        if rid:
            resp.headers["X-Request-ID"] = rid
        return resp

    # Startup logging
    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
