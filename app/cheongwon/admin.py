from datetime import date, datetime, time, timedelta

from flask import Blueprint, current_app, request
from sqlalchemy import func, select, text

from app.cheongwon.audit import audit_event_to_dict
from app.cheongwon.db import db_session
from app.cheongwon.models import AuditEvent, User
from app.cheongwon.modules.petitions.models import Agreement, Petition, Report
from app.cheongwon.rbac import require_admin
from app.cheongwon.utils import ok, page_envelope, parse_page_args

bp = Blueprint("admin", __name__)


def _parse_date(s: str) -> date | None:
    s = (s or "").strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        return None


@bp.get("/")
@require_admin
def index():
    s = db_session()
    status = {
        "env": (current_app.config.get("ENV") or "development").strip().lower(),
        "db_connected": False,
        "db_error": None,
        "univcert_configured": bool(current_app.config.get("UNIVCERT_API_KEY")),
        "counts": None,
    }

    # DB connectivity (lightweight)
    try:
        s.execute(text("SELECT 1"))
        status["db_connected"] = True
    except Exception as e:
        current_app.logger.exception("Admin diagnostics DB check failed")
        status["db_error"] = str(e)

    if status["db_connected"]:
        status["counts"] = {
            "users": s.scalar(select(func.count(User.id))) or 0,
            "petitions": s.scalar(select(func.count(Petition.id))) or 0,
            "agreements": s.scalar(select(func.count(Agreement.id))) or 0,
            "reports": s.scalar(select(func.count(Report.id))) or 0,
        }
    return ok(status)


@bp.get("/audit")
@require_admin
def audit_list():
    s = db_session()
    page, per_page = parse_page_args()
    action = (request.args.get("action") or "").strip()
    actor = (request.args.get("actor") or "").strip().lower()
    start = _parse_date(request.args.get("from") or "")
    end = _parse_date(request.args.get("to") or "")

    q = select(AuditEvent)
    if action:
        q = q.where(AuditEvent.action.like(f"{action}%"))
    if actor:
        q = q.where(AuditEvent.actor_user_email == actor)
    if start:
        q = q.where(AuditEvent.created_at >= datetime.combine(start, time.min))
    if end:
        q = q.where(AuditEvent.created_at < datetime.combine(end + timedelta(days=1), time.min))

    total = s.scalar(select(func.count()).select_from(q.subquery())) or 0
    events = s.scalars(q.order_by(AuditEvent.id.desc()).offset((page - 1) * per_page).limit(per_page)).all()
    return ok(page_envelope([audit_event_to_dict(e) for e in events], total=total, page=page, per_page=per_page))
