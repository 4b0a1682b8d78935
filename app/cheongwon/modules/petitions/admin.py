from __future__ import annotations

from flask import Blueprint, g, request

from app.cheongwon.constants import PETITION_STATUSES
from app.cheongwon.db import db_session
from app.cheongwon.errors import RequestValidationError
from app.cheongwon.modules.petitions.service import (
    change_petition_status,
    delete_petition,
    list_reported_petitions,
    petition_to_dict,
)
from app.cheongwon.rbac import require_admin
from app.cheongwon.utils import json_payload, ok, text_field

bp = Blueprint("petitions_admin", __name__)


@bp.get("/petitions/reported")
@require_admin
def reported_list():
    s = db_session()
    try:
        min_reports = int(request.args.get("min_reports") or 1)
    except ValueError:
        raise RequestValidationError(["min_reports must be a number."]) from None
    rows = list_reported_petitions(s, min_reports=max(min_reports, 1))
    return ok([{**petition_to_dict(p), "report_count": n} for p, n in rows])


@bp.patch("/petitions/<int:petition_id>/status")
@require_admin
def petition_status(petition_id: int):
    payload = json_payload()
    new_status = text_field(payload, "status").upper()
    if new_status not in PETITION_STATUSES:
        raise RequestValidationError([f"Invalid status. Must be one of: {', '.join(PETITION_STATUSES)}"])
    reason = text_field(payload, "reason") or None

    s = db_session()
    petition = change_petition_status(s, petition_id, new_status, actor=g.current_user, reason=reason)
    s.commit()
    return ok(petition_to_dict(petition))


@bp.delete("/petitions/<int:petition_id>")
@require_admin
def petition_delete(petition_id: int):
    s = db_session()
    snapshot = delete_petition(s, petition_id, actor=g.current_user)
    s.commit()
    return ok(snapshot)
