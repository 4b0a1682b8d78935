from __future__ import annotations

from flask import Blueprint, g, request

from app.cheongwon.constants import PETITION_STATUSES
from app.cheongwon.db import db_session
from app.cheongwon.errors import RequestValidationError
from app.cheongwon.modules.petitions.models import Petition
from app.cheongwon.modules.petitions.service import (
    SORT_OPTIONS,
    agree_petition,
    create_petition,
    get_petition,
    has_user_agreed_petition,
    has_user_reported_petition,
    list_petitions,
    petition_to_dict,
    report_petition,
    validate_petition_payload,
)
from app.cheongwon.rbac import current_user, require_login
from app.cheongwon.utils import isoformat, json_payload, ok, page_envelope, parse_page_args

bp = Blueprint("petitions", __name__)


def _listing_filters() -> dict:
    status = (request.args.get("status") or "").strip().upper() or None
    category = (request.args.get("category") or "").strip() or None
    sort = (request.args.get("sort") or "latest").strip().lower()
    errors = []
    if status and status not in PETITION_STATUSES:
        errors.append(f"Invalid status. Must be one of: {', '.join(PETITION_STATUSES)}")
    if sort not in SORT_OPTIONS:
        errors.append(f"Invalid sort. Must be one of: {', '.join(SORT_OPTIONS)}")
    if errors:
        raise RequestValidationError(errors)
    return {"status": status, "category": category, "sort": sort}


# ---------- List ----------
@bp.get("/petitions")
def petitions_list():
    s = db_session()
    page, per_page = parse_page_args()
    items, total = list_petitions(s, page=page, per_page=per_page, **_listing_filters())
    return ok(page_envelope([petition_to_dict(p) for p in items], total=total, page=page, per_page=per_page))


@bp.get("/users/me/petitions")
@require_login
def my_petitions():
    s = db_session()
    page, per_page = parse_page_args()
    items, total = list_petitions(s, user_id=g.current_user.id, page=page, per_page=per_page, **_listing_filters())
    return ok(page_envelope([petition_to_dict(p) for p in items], total=total, page=page, per_page=per_page))


# ---------- New ----------
@bp.post("/petitions")
@require_login
def petitions_new():
    payload = json_payload()
    errors = validate_petition_payload(payload)
    if errors:
        raise RequestValidationError(errors)

    s = db_session()
    petition = create_petition(s, payload, g.current_user.id)
    s.commit()
    return ok(petition_to_dict(petition), 201)


# ---------- Detail ----------
@bp.get("/petitions/<int:petition_id>")
def petition_detail(petition_id: int):
    s = db_session()
    petition = get_petition(s, petition_id)
    data = petition_to_dict(petition)
    user = current_user()
    if user:
        data["agreed"] = has_user_agreed_petition(s, user.id, petition_id)
        data["reported"] = has_user_reported_petition(s, user.id, petition_id)
    s.commit()
    return ok(data)


@bp.get("/petitions/<int:petition_id>/me")
@require_login
def petition_my_state(petition_id: int):
    s = db_session()
    uid = g.current_user.id
    return ok(
        {
            "petition_id": petition_id,
            "agreed": has_user_agreed_petition(s, uid, petition_id),
            "reported": has_user_reported_petition(s, uid, petition_id),
        }
    )


# ---------- Agree / Report ----------
@bp.post("/petitions/<int:petition_id>/agreements")
@require_login
def petition_agree(petition_id: int):
    s = db_session()
    agreement = agree_petition(s, petition_id, g.current_user.id)
    s.commit()
    petition = s.get(Petition, petition_id)
    return ok(
        {
            "agreement_id": agreement.id,
            "petition_id": petition_id,
            "created_at": isoformat(agreement.created_at),
            "agree_count": petition.agree_count if petition else None,
        },
        201,
    )


@bp.post("/petitions/<int:petition_id>/reports")
@require_login
def petition_report(petition_id: int):
    s = db_session()
    report = report_petition(s, petition_id, g.current_user.id)
    s.commit()
    return ok(
        {
            "report_id": report.id,
            "petition_id": petition_id,
            "created_at": isoformat(report.created_at),
        },
        201,
    )
