"""
Petition service layer.
Handles submission, detail views, agreements, reports and moderation.

Functions take the request Session and never commit; the caller owns the unit of work.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.cheongwon.audit import record_event
from app.cheongwon.constants import (
    MAX_PETITION_LINKS,
    PETITION_MIN_INTERVAL,
    PETITION_STATUS_CLOSED,
    PETITION_STATUS_ONGOING,
    PETITION_STATUSES,
)
from app.cheongwon.errors import (
    BusinessRuleError,
    ErrorCode,
    InvalidStateError,
    ResourceNotFoundError,
)
from app.cheongwon.models import User
from app.cheongwon.utils import isoformat, text_field, utcnow

from .models import Agreement, Link, Petition, Report

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


# Moderation transitions; ONGOING is the only state that accepts agreements
STATUS_TRANSITIONS = {
    PETITION_STATUS_ONGOING: {PETITION_STATUS_CLOSED},
    PETITION_STATUS_CLOSED: set(),
}

SORT_OPTIONS = ("latest", "agreements")

TITLE_MAX = 255
CATEGORY_MAX = 64
CONTENT_MAX = 10_000
URL_MAX = 2048


def validate_petition_payload(payload: dict) -> list[str]:
    """Validate a petition submission. Returns list of errors."""
    errors = []
    title = text_field(payload, "title")
    category = text_field(payload, "category")
    content = text_field(payload, "content")
    if not title:
        errors.append("Title is required.")
    elif len(title) > TITLE_MAX:
        errors.append(f"Title must be at most {TITLE_MAX} characters.")
    if not category:
        errors.append("Category is required.")
    elif len(category) > CATEGORY_MAX:
        errors.append(f"Category must be at most {CATEGORY_MAX} characters.")
    if not content:
        errors.append("Content is required.")
    elif len(content) > CONTENT_MAX:
        errors.append(f"Content must be at most {CONTENT_MAX} characters.")

    links = payload.get("links")
    if links is None:
        return errors
    if not isinstance(links, list):
        errors.append("Links must be a list of URLs.")
        return errors
    urls = [u for u in links if not (isinstance(u, str) and not u.strip())]
    if len(urls) > MAX_PETITION_LINKS:
        errors.append(f"At most {MAX_PETITION_LINKS} links are allowed.")
    for u in urls:
        if not isinstance(u, str) or not _is_http_url(u.strip()):
            errors.append(f"Invalid link: {u!r}")
    return errors


def _is_http_url(value: str) -> bool:
    if len(value) > URL_MAX:
        return False
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _get_user_or_raise(s: Session, user_id: int) -> User:
    user = s.get(User, user_id)
    if not user:
        raise ResourceNotFoundError(ErrorCode.USER_NOT_FOUND)
    return user


def _get_petition_or_raise(s: Session, petition_id: int) -> Petition:
    petition = s.get(Petition, petition_id)
    if not petition:
        raise ResourceNotFoundError(ErrorCode.PETITION_NOT_FOUND)
    return petition


def get_petition(s: Session, petition_id: int) -> Petition:
    """Petition detail. Every call counts as one view."""
    result = s.execute(
        update(Petition)
        .where(Petition.id == petition_id)
        .values(view_count=Petition.view_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise ResourceNotFoundError(ErrorCode.PETITION_NOT_FOUND)
    return s.get(Petition, petition_id, populate_existing=True)  # type: ignore[return-value]


def last_petition_of_user(s: Session, user_id: int) -> Petition | None:
    return s.scalars(
        select(Petition)
        .where(Petition.user_id == user_id)
        .order_by(Petition.created_at.desc(), Petition.id.desc())
        .limit(1)
    ).first()


def create_petition(s: Session, payload: dict, user_id: int, *, now: datetime | None = None) -> Petition:
    """Submit a petition. A user may submit at most one petition every seven days."""
    user = _get_user_or_raise(s, user_id)
    now = now or utcnow()

    last = last_petition_of_user(s, user_id)
    if last is not None and now - last.created_at < PETITION_MIN_INTERVAL:
        logger.info("Petition rejected as too frequent user_id=%s last_petition_id=%s", user_id, last.id)
        raise BusinessRuleError(ErrorCode.PETITION_TOO_FREQUENT)

    petition = Petition(
        user_id=user.id,
        title=text_field(payload, "title"),
        category=text_field(payload, "category"),
        content=text_field(payload, "content"),
        status=PETITION_STATUS_ONGOING,
        view_count=0,
        agree_count=0,
        created_at=now,
    )
    links = payload.get("links")
    for raw in links if isinstance(links, list) else []:
        url = raw.strip() if isinstance(raw, str) else ""
        if url:
            petition.links.append(Link(url=url))
    s.add(petition)
    s.flush()  # Get ID

    record_event(
        s,
        actor=user,
        action="petition.create",
        entity_type="Petition",
        entity_id=str(petition.id),
        metadata={"title": petition.title, "category": petition.category, "links": len(petition.links)},
    )
    return petition


def has_user_agreed_petition(s: Session, user_id: int, petition_id: int) -> bool:
    stmt = select(Agreement.id).where(Agreement.user_id == user_id, Agreement.petition_id == petition_id)
    return s.scalar(select(stmt.exists())) or False


def has_user_reported_petition(s: Session, user_id: int, petition_id: int) -> bool:
    stmt = select(Report.id).where(Report.user_id == user_id, Report.petition_id == petition_id)
    return s.scalar(select(stmt.exists())) or False


def agree_petition(s: Session, petition_id: int, user_id: int) -> Agreement:
    """
    Record that a user supports a petition and bump its counter.
    The unique (user_id, petition_id) constraint closes the race between the check and the insert.
    """
    user = _get_user_or_raise(s, user_id)
    petition = _get_petition_or_raise(s, petition_id)

    if petition.status != PETITION_STATUS_ONGOING:
        raise InvalidStateError(ErrorCode.PETITION_NOT_ONGOING)
    if has_user_agreed_petition(s, user_id, petition_id):
        raise InvalidStateError(ErrorCode.ALREADY_AGREED)
    if petition.user_id == user_id:
        raise InvalidStateError(ErrorCode.SELF_AGREEMENT_NOT_ALLOWED)

    agreement = Agreement(user_id=user.id, petition_id=petition.id, created_at=utcnow())
    try:
        with s.begin_nested():
            s.add(agreement)
    except IntegrityError as e:
        logger.info("Concurrent duplicate agreement user_id=%s petition_id=%s", user_id, petition_id)
        raise InvalidStateError(ErrorCode.ALREADY_AGREED) from e

    s.execute(
        update(Petition)
        .where(Petition.id == petition.id)
        .values(agree_count=Petition.agree_count + 1)
        .execution_options(synchronize_session=False)
    )
    s.refresh(petition, attribute_names=["agree_count"])

    record_event(
        s,
        actor=user,
        action="petition.agree",
        entity_type="Petition",
        entity_id=str(petition.id),
        metadata={"agree_count": petition.agree_count},
    )
    return agreement


def report_petition(s: Session, petition_id: int, user_id: int) -> Report:
    """Flag a petition for moderation. Any status may be reported."""
    user = _get_user_or_raise(s, user_id)
    petition = _get_petition_or_raise(s, petition_id)

    if has_user_reported_petition(s, user_id, petition_id):
        raise InvalidStateError(ErrorCode.ALREADY_REPORTED)
    if petition.user_id == user_id:
        raise InvalidStateError(ErrorCode.SELF_REPORT_NOT_ALLOWED)

    report = Report(user_id=user.id, petition_id=petition.id, created_at=utcnow())
    try:
        with s.begin_nested():
            s.add(report)
    except IntegrityError as e:
        raise InvalidStateError(ErrorCode.ALREADY_REPORTED) from e

    record_event(
        s,
        actor=user,
        action="petition.report",
        entity_type="Petition",
        entity_id=str(petition.id),
    )
    return report


def delete_petition(s: Session, petition_id: int, *, actor: User | None = None) -> dict[str, Any]:
    """Administrative hard delete. Returns the petition as it was before deletion."""
    petition = _get_petition_or_raise(s, petition_id)
    snapshot = petition_to_dict(petition)

    record_event(
        s,
        actor=actor,
        action="petition.delete",
        entity_type="Petition",
        entity_id=str(petition.id),
        metadata={"title": petition.title, "user_id": petition.user_id},
    )
    s.delete(petition)
    s.flush()
    logger.info("Petition deleted petition_id=%s by user_id=%s", petition_id, actor.id if actor else None)
    return snapshot


def change_petition_status(
    s: Session,
    petition_id: int,
    new_status: str,
    *,
    actor: User,
    reason: str | None = None,
) -> Petition:
    """Moderation status change. Only ONGOING -> CLOSED is allowed."""
    petition = _get_petition_or_raise(s, petition_id)
    old_status = petition.status
    allowed = STATUS_TRANSITIONS.get(old_status, set())
    if new_status not in PETITION_STATUSES or new_status not in allowed:
        raise InvalidStateError(
            ErrorCode.INVALID_STATUS_TRANSITION,
            f"Cannot change petition status from {old_status} to {new_status}.",
        )

    petition.status = new_status
    record_event(
        s,
        actor=actor,
        action="petition.status_change",
        entity_type="Petition",
        entity_id=str(petition.id),
        reason=reason,
        metadata={"from": old_status, "to": new_status},
    )
    s.flush()
    return petition


def list_petitions(
    s: Session,
    *,
    status: str | None = None,
    category: str | None = None,
    user_id: int | None = None,
    sort: str = "latest",
    page: int = 1,
    per_page: int = 20,
) -> tuple[Sequence[Petition], int]:
    """Paginated petition listing. Returns (items, total)."""
    q = select(Petition)
    if status:
        q = q.where(Petition.status == status)
    if category:
        q = q.where(Petition.category == category)
    if user_id is not None:
        q = q.where(Petition.user_id == user_id)

    total = s.scalar(select(func.count()).select_from(q.subquery())) or 0

    if sort == "agreements":
        q = q.order_by(Petition.agree_count.desc(), Petition.created_at.desc(), Petition.id.desc())
    else:
        q = q.order_by(Petition.created_at.desc(), Petition.id.desc())
    items = s.scalars(q.offset((page - 1) * per_page).limit(per_page)).all()
    return items, total


def list_reported_petitions(s: Session, *, min_reports: int = 1) -> list[tuple[Petition, int]]:
    """Moderation queue: petitions with at least `min_reports` reports, most reported first."""
    report_count = func.count(Report.id).label("report_count")
    rows = s.execute(
        select(Petition, report_count)
        .join(Report, Report.petition_id == Petition.id)
        .group_by(Petition.id)
        .having(func.count(Report.id) >= min_reports)
        .order_by(report_count.desc(), Petition.id.asc())
    ).all()
    return [(p, int(n)) for p, n in rows]


def delete_user_agreements(s: Session, user_id: int) -> int:
    """
    Remove a user's agreements and take them off the petitions' counters.
    Used when a user withdraws, before the user row is deleted.
    """
    agreed = select(Agreement.petition_id).where(Agreement.user_id == user_id)
    s.execute(
        update(Petition)
        .where(Petition.id.in_(agreed))
        .values(agree_count=Petition.agree_count - 1)
        .execution_options(synchronize_session=False)
    )
    result = s.execute(delete(Agreement).where(Agreement.user_id == user_id))
    return result.rowcount or 0


def petition_to_dict(p: Petition) -> dict[str, Any]:
    return {
        "id": p.id,
        "user_id": p.user_id,
        "title": p.title,
        "category": p.category,
        "content": p.content,
        "status": p.status,
        "view_count": p.view_count,
        "agree_count": p.agree_count,
        "created_at": isoformat(p.created_at),
        "links": [link.url for link in p.links],
    }
