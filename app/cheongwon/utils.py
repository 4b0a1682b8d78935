from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from flask import request

from app.cheongwon.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.cheongwon.errors import RequestValidationError


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime(timezone=False) columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def json_payload() -> dict[str, Any]:
    """Request body as a dict; form posts are accepted too."""
    if request.is_json:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise RequestValidationError(["Request body must be a JSON object."])
        return data
    return request.form.to_dict()


def text_field(payload: dict[str, Any], key: str) -> str:
    """Stripped string value of `key`. Numbers, lists and objects read as blank."""
    value = payload.get(key)
    return value.strip() if isinstance(value, str) else ""


def parse_page_args() -> tuple[int, int]:
    """Read ?page=&per_page= with sane bounds."""
    errors: list[str] = []
    try:
        page = int(request.args.get("page") or 1)
    except ValueError:
        errors.append("page must be a number.")
        page = 1
    try:
        per_page = int(request.args.get("per_page") or DEFAULT_PAGE_SIZE)
    except ValueError:
        errors.append("per_page must be a number.")
        per_page = DEFAULT_PAGE_SIZE
    if errors:
        raise RequestValidationError(errors)
    return max(page, 1), min(max(per_page, 1), MAX_PAGE_SIZE)


def ok(data: Any = None, status: int = 200):
    return {"ok": True, "data": data}, status


def page_envelope(items: list[dict[str, Any]], *, total: int, page: int, per_page: int) -> dict[str, Any]:
    return {"items": items, "total": total, "page": page, "per_page": per_page}
