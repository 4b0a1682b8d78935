from __future__ import annotations

from flask import Blueprint, request

from app.cheongwon.constants import BOARD_TYPES
from app.cheongwon.db import db_session
from app.cheongwon.errors import RequestValidationError
from app.cheongwon.modules.boards.service import board_to_dict, get_board, list_boards
from app.cheongwon.utils import ok, page_envelope, parse_page_args

bp = Blueprint("boards", __name__)


@bp.get("/boards")
def boards_list():
    s = db_session()
    page, per_page = parse_page_args()
    board_type = (request.args.get("type") or "").strip().upper() or None
    if board_type and board_type not in BOARD_TYPES:
        raise RequestValidationError([f"Invalid type. Must be one of: {', '.join(BOARD_TYPES)}"])
    items, total = list_boards(s, board_type=board_type, page=page, per_page=per_page)
    return ok(page_envelope([board_to_dict(b) for b in items], total=total, page=page, per_page=per_page))


@bp.get("/boards/<int:board_id>")
def board_detail(board_id: int):
    s = db_session()
    return ok(board_to_dict(get_board(s, board_id)))
