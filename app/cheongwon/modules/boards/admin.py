from __future__ import annotations

from flask import Blueprint, g

from app.cheongwon.db import db_session
from app.cheongwon.errors import RequestValidationError
from app.cheongwon.modules.boards.service import board_to_dict, create_board, delete_board, validate_board_payload
from app.cheongwon.rbac import require_admin
from app.cheongwon.utils import json_payload, ok

bp = Blueprint("boards_admin", __name__)


@bp.post("/boards")
@require_admin
def boards_new():
    payload = json_payload()
    errors = validate_board_payload(payload)
    if errors:
        raise RequestValidationError(errors)

    s = db_session()
    board = create_board(s, payload, user=g.current_user)
    s.commit()
    return ok(board_to_dict(board), 201)


@bp.delete("/boards/<int:board_id>")
@require_admin
def boards_delete(board_id: int):
    s = db_session()
    delete_board(s, board_id, user=g.current_user)
    s.commit()
    return ok({"id": board_id})
