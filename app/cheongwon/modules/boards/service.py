from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select

from app.cheongwon.audit import record_event
from app.cheongwon.constants import BOARD_TYPES
from app.cheongwon.errors import ErrorCode, ResourceNotFoundError
from app.cheongwon.utils import isoformat, text_field, utcnow

from .models import Board

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.orm import Session

    from app.cheongwon.models import User


def validate_board_payload(payload: dict) -> list[str]:
    """Validate board post payload. Returns list of errors."""
    errors = []
    board_type = text_field(payload, "board_type").upper()
    if board_type not in BOARD_TYPES:
        errors.append(f"Invalid board_type. Must be one of: {', '.join(BOARD_TYPES)}")
    if not text_field(payload, "title"):
        errors.append("Title is required.")
    if not text_field(payload, "content"):
        errors.append("Content is required.")
    if len(text_field(payload, "writer")) > 128:
        errors.append("Writer must be at most 128 characters.")
    return errors


def create_board(s: "Session", payload: dict, *, user: "User") -> Board:
    """Create an announcement. Writer defaults to the author's email."""
    board = Board(
        board_type=text_field(payload, "board_type").upper(),
        writer=text_field(payload, "writer") or user.email,
        title=text_field(payload, "title"),
        content=text_field(payload, "content"),
        created_at=utcnow(),
        created_by_user_id=user.id,
    )
    s.add(board)
    s.flush()

    record_event(
        s,
        actor=user,
        action="board.create",
        entity_type="Board",
        entity_id=str(board.id),
        metadata={"board_type": board.board_type, "title": board.title},
    )
    return board


def get_board(s: "Session", board_id: int) -> Board:
    board = s.get(Board, board_id)
    if not board:
        raise ResourceNotFoundError(ErrorCode.BOARD_NOT_FOUND)
    return board


def list_boards(
    s: "Session",
    *,
    board_type: str | None = None,
    page: int = 1,
    per_page: int = 20,
) -> tuple["Sequence[Board]", int]:
    q = select(Board)
    if board_type:
        q = q.where(Board.board_type == board_type.strip().upper())
    total = s.scalar(select(func.count()).select_from(q.subquery())) or 0
    items = s.scalars(
        q.order_by(Board.created_at.desc(), Board.id.desc()).offset((page - 1) * per_page).limit(per_page)
    ).all()
    return items, total


def delete_board(s: "Session", board_id: int, *, user: "User") -> None:
    board = get_board(s, board_id)
    record_event(
        s,
        actor=user,
        action="board.delete",
        entity_type="Board",
        entity_id=str(board.id),
        metadata={"title": board.title},
    )
    s.delete(board)
    s.flush()


def board_to_dict(b: Board) -> dict[str, Any]:
    return {
        "id": b.id,
        "board_type": b.board_type,
        "writer": b.writer,
        "title": b.title,
        "content": b.content,
        "created_at": isoformat(b.created_at),
    }
