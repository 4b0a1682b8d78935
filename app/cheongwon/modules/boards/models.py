from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.cheongwon.models import Base
from app.cheongwon.utils import utcnow


class Board(Base):
    __tablename__ = "boards"
    __table_args__ = (Index("idx_boards_type_created", "board_type", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    board_type: Mapped[str] = mapped_column(String(32), nullable=False)  # NOTICE, FAQ
    writer: Mapped[str] = mapped_column(String(128), nullable=False)  # display name shown on the post
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
