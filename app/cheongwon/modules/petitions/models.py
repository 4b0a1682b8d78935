from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.cheongwon.constants import PETITION_STATUS_ONGOING
from app.cheongwon.models import Base
from app.cheongwon.utils import utcnow


class Petition(Base):
    __tablename__ = "petitions"
    __table_args__ = (
        Index("idx_petitions_user_created", "user_id", "created_at"),
        Index("idx_petitions_status", "status"),
        Index("idx_petitions_category", "category"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=PETITION_STATUS_ONGOING)  # ONGOING, CLOSED

    # Counters only ever change through single UPDATE ... SET col = col + n statements
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    agree_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    links: Mapped[list["Link"]] = relationship(
        "Link",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Link.id",
        lazy="selectin",
    )


class Link(Base):
    __tablename__ = "links"
    __table_args__ = (Index("idx_links_petition", "petition_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    petition_id: Mapped[int] = mapped_column(ForeignKey("petitions.id", ondelete="CASCADE"), nullable=False)
    url: Mapped[str] = mapped_column(String(2048), nullable=False)


class Agreement(Base):
    __tablename__ = "agreements"
    __table_args__ = (
        UniqueConstraint("user_id", "petition_id", name="uq_agreements_user_petition"),
        Index("idx_agreements_petition", "petition_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    petition_id: Mapped[int] = mapped_column(ForeignKey("petitions.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)


class Report(Base):
    __tablename__ = "reports"
    __table_args__ = (
        UniqueConstraint("user_id", "petition_id", name="uq_reports_user_petition"),
        Index("idx_reports_petition", "petition_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    petition_id: Mapped[int] = mapped_column(ForeignKey("petitions.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
