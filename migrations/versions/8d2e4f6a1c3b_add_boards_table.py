"""add boards table for administrator announcements

Revision ID: 8d2e4f6a1c3b
Revises: 3a7c9e1b2d4f
Create Date: 2026-10-06 16:40:09.552871

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8d2e4f6a1c3b'
down_revision: Union[str, Sequence[str], None] = '3a7c9e1b2d4f'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    if "boards" in set(inspector.get_table_names()):
        return
    op.create_table(
        "boards",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("board_type", sa.String(32), nullable=False),
        sa.Column("writer", sa.String(128), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    )
    op.create_index("idx_boards_type_created", "boards", ["board_type", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_boards_type_created", table_name="boards")
    op.drop_table("boards")
