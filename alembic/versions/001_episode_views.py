"""Episodes and per-day episode view rows.

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── 1. Episodes ──────────────────────────────────────────────
    op.create_table(
        "episodes",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("audio_url", sa.String(1024), nullable=True),
        sa.Column("category_id", sa.String(255), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_episodes_published", "episodes", [sa.text("published_at DESC")])

    # ── 2. Episode Views ─────────────────────────────────────────
    op.create_table(
        "episode_views",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("episode_id", sa.String(255), nullable=False),
        sa.Column("viewed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=True),
        sa.Column("minutes_played", sa.Float, nullable=False, server_default="0"),
    )
    op.create_index("idx_episode_views_episode_viewed", "episode_views", ["episode_id", "viewed_at"])


def downgrade() -> None:
    op.drop_table("episode_views")
    op.drop_table("episodes")
