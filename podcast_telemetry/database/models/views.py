"""Episode view model: one row per registered view, carrying minutes played."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from ..base import Base


class EpisodeViewModel(Base):
    """A view of an episode; the earliest row of a local day holds its minutes."""

    __tablename__ = "episode_views"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    episode_id: Mapped[str] = mapped_column(String(255), nullable=False)
    viewed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    user_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    minutes_played: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    __table_args__ = (
        Index("idx_episode_views_episode_viewed", "episode_id", "viewed_at"),
    )
