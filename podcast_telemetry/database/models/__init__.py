"""SQLAlchemy models: import all to register with Base.metadata."""

from .episode import EpisodeModel
from .views import EpisodeViewModel

__all__ = ["EpisodeModel", "EpisodeViewModel"]
