"""Load ``.env`` style files into the process environment."""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Tuple

from dotenv import dotenv_values

ENV_FILE_VAR = "PODCAST_ENV_FILE"
ENV_NAME_VAR = "PODCAST_ENV"

PROJECT_ROOT = Path(__file__).resolve().parents[1]

_loaded: Tuple[Path, ...] | None = None


def dotenv_candidates(root: Path = PROJECT_ROOT) -> List[Path]:
    """Return dotenv files to consider, most important first.

    Paths listed in ``PODCAST_ENV_FILE`` (``os.pathsep`` separated) come
    first, then ``.env``, ``.env.<PODCAST_ENV>`` and ``.env.local`` in the
    project root.
    """

    candidates: List[Path] = [
        Path(item).expanduser().resolve()
        for item in os.environ.get(ENV_FILE_VAR, "").split(os.pathsep)
        if item.strip()
    ]
    names = [".env"]
    env_name = os.environ.get(ENV_NAME_VAR, "").strip()
    if env_name:
        names.append(f".env.{env_name}")
    names.append(".env.local")
    candidates.extend((root / name).resolve() for name in names)

    unique: List[Path] = []
    for path in candidates:
        if path not in unique:
            unique.append(path)
    return unique


def load_environment(*, force: bool = False) -> Tuple[Path, ...]:
    """Apply dotenv files without overriding variables that are already set.

    The first file defining a variable wins. Files are read once per process
    unless ``force`` is given.
    """

    global _loaded
    if _loaded is not None and not force:
        return _loaded

    applied: List[Path] = []
    for path in dotenv_candidates():
        if not path.is_file():
            continue
        values = dotenv_values(path)
        for key, value in values.items():
            if value is not None and key not in os.environ:
                os.environ[key] = value
        applied.append(path)
    _loaded = tuple(applied)
    return _loaded


__all__ = ["dotenv_candidates", "load_environment"]
