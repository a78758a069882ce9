from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Tuple

from pydantic import BaseModel, ValidationError


class MapBounds(BaseModel):
    """Game coordinates of the uploaded map image's corners, as ``[x, z]``."""

    top_left: Tuple[float, float]
    bottom_right: Tuple[float, float]


def load_bounds(path: str | os.PathLike) -> Optional[MapBounds]:
    p = Path(path)
    if not p.exists():
        return None
    try:
        return MapBounds.model_validate_json(p.read_bytes())
    except (OSError, ValidationError):
        return None


def save_bounds(path: str | os.PathLike, bounds: MapBounds) -> None:
    """Write ``bounds`` so readers only ever see the old or the new file."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    staged = p.with_name(f".{p.name}.{os.getpid()}.tmp")
    try:
        staged.write_text(bounds.model_dump_json(indent=2), encoding="utf-8")
        os.replace(staged, p)
    finally:
        staged.unlink(missing_ok=True)
