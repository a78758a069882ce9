"""Turn raw client log lines into game events.

Two kinds of lines are recognised:

- scout reports: ``Разведчики засекли игрока <name> на координатах world,<x>,<y>,<z>``
- building damage: ``Здание <type> (<percent>%) на координатах world,<x>,<y>,<z> повреждено!``

Anything else yields ``None``. The player rule is tried first.
"""
from __future__ import annotations

import re
import time
from typing import Callable, Iterable, Optional, Protocol

from .catalog import BUILDING_TYPES
from .models import BuildingDamage, Coords, GameEvent, PlayerPosition


PLAYER_RE = re.compile(
    r"Разведчики засекли игрока ([^(\s\[]+)(?:\([^)]*\))?"
    r".*?координатах\s+(?:[^\s,]+,)?"
    r"(-?[0-9]+(?:\.[0-9]*)?),(-?[0-9]+(?:\.[0-9]*)?),(-?[0-9]+(?:\.[0-9]*)?)"
)


def building_pattern(types: Iterable[str]) -> re.Pattern:
    names = "|".join(re.escape(t) for t in types)
    return re.compile(
        r"Здание\s*[^A-Za-z0-9_\s]*\s*(" + names + r")\s*\(([0-9]{1,3})%\)"
        r"\s+на координатах\s+world,(-?[0-9]+),(-?[0-9]+),(-?[0-9]+) повреждено!"
    )


class EventExtractor(Protocol):
    def extract(self, line: str) -> Optional[GameEvent]:
        ...


class RegexEventExtractor:
    def __init__(
        self,
        building_types: Iterable[str] = BUILDING_TYPES,
        clock: Callable[[], float] = time.time,
    ):
        self._building_re = building_pattern(building_types)
        self._clock = clock

    def extract(self, line: str) -> Optional[GameEvent]:
        m = PLAYER_RE.search(line)
        if m:
            return PlayerPosition(
                name=m.group(1),
                x=float(m.group(2)),
                z=float(m.group(4)),
                y=float(m.group(3)),
            )
        m = self._building_re.search(line)
        if m:
            return BuildingDamage(
                building_type=m.group(1),
                percent=min(int(m.group(2)), 100),
                coords=Coords(int(m.group(3)), int(m.group(4)), int(m.group(5))),
                timestamp=int(self._clock() * 1000),
            )
        return None
