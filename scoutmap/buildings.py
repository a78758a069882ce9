from __future__ import annotations

from typing import Dict, Iterator, List, Optional

from .catalog import HEALTHY_PERCENT
from .models import BuildingDamage, BuildingRecord, BuildingRemove


BUILDING_DORMANCY_SEC = 3 * 60


class BuildingStateStore:
    """Last known damage state per building, keyed by ``x_y_z``.

    Records below the healthy threshold are kept until the watch target
    changes. Healthy ones are dropped once they go quiet for the dormancy
    window, each drop producing a ``BuildingRemove`` for the viewers.
    """

    def __init__(self, dormancy_sec: float = BUILDING_DORMANCY_SEC, healthy_percent: int = HEALTHY_PERCENT):
        self.dormancy_sec = dormancy_sec
        self.healthy_percent = healthy_percent
        self._records: Dict[str, BuildingRecord] = {}

    def upsert(self, event: BuildingDamage, now: float) -> BuildingRecord:
        key = event.coords.key
        prev = self._records.get(key)
        last_seen = now if prev is None else max(prev.last_seen, now)
        rec = BuildingRecord(event.building_type, event.percent, event.coords, last_seen)
        self._records[key] = rec
        return rec

    def sweep(self, now: float) -> List[BuildingRemove]:
        removed: List[BuildingRemove] = []
        for key, rec in list(self._records.items()):
            if rec.percent >= self.healthy_percent and now - rec.last_seen > self.dormancy_sec:
                del self._records[key]
                removed.append(BuildingRemove(rec.coords))
        return removed

    def clear(self) -> None:
        self._records.clear()

    def get(self, key: str) -> Optional[BuildingRecord]:
        return self._records.get(key)

    def records(self) -> Iterator[BuildingRecord]:
        return iter(list(self._records.values()))

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len(self._records)
