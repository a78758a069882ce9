from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .catalog import HEALTHY_PERCENT, building_icon, health_color
from .models import (
    BuildingClear,
    BuildingDamage,
    BuildingRecord,
    BuildingRemove,
    GameEvent,
    PlayerPosition,
    PlayerRecord,
)
from .proximity import CLUSTER_DISTANCE, Cluster, Pos, cluster_positions


PLAYER_TIMEOUT_SEC = 10.0
PLAYER_SWEEP_INTERVAL_SEC = 2.0
BUILDING_REMOVE_TIMEOUT_SEC = 3 * 60
BUILDING_SWEEP_INTERVAL_SEC = 5.0


@dataclass
class Marker:
    kind: str  # "player", "cluster" or "building"
    x: float
    z: float
    label: str
    icon: Optional[str] = None
    border: Optional[str] = None
    count: int = 1


class ClientReconciler:
    """Viewer-side picture of the map built from the event stream.

    Players and buildings are tracked separately and age out on their own
    timers: players disappear shortly after sightings stop, buildings only
    once repaired and quiet. Clusters are rebuilt whenever the player set
    changes.

    All methods are expected to run on one event loop; they never await, so
    applying an event and either sweep cannot interleave.
    """

    def __init__(
        self,
        *,
        player_timeout: float = PLAYER_TIMEOUT_SEC,
        building_timeout: float = BUILDING_REMOVE_TIMEOUT_SEC,
        healthy_percent: int = HEALTHY_PERCENT,
        cluster_distance: float = CLUSTER_DISTANCE,
        on_change: Optional[Callable[["ClientReconciler"], None]] = None,
    ):
        self.player_timeout = player_timeout
        self.building_timeout = building_timeout
        self.healthy_percent = healthy_percent
        self.cluster_distance = cluster_distance
        self.on_change = on_change
        self.players: Dict[str, PlayerRecord] = {}
        self.buildings: Dict[str, BuildingRecord] = {}
        self.clusters: List[Cluster[str]] = []

    def apply(self, event: GameEvent, now: float) -> None:
        if isinstance(event, PlayerPosition):
            prev = self.players.get(event.name)
            last_seen = now if prev is None else max(prev.last_seen, now)
            self.players[event.name] = PlayerRecord(event.name, event.x, event.z, event.y, last_seen)
            self._players_changed()
        elif isinstance(event, BuildingDamage):
            key = event.coords.key
            prev_b = self.buildings.get(key)
            last_seen = now if prev_b is None else max(prev_b.last_seen, now)
            self.buildings[key] = BuildingRecord(event.building_type, event.percent, event.coords, last_seen)
            self._changed()
        elif isinstance(event, BuildingRemove):
            if self.buildings.pop(event.coords.key, None) is not None:
                self._changed()
        elif isinstance(event, BuildingClear):
            if self.buildings:
                self.buildings.clear()
                self._changed()

    def sweep_players(self, now: float) -> List[str]:
        stale = [name for name, p in self.players.items() if now - p.last_seen > self.player_timeout]
        for name in stale:
            del self.players[name]
        if stale:
            self._players_changed()
        return stale

    def sweep_buildings(self, now: float) -> List[str]:
        # Same rule as the server store, for removals this viewer never received
        stale = [
            key for key, b in self.buildings.items()
            if b.percent >= self.healthy_percent and now - b.last_seen > self.building_timeout
        ]
        for key in stale:
            del self.buildings[key]
        if stale:
            self._changed()
        return stale

    def _players_changed(self) -> None:
        points = {name: Pos(p.x, p.z) for name, p in self.players.items()}
        self.clusters = cluster_positions(points, self.cluster_distance)
        self._changed()

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    def markers(self) -> List[Marker]:
        out: List[Marker] = []
        for c in self.clusters:
            if c.size == 1:
                out.append(Marker("player", c.anchor.x, c.anchor.z, c.members[0]))
            else:
                out.append(Marker("cluster", c.anchor.x, c.anchor.z, ", ".join(c.members), count=c.size))
        for b in self.buildings.values():
            out.append(Marker(
                "building",
                b.coords.x,
                b.coords.z,
                f"{b.building_type} ({b.percent}%)",
                icon=building_icon(b.building_type),
                border=health_color(b.percent),
            ))
        return out
