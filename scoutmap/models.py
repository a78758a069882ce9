from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Literal, TypedDict, Optional, Union


EventType = Literal[
    "player_position",
    "building_damage",
    "building_remove",
    "building_clear",
]


class CoordsDict(TypedDict):
    x: int
    y: int
    z: int


@dataclass(frozen=True)
class Coords:
    x: int
    y: int
    z: int

    @property
    def key(self) -> str:
        """Building identity: the three coordinates joined, e.g. ``10_5_20``."""
        return f"{self.x}_{self.y}_{self.z}"

    def to_dict(self) -> CoordsDict:
        return {"x": self.x, "y": self.y, "z": self.z}

    @classmethod
    def from_dict(cls, data: dict) -> "Coords":
        return cls(int(data["x"]), int(data["y"]), int(data["z"]))


@dataclass(frozen=True)
class PlayerPosition:
    name: str
    x: float
    z: float
    y: Optional[float] = None

    type: ClassVar[EventType] = "player_position"

    def to_dict(self) -> dict:
        out = {"type": self.type, "name": self.name, "x": self.x, "z": self.z}
        if self.y is not None:
            out["y"] = self.y
        return out


@dataclass(frozen=True)
class BuildingDamage:
    building_type: str
    percent: int
    coords: Coords
    timestamp: int = 0  # epoch ms when the line was read

    type: ClassVar[EventType] = "building_damage"

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "buildingType": self.building_type,
            "percent": self.percent,
            "coords": self.coords.to_dict(),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class BuildingRemove:
    coords: Coords

    type: ClassVar[EventType] = "building_remove"

    def to_dict(self) -> dict:
        return {"type": self.type, "coords": self.coords.to_dict()}


@dataclass(frozen=True)
class BuildingClear:
    type: ClassVar[EventType] = "building_clear"

    def to_dict(self) -> dict:
        return {"type": self.type}


GameEvent = Union[PlayerPosition, BuildingDamage, BuildingRemove, BuildingClear]


def event_from_dict(data: dict) -> Optional[GameEvent]:
    """Decode a wire message back into an event; unknown types give None."""
    t = data.get("type")
    if t == "player_position":
        y = data.get("y")
        return PlayerPosition(
            str(data["name"]),
            float(data["x"]),
            float(data["z"]),
            float(y) if y is not None else None,
        )
    if t == "building_damage":
        return BuildingDamage(
            str(data["buildingType"]),
            int(data["percent"]),
            Coords.from_dict(data["coords"]),
            int(data.get("timestamp") or 0),
        )
    if t == "building_remove":
        return BuildingRemove(Coords.from_dict(data["coords"]))
    if t == "building_clear":
        return BuildingClear()
    return None


@dataclass
class BuildingRecord:
    building_type: str
    percent: int
    coords: Coords
    last_seen: float


@dataclass
class PlayerRecord:
    name: str
    x: float
    z: float
    y: Optional[float] = None
    last_seen: float = 0.0
