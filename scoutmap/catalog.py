from __future__ import annotations

from typing import Dict, Tuple


BUILDING_TYPES: Tuple[str, ...] = (
    "Башня лучников",
    "Башня пушкарей",
    "Башня тесла",
    "Корабль лучников",
    "Корабль пушкарей",
    "Корабль тесла",
)

DEFAULT_BUILDING_TYPE = "Башня лучников"

BUILDING_ICONS: Dict[str, str] = {
    "Башня лучников": "/icons/archerIcon.png",
    "Башня пушкарей": "/icons/cannonIcon.png",
    "Башня тесла": "/icons/teslaIcon.png",
    "Корабль лучников": "/icons/archerShipIcon.png",
    "Корабль пушкарей": "/icons/cannonShipIcon.png",
}

HEALTHY_PERCENT = 60
DAMAGED_PERCENT = 20


def building_icon(building_type: str) -> str:
    # Unknown or icon-less types get the archer tower icon instead of failing
    return BUILDING_ICONS.get(building_type, BUILDING_ICONS[DEFAULT_BUILDING_TYPE])


def is_healthy(percent: int, threshold: int = HEALTHY_PERCENT) -> bool:
    return percent >= threshold


def health_color(percent: int) -> str:
    """Marker border colour: green when repaired, red when damaged, black when nearly destroyed."""
    if percent >= HEALTHY_PERCENT:
        return "green"
    if percent >= DAMAGED_PERCENT:
        return "red"
    return "black"
