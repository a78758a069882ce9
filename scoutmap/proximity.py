from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Generic, List, TypeVar


CLUSTER_DISTANCE = 15.0

K = TypeVar("K")


@dataclass
class Pos:
    x: float
    z: float


def dist2(a: Pos, b: Pos) -> float:
    dx = a.x - b.x
    dz = a.z - b.z
    return dx * dx + dz * dz


@dataclass
class Cluster(Generic[K]):
    members: List[K]
    anchor: Pos

    @property
    def size(self) -> int:
        return len(self.members)


def cluster_positions(points: Dict[K, Pos], radius: float = CLUSTER_DISTANCE) -> List[Cluster[K]]:
    # Seeded grouping: each unassigned point starts a cluster and takes every other
    # unassigned point within radius of itself. Members are only checked against the
    # seed, never against each other, so the result depends on iteration order.
    r2 = radius * radius
    keys = list(points)
    assigned: set = set()
    clusters: List[Cluster[K]] = []
    for i, seed in enumerate(keys):
        if seed in assigned:
            continue
        assigned.add(seed)
        ref = points[seed]
        members = [seed]
        for other in keys[i + 1:]:
            if other in assigned:
                continue
            if dist2(points[other], ref) <= r2:
                members.append(other)
                assigned.add(other)
        clusters.append(Cluster(members, ref))
    return clusters
