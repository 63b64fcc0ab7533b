"""
Mobility: node positions and distance-dependent link latency.

Trace generation (waypoints, random walks) lives outside the engine. The
engine only asks a MobilityProvider where a node is at a given simulated
time: every node once at setup, and mobile nodes again on each
MOBILITY_UPDATE. Links use the positions stored by the latest refresh, so
the refresh period sets the resolution of distance-aware latency. Without a
provider every link keeps its configured latency.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Protocol
import math

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class Location:
    """Geographic position. block is an optional zone/cell tag."""

    latitude: float
    longitude: float
    block: int = 0

    def distance_km(self, other: "Location") -> float:
        """Great-circle (haversine) distance to another location."""
        lat1, lon1 = math.radians(self.latitude), math.radians(self.longitude)
        lat2, lon2 = math.radians(other.latitude), math.radians(other.longitude)
        dlat = lat2 - lat1
        dlon = lon2 - lon1
        a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
        return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(min(1.0, a)))


class MobilityProvider(Protocol):
    """External collaborator that knows where nodes are."""

    def current_position(self, node_id: int, time_ms: float) -> Location | None:
        ...


@dataclass
class StaticPositions:
    """Provider for fixed positions, keyed by node id."""

    positions: dict[int, Location]

    def current_position(self, node_id: int, time_ms: float) -> Location | None:
        return self.positions.get(node_id)


def link_latency(
    base_latency: float,
    a: Location | None,
    b: Location | None,
    propagation_ms_per_km: float,
) -> float:
    """
    Latency of a link between two positioned endpoints.

    Falls back to base_latency when either endpoint has no position.
    """
    if a is None or b is None:
        return base_latency
    return base_latency + a.distance_km(b) * propagation_ms_per_km
