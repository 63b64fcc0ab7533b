"""
Links: per-link store-and-forward bandwidth contention.

Every parent/child pair has two directed links. The uplink uses the child's
upstream bandwidth, the downlink the parent's downstream bandwidth, and both
share the child's uplink latency.

A link transmits one tuple at a time. A tuple handed to a busy link waits
until the link frees up, then occupies it for size / bandwidth; it arrives
after that plus the link latency. This is contention at tuple granularity,
not packet-level queueing.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fogsim.core.topology import Topology

from fogsim.core.errors import RoutingError

MS_PER_SECOND = 1000.0


@dataclass
class Link:
    """One directed link between adjacent nodes."""

    src_id: int
    dst_id: int
    bandwidth: float    # Bytes per second
    latency: float      # ms

    busy_until: float = 0.0
    bytes_sent: float = 0.0
    transfers: int = 0

    def transmission_time(self, size: float) -> float:
        """Time (ms) the link is occupied by a payload of size bytes."""
        if size <= 0:
            return 0.0
        if self.bandwidth <= 0:
            raise RoutingError(f"Link {self.src_id} -> {self.dst_id} has no bandwidth")
        return size / self.bandwidth * MS_PER_SECOND

    def queueing_delay(self, now: float) -> float:
        """How long a payload handed over at now waits for the link."""
        return max(0.0, self.busy_until - now)


class LinkTable:
    """
    Lazily built directed links over a topology.

    Only the router mutates link state, and only while dispatching an event.
    """

    def __init__(self, topology: "Topology"):
        self.topology = topology
        self._links: dict[tuple[int, int], Link] = {}

    def link(self, src_id: int, dst_id: int) -> Link:
        key = (src_id, dst_id)
        if key not in self._links:
            self._links[key] = self._build(src_id, dst_id)
        return self._links[key]

    def send(self, src_id: int, dst_id: int, size: float, now: float, latency: float | None = None) -> float:
        """
        Hand size bytes to the link at time now and return the arrival time.

        latency overrides the configured link latency (distance-aware links).
        """
        link = self.link(src_id, dst_id)
        tx = link.transmission_time(size)
        start = now + link.queueing_delay(now)
        link.busy_until = start + tx
        link.bytes_sent += size
        link.transfers += 1
        return start + tx + (link.latency if latency is None else latency)

    def links(self) -> list[Link]:
        return list(self._links.values())

    def reset(self) -> None:
        self._links.clear()

    def _build(self, src_id: int, dst_id: int) -> Link:
        src = self.topology.get(src_id)
        dst = self.topology.get(dst_id)
        if src.parent_id == dst_id:
            return Link(src_id, dst_id, src.up_bw, src.uplink_latency)
        if dst.parent_id == src_id:
            return Link(src_id, dst_id, src.down_bw, dst.uplink_latency)
        raise RoutingError(f"Nodes '{src.name}' and '{dst.name}' are not adjacent")
