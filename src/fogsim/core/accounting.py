"""
Energy and latency accounting.

Energy is the time integral of each node's power draw. Instead of polling,
the router notifies the accountant at every busy/idle transition of a node
and the accountant accrues (now - last_sample) * power for the state the
node was in since the previous sample.

Loop latency is a running arithmetic mean per loop. A loop with no samples
has no average (None), not zero.
"""

from __future__ import annotations
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from fogsim.core.topology import Node, Topology

MS_PER_SECOND = 1000.0


class EnergyAccountant:
    """Integrates power draw (joules) and busy-CPU cost per node."""

    def __init__(self, topology: "Topology"):
        self.topology = topology

    def start(self, now: float = 0.0) -> None:
        for node in self.topology.iter_nodes():
            node.energy = 0.0
            node.cost = 0.0
            node.last_sample_time = now

    def observe(self, node: "Node", now: float) -> None:
        """
        Close the interval since the node's last sample.

        Must be called before the node's busy flag changes, so the interval
        is charged at the power of the state it was actually in.
        """
        dt = now - node.last_sample_time
        if dt > 0:
            utilization = 1.0 if node.busy else 0.0
            seconds = dt / MS_PER_SECOND
            node.energy += node.power_model.power(utilization) * seconds
            node.cost += node.rate_per_mips * node.mips * utilization * seconds
        node.last_sample_time = now

    def finalize(self, now: float) -> None:
        """Charge every node up to the end of the run."""
        for node in self.topology.iter_nodes():
            self.observe(node, now)

    def energy(self, node_id: int) -> float:
        return self.topology.get(node_id).energy

    def energy_by_node(self) -> dict[str, float]:
        return {n.name: n.energy for n in self.topology.iter_nodes()}

    def cost_by_node(self) -> dict[str, float]:
        return {n.name: n.cost for n in self.topology.iter_nodes()}


class LatencyAccountant:
    """
    Running average of end-to-end latency per loop.

    Individual samples are kept for samples() only when keep_samples is set;
    the average and the count never need them.
    """

    def __init__(self, keep_samples: bool = True):
        self.keep_samples = keep_samples
        self._average: dict[str, float] = {}
        self._counts: dict[str, int] = {}
        self._samples: dict[str, list[float]] = {}

    def register(self, loop_id: str) -> None:
        self._counts.setdefault(loop_id, 0)
        self._samples.setdefault(loop_id, [])

    def record_loop_sample(self, loop_id: str, latency_ms: float) -> None:
        self.register(loop_id)
        self._counts[loop_id] += 1
        if self.keep_samples:
            self._samples[loop_id].append(latency_ms)
        # Incremental mean: N identical samples average to exactly that value
        previous = self._average.get(loop_id, 0.0)
        self._average[loop_id] = previous + (latency_ms - previous) / self._counts[loop_id]

    def current_average(self, loop_id: str) -> float | None:
        return self._average.get(loop_id)

    def sample_count(self, loop_id: str) -> int:
        return self._counts.get(loop_id, 0)

    def samples(self, loop_id: str) -> np.ndarray:
        return np.asarray(self._samples.get(loop_id, ()), dtype=np.float64)

    def averages(self) -> dict[str, float | None]:
        return {loop_id: self._average.get(loop_id) for loop_id in self._counts}

    def reset(self) -> None:
        for loop_id in self._counts:
            self._counts[loop_id] = 0
            self._samples[loop_id] = []
        self._average.clear()
