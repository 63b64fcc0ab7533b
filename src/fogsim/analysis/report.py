"""
Final report payload of a run.

Plain data only: formatting and persistence belong to the caller. A loop
average of None means the loop never completed.
"""

from __future__ import annotations
from dataclasses import dataclass, field

import numpy as np


@dataclass
class SimulationReport:
    end_time: float
    loop_averages: dict[str, float | None]
    energy: dict[str, float]          # joules per node name
    cost: dict[str, float] = field(default_factory=dict)
    loop_samples: dict[str, int] = field(default_factory=dict)
    delivered: dict[str, int] = field(default_factory=dict)   # tuples per actuator name
    emitted: int = 0
    processed: int = 0
    terminated: int = 0
    filtered: int = 0
    dropped: int = 0

    def total_energy(self, nodes: list[str] | None = None) -> float:
        """Sum of energy over all nodes, or over the named subset."""
        names = list(self.energy) if nodes is None else nodes
        return float(np.sum([self.energy[n] for n in names]))

    def energy_share(self) -> dict[str, float]:
        """Fraction of total energy consumed by each node."""
        values = np.array(list(self.energy.values()), dtype=np.float64)
        total = values.sum()
        if total <= 0:
            return {name: 0.0 for name in self.energy}
        return dict(zip(self.energy, (values / total).tolist()))

    def average(self, loop_id: str) -> float | None:
        return self.loop_averages.get(loop_id)
