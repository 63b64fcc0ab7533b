"""
Application graph: modules, typed edges, selectivity gates and loops.

An application is a directed graph of stages. Sensors are sources, actuators
are sinks and modules sit in between. Every edge carries one tuple type, so
a tuple type names an edge unambiguously within an application.

Selectivity gates decide, per (incoming type, outgoing type) pair at a
module, whether processing one incoming tuple emits a tuple on the outgoing
edge. Loops are named stage sequences used only to measure latency.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol, Sequence, TYPE_CHECKING
import logging

import numpy as np

if TYPE_CHECKING:
    from fogsim.core.router import Tuple

from fogsim.core.errors import (
    ConfigurationError,
    DuplicateModule,
    DuplicateSelectivity,
    UnknownStage,
)

logger = logging.getLogger(__name__)


class Direction(Enum):
    UP = "up"        # Toward higher tiers (the cloud)
    DOWN = "down"    # Toward actuators


class EdgeKind(Enum):
    SENSOR = "sensor"      # sensor -> module
    MODULE = "module"      # module -> module
    ACTUATOR = "actuator"  # module -> actuator


@dataclass(frozen=True)
class Module:
    """A processing stage. weight is the MIPS it reserves on its host."""

    name: str
    weight: float
    ram: float = 0.0


@dataclass(frozen=True)
class AppEdge:
    """Directed relation between two stages carrying one tuple type."""

    src: str
    dst: str
    cpu_length: float   # Million instructions per tuple
    net_size: float     # Bytes per tuple
    tuple_type: str
    direction: Direction
    kind: EdgeKind


# ═══════════════════════════════════════════════════════════════
# SELECTIVITY GATES
# ═══════════════════════════════════════════════════════════════


class Selectivity(Protocol):
    """Decides whether one input tuple emits a tuple on the gated edge."""

    def select(self, tup: "Tuple", rng: np.random.Generator) -> bool:
        ...


@dataclass(frozen=True)
class FractionalSelectivity:
    """Bernoulli gate: emit with a fixed probability."""

    probability: float

    def __post_init__(self):
        if not 0.0 <= self.probability <= 1.0:
            raise ValueError(f"Selectivity probability must be in [0, 1], got {self.probability}")

    def select(self, tup: "Tuple", rng: np.random.Generator) -> bool:
        # Always draws, also for 0.0 and 1.0
        return bool(rng.random() < self.probability)


@dataclass(frozen=True)
class PredicateSelectivity:
    """Deterministic gate over the input tuple, e.g. a payload threshold."""

    predicate: Callable[["Tuple"], bool]

    def select(self, tup: "Tuple", rng: np.random.Generator) -> bool:
        return bool(self.predicate(tup))


@dataclass(frozen=True)
class AppLoop:
    """Named stage sequence along which end-to-end latency is measured."""

    loop_id: str
    stages: tuple[str, ...]

    @property
    def start(self) -> str:
        return self.stages[0]

    @property
    def end(self) -> str:
        return self.stages[-1]


# ═══════════════════════════════════════════════════════════════
# APPLICATION
# ═══════════════════════════════════════════════════════════════


class Application:
    """
    Builder and read-only view of one application graph.

    Every builder call validates eagerly and raises a ConfigurationError
    subclass naming the offending stage or edge.
    """

    def __init__(self, app_id: str):
        self.app_id = app_id
        self.modules: dict[str, Module] = {}
        self.sensors: set[str] = set()
        self.actuators: set[str] = set()
        self.edges: list[AppEdge] = []
        self.loops: dict[str, AppLoop] = {}
        self._edges_by_type: dict[str, AppEdge] = {}
        self._gates: dict[tuple[str, str], Selectivity] = {}

    def add_module(self, name: str, weight: float, ram: float = 0.0) -> Module:
        if name in self.modules:
            raise DuplicateModule(self.app_id, name)
        if name in self.sensors or name in self.actuators:
            raise ConfigurationError(
                f"Application '{self.app_id}': '{name}' is already a sensor or actuator"
            )
        if weight < 0 or ram < 0:
            raise ConfigurationError(
                f"Application '{self.app_id}': module '{name}' needs non-negative weight and ram"
            )
        module = Module(name, float(weight), float(ram))
        self.modules[name] = module
        return module

    def add_sensor(self, name: str) -> None:
        """Declare a sensor stage. Sensor tuples are typed by their edge."""
        self._check_free_name(name)
        self.sensors.add(name)

    def add_actuator(self, name: str) -> None:
        self._check_free_name(name)
        self.actuators.add(name)

    def add_edge(
        self,
        src: str,
        dst: str,
        cpu_length: float,
        net_size: float,
        tuple_type: str,
        direction: Direction = Direction.UP,
    ) -> AppEdge:
        for stage in (src, dst):
            if not self.has_stage(stage):
                raise UnknownStage(self.app_id, stage)
        if src in self.actuators:
            raise ConfigurationError(f"Application '{self.app_id}': actuator '{src}' cannot emit")
        if dst in self.sensors:
            raise ConfigurationError(f"Application '{self.app_id}': sensor '{dst}' cannot receive")
        if src in self.sensors and dst in self.actuators:
            raise ConfigurationError(
                f"Application '{self.app_id}': edge {src} -> {dst} bypasses every module"
            )
        if tuple_type in self._edges_by_type:
            raise ConfigurationError(
                f"Application '{self.app_id}': tuple type '{tuple_type}' already names an edge"
            )
        if cpu_length < 0 or net_size < 0:
            raise ConfigurationError(
                f"Application '{self.app_id}': edge '{tuple_type}' needs non-negative costs"
            )

        if src in self.sensors:
            kind = EdgeKind.SENSOR
        elif dst in self.actuators:
            kind = EdgeKind.ACTUATOR
        else:
            kind = EdgeKind.MODULE

        edge = AppEdge(src, dst, float(cpu_length), float(net_size), tuple_type, direction, kind)
        self.edges.append(edge)
        self._edges_by_type[tuple_type] = edge
        return edge

    def add_selectivity(
        self,
        in_type: str,
        out_type: str,
        selectivity: Selectivity | Callable[["Tuple"], bool],
        replace: bool = False,
    ) -> None:
        """
        Gate emission of out_type tuples when a module processes in_type tuples.

        A plain callable is wrapped as a PredicateSelectivity. Registering a
        second gate for the same pair fails unless replace=True.
        """
        in_edge = self.edge(in_type)
        out_edge = self.edge(out_type)
        if in_edge.dst != out_edge.src:
            raise ConfigurationError(
                f"Application '{self.app_id}': '{in_type}' ends at '{in_edge.dst}' "
                f"but '{out_type}' starts at '{out_edge.src}'"
            )
        key = (in_type, out_type)
        if key in self._gates and not replace:
            raise DuplicateSelectivity(self.app_id, in_type, out_type)
        if not hasattr(selectivity, "select"):
            if not callable(selectivity):
                raise ConfigurationError(
                    f"Application '{self.app_id}': gate {in_type} -> {out_type} is not a selectivity"
                )
            selectivity = PredicateSelectivity(selectivity)
        self._gates[key] = selectivity

    def define_loop(self, stages: Sequence[str], name: str | None = None) -> AppLoop:
        stages = tuple(stages)
        if len(stages) < 2:
            raise ConfigurationError(f"Application '{self.app_id}': a loop needs at least two stages")
        for stage in stages:
            if not self.has_stage(stage):
                raise UnknownStage(self.app_id, stage)
        loop_id = name or "->".join(stages)
        if loop_id in self.loops:
            raise ConfigurationError(f"Application '{self.app_id}': loop '{loop_id}' already defined")
        loop = AppLoop(loop_id, stages)
        self.loops[loop_id] = loop
        return loop

    # ═══════════════════════════════════════════════════════════════
    # QUERIES
    # ═══════════════════════════════════════════════════════════════

    def has_stage(self, name: str) -> bool:
        return name in self.modules or name in self.sensors or name in self.actuators

    def edge(self, tuple_type: str) -> AppEdge:
        if tuple_type not in self._edges_by_type:
            raise ConfigurationError(
                f"Application '{self.app_id}' has no edge carrying '{tuple_type}'"
            )
        return self._edges_by_type[tuple_type]

    def outgoing(self, stage: str) -> list[AppEdge]:
        return [e for e in self.edges if e.src == stage]

    def incoming(self, stage: str) -> list[AppEdge]:
        return [e for e in self.edges if e.dst == stage]

    def gate(self, in_type: str, out_type: str) -> Selectivity | None:
        return self._gates.get((in_type, out_type))

    def module_order(self) -> list[str]:
        """
        Modules in data-flow order (feeders before consumers).

        Modules caught in a cycle keep their declaration order after the
        acyclic part.
        """
        indegree = {
            name: sum(1 for e in self.incoming(name) if e.src in self.modules)
            for name in self.modules
        }
        ready = [name for name in self.modules if indegree[name] == 0]
        order: list[str] = []
        while ready:
            name = ready.pop(0)
            order.append(name)
            for edge in self.outgoing(name):
                if edge.dst in indegree:
                    indegree[edge.dst] -= 1
                    if indegree[edge.dst] == 0:
                        ready.append(edge.dst)
        order.extend(name for name in self.modules if name not in order)
        return order

    def _check_free_name(self, name: str) -> None:
        if self.has_stage(name):
            raise ConfigurationError(f"Application '{self.app_id}': stage '{name}' already declared")
