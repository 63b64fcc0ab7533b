"""
Tuple router and processing simulator: the event-driven core.

Per-tuple life cycle:

    CREATED -> IN_TRANSIT -> QUEUED -> PROCESSING -> (children CREATED | TERMINATED)

- A sensor tick creates a tuple and delivers it to the sensor's gateway
  after the sensor latency.
- Tuples travel hop by hop along the tree path to the node hosting their
  destination module (or the gateway of the chosen actuator). Each hop is
  one TUPLE_ARRIVAL event; per-link contention is handled by LinkTable.
- A node has a single processor. Queued tuples are served in arrival
  order, each taking cpu_length / mips.
- On PROCESS_COMPLETE every outgoing edge of the module is evaluated
  through its selectivity gate and each passing gate emits a child tuple.
- Reaching an actuator terminates the tuple.

Loop latency rides on the tuples themselves: each tuple carries, per loop
it is travelling along, the loop start time and the loop index of its
destination stage.
"""

from __future__ import annotations
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from itertools import count
from typing import TYPE_CHECKING
import logging

if TYPE_CHECKING:
    from fogsim.core.accounting import EnergyAccountant, LatencyAccountant
    from fogsim.core.context import SimulationContext
    from fogsim.core.devices import Actuator, Sensor
    from fogsim.core.placement import Placement
    from fogsim.core.topology import Node

from fogsim.core.application import AppEdge, Application, Direction
from fogsim.core.errors import RoutingError, UnplacedModule
from fogsim.core.events import Event, EventKind
from fogsim.core.links import LinkTable
from fogsim.core.mobility import link_latency

logger = logging.getLogger(__name__)

MS_PER_SECOND = 1000.0


class TupleState(Enum):
    CREATED = "created"
    IN_TRANSIT = "in_transit"
    QUEUED = "queued"
    PROCESSING = "processing"
    TERMINATED = "terminated"
    DROPPED = "dropped"


@dataclass
class Tuple:
    """Unit of work flowing through an application graph."""

    tuple_id: int
    app_id: str
    tuple_type: str
    src: str              # Stage that created the tuple
    dst: str              # Stage that consumes it
    cpu_length: float     # Million instructions
    net_size: float       # Bytes
    direction: Direction
    created_at: float
    payload: dict = field(default_factory=dict)
    parent_id: int | None = None
    state: TupleState = TupleState.CREATED

    # routing
    path: list[int] = field(default_factory=list)
    hop: int = 0
    actuator_id: int | None = None
    at_actuator: bool = False

    # loop_id -> (loop start time, loop index of dst)
    loop_marks: dict[str, tuple[float, int]] = field(default_factory=dict)


class TupleRouter:
    """
    Owns node queues and link state during a run.

    The router never dispatches events itself; it schedules them on the
    context queue and the simulation calls back into the on_* handlers.
    """

    def __init__(
        self,
        context: "SimulationContext",
        energy: "EnergyAccountant",
        latency: "LatencyAccountant",
        propagation_ms_per_km: float = 0.0,
    ):
        self.context = context
        self.topology = context.topology
        self.queue = context.queue
        self.energy = energy
        self.latency = latency
        self.propagation_ms_per_km = propagation_ms_per_km
        self.links = LinkTable(self.topology)
        self.placements: dict[str, "Placement"] = {}
        self.stats: Counter = Counter()
        self._ids = count()

    def set_placement(self, placement: "Placement") -> None:
        self.placements[placement.app_id] = placement

    def reset(self) -> None:
        self.links.reset()
        self.stats.clear()
        self._ids = count()
        for node in self.topology.iter_nodes():
            node.reset_state()

    # ═══════════════════════════════════════════════════════════════
    # EVENT HANDLERS
    # ═══════════════════════════════════════════════════════════════

    def on_sensor_tick(self, sensor: "Sensor", now: float) -> None:
        """Emit one tuple from sensor and schedule its next tick."""
        if sensor.exhausted:
            return
        app = self.context.applications[sensor.app_id]
        edge = app.edge(sensor.tuple_type)
        payload = sensor.behaviour.build_payload(self.context.rng, sensor.emitted)
        sensor.emitted += 1

        tup = self._create(app, edge, now, payload, parent=None)
        try:
            tup.path = self._plan(app, tup, sensor.gateway_id)
        except RoutingError as err:
            self.drop(tup, err)
        else:
            tup.state = TupleState.IN_TRANSIT
            self.queue.schedule(Event(EventKind.TUPLE_ARRIVAL, sensor.gateway_id, tup), sensor.latency)

        if not sensor.exhausted:
            interval = sensor.behaviour.next_interval(self.context.rng)
            self.queue.schedule(Event(EventKind.SENSOR_TICK, sensor.sensor_id), interval)

    def on_tuple_arrival(self, node_id: int, tup: Tuple, now: float) -> None:
        """Forward the tuple one hop, or hand it to its module or actuator."""
        if tup.hop < len(tup.path) - 1:
            self._forward(tup, now)
            return

        if tup.actuator_id is not None:
            actuator = self.context.actuators[tup.actuator_id]
            if not tup.at_actuator:
                tup.at_actuator = True
                self.queue.schedule(Event(EventKind.TUPLE_ARRIVAL, node_id, tup), actuator.latency)
            else:
                self._terminate(tup, actuator, now)
            return

        node = self.topology.get(node_id)
        tup.state = TupleState.QUEUED
        node.queue.append(tup)
        if not node.busy:
            self._start_next(node, now)

    def on_process_complete(self, node_id: int, tup: Tuple, now: float) -> None:
        """Finish tup on node, emit downstream tuples, then serve the next one."""
        node = self.topology.get(node_id)
        app = self.context.applications[tup.app_id]
        self.stats["processed"] += 1
        self._close_loops(app, tup, tup.dst, now)

        for edge in app.outgoing(tup.dst):
            gate = app.gate(tup.tuple_type, edge.tuple_type)
            if gate is None or not gate.select(tup, self.context.rng):
                self.stats["filtered"] += 1
                continue
            child = self._create(app, edge, now, dict(tup.payload), parent=tup)
            self._dispatch(app, child, node_id)

        if node.queue:
            self._start_next(node, now)
        else:
            self.energy.observe(node, now)
            node.busy = False

    def drop(self, tup: Tuple, error: RoutingError) -> None:
        tup.state = TupleState.DROPPED
        self.stats["dropped"] += 1
        logger.warning("Dropped tuple %d (%s): %s", tup.tuple_id, tup.tuple_type, error)

    # ═══════════════════════════════════════════════════════════════
    # INTERNALS
    # ═══════════════════════════════════════════════════════════════

    def _create(self, app: Application, edge: AppEdge, now: float, payload: dict, parent: Tuple | None) -> Tuple:
        tup = Tuple(
            tuple_id=next(self._ids),
            app_id=app.app_id,
            tuple_type=edge.tuple_type,
            src=edge.src,
            dst=edge.dst,
            cpu_length=edge.cpu_length,
            net_size=edge.net_size,
            direction=edge.direction,
            created_at=now,
            payload=payload,
            parent_id=None if parent is None else parent.tuple_id,
        )
        self._open_loops(app, tup, parent, now)
        self.stats["emitted"] += 1
        return tup

    def _dispatch(self, app: Application, tup: Tuple, origin_id: int) -> None:
        """Plan a freshly emitted tuple's route and put it in transit at origin."""
        try:
            tup.path = self._plan(app, tup, origin_id)
        except RoutingError as err:
            self.drop(tup, err)
            return
        tup.state = TupleState.IN_TRANSIT
        self.queue.schedule(Event(EventKind.TUPLE_ARRIVAL, origin_id, tup), 0.0)

    def _plan(self, app: Application, tup: Tuple, origin_id: int) -> list[int]:
        if tup.dst in app.actuators:
            actuator = self._nearest_actuator(app, tup.dst, origin_id)
            if actuator is None:
                raise RoutingError(f"No '{tup.dst}' actuator attached for application '{app.app_id}'")
            tup.actuator_id = actuator.actuator_id
            target = actuator.gateway_id
        else:
            placement = self.placements.get(app.app_id)
            target = None if placement is None else placement.node_of(tup.dst)
            if target is None:
                raise UnplacedModule(app.app_id, tup.dst, tup.tuple_id, tup.tuple_type)
        return self.topology.route(origin_id, target)

    def _nearest_actuator(self, app: Application, actuator_type: str, origin_id: int) -> "Actuator | None":
        candidates = self.context.actuators_for(app.app_id, actuator_type)
        if not candidates:
            return None
        return min(candidates, key=lambda a: len(self.topology.route(origin_id, a.gateway_id)))

    def _forward(self, tup: Tuple, now: float) -> None:
        src_id = tup.path[tup.hop]
        dst_id = tup.path[tup.hop + 1]
        try:
            arrival = self.links.send(src_id, dst_id, tup.net_size, now, self._hop_latency(src_id, dst_id))
        except RoutingError as err:
            self.drop(tup, err)
            return
        tup.hop += 1
        self.queue.schedule(Event(EventKind.TUPLE_ARRIVAL, dst_id, tup), arrival - now)

    def _hop_latency(self, src_id: int, dst_id: int) -> float | None:
        """Distance-aware latency from the positions stored at the last mobility refresh."""
        if self.context.mobility is None:
            return None
        base = self.links.link(src_id, dst_id).latency
        return link_latency(
            base,
            self.topology.get(src_id).position,
            self.topology.get(dst_id).position,
            self.propagation_ms_per_km,
        )

    def _start_next(self, node: "Node", now: float) -> None:
        tup = node.queue.popleft()
        if node.mips <= 0:
            self.drop(tup, RoutingError(f"Node '{node.name}' has no processing capacity"))
            if node.queue:
                self._start_next(node, now)
            return
        if not node.busy:
            self.energy.observe(node, now)
            node.busy = True
        tup.state = TupleState.PROCESSING
        duration = tup.cpu_length / node.mips * MS_PER_SECOND
        self.queue.schedule(Event(EventKind.PROCESS_COMPLETE, node.node_id, tup), duration)

    def _terminate(self, tup: Tuple, actuator: "Actuator", now: float) -> None:
        tup.state = TupleState.TERMINATED
        actuator.delivered += 1
        self.stats["terminated"] += 1
        self._close_loops(self.context.applications[tup.app_id], tup, actuator.actuator_type, now)

    def _open_loops(self, app: Application, tup: Tuple, parent: Tuple | None, now: float) -> None:
        if parent is not None:
            for loop_id, (start, idx) in parent.loop_marks.items():
                stages = app.loops[loop_id].stages
                if idx + 1 < len(stages) and stages[idx] == tup.src and stages[idx + 1] == tup.dst:
                    tup.loop_marks[loop_id] = (start, idx + 1)
        for loop in app.loops.values():
            if loop.loop_id in tup.loop_marks:
                continue
            if loop.stages[0] == tup.src and loop.stages[1] == tup.dst:
                tup.loop_marks[loop.loop_id] = (now, 1)

    def _close_loops(self, app: Application, tup: Tuple, stage: str, now: float) -> None:
        for loop_id, (start, idx) in tup.loop_marks.items():
            stages = app.loops[loop_id].stages
            if idx == len(stages) - 1 and stages[idx] == stage:
                self.latency.record_loop_sample(loop_id, now - start)
