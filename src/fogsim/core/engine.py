"""
Simulation: setup checks, the central event switch and run control.

Setup (no events yet):
1. validate the topology
2. resolve a placement for every application (fail fast on PlacementError)
3. schedule each sensor's first tick, and mobility updates if a provider exists

Run: pop events in (time, insertion) order and dispatch each through
handle(), the single place where event kinds map to behaviour. The run ends
when the queue is empty, or at the STOP event injected for until_ms.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import logging

from fogsim.core.accounting import EnergyAccountant, LatencyAccountant
from fogsim.core.context import SimulationContext
from fogsim.core.errors import RoutingError, UnresolvedModule
from fogsim.core.events import Event, EventKind
from fogsim.core.placement import Placement
from fogsim.core.router import TupleRouter
from fogsim.analysis.report import SimulationReport

logger = logging.getLogger(__name__)


@dataclass
class SimulationConfig:
    """Run-level settings."""

    until_ms: float | None = None           # Inject a STOP event at this time
    propagation_ms_per_km: float = 0.0      # Extra link latency per km between positioned nodes
    mobility_interval_ms: float = 1000.0    # Position refresh period for mobile nodes
    keep_loop_samples: bool = True          # Retain every loop sample, not just the running mean


@dataclass
class Simulation:
    """
    Drives one run over a SimulationContext.

    Usage:
        ctx = SimulationContext(seed=42)
        ... build topology, applications, sensors, actuators ...
        report = Simulation(ctx, SimulationConfig(until_ms=10_000)).run()
    """

    context: SimulationContext
    config: SimulationConfig = field(default_factory=SimulationConfig)

    energy: EnergyAccountant = field(default=None, init=False)
    latency: LatencyAccountant = field(default=None, init=False)
    router: TupleRouter = field(default=None, init=False)
    placements: dict[str, Placement] = field(default_factory=dict, init=False)
    stopped_at: float | None = field(default=None, init=False)

    def __post_init__(self):
        self.energy = EnergyAccountant(self.context.topology)
        self.latency = LatencyAccountant(keep_samples=self.config.keep_loop_samples)
        self.router = TupleRouter(
            self.context,
            self.energy,
            self.latency,
            propagation_ms_per_km=self.config.propagation_ms_per_km,
        )

    @property
    def now(self) -> float:
        return self.context.queue.now

    # ═══════════════════════════════════════════════════════════════
    # SETUP
    # ═══════════════════════════════════════════════════════════════

    def resolve_placements(self) -> dict[str, Placement]:
        """Resolve every application's placement; any failure aborts setup."""
        ctx = self.context
        ctx.topology.validate()
        placements = {}
        for app_id, app in ctx.applications.items():
            placement = ctx.policies[app_id].resolve(ctx.topology, app, ctx.sensors)
            for module in app.modules:
                if placement.node_of(module) is None:
                    raise UnresolvedModule(app_id, module)
            placements[app_id] = placement
        return placements

    def setup(self) -> None:
        ctx = self.context
        self.placements = self.resolve_placements()
        for placement in self.placements.values():
            self.router.set_placement(placement)

        # Every run starts from t=0 with a fresh random stream
        ctx.queue.reset()
        ctx.reseed()
        self.stopped_at = None
        self.router.reset()
        self.energy.start(ctx.queue.now)
        self.latency.reset()
        for app in ctx.applications.values():
            for loop_id in app.loops:
                self.latency.register(loop_id)

        for sensor in ctx.sensors:
            sensor.emitted = 0
            self.schedule(Event(EventKind.SENSOR_TICK, sensor.sensor_id), sensor.start_delay)
        for actuator in ctx.actuators:
            actuator.delivered = 0

        if ctx.mobility is not None:
            for node in ctx.topology.iter_nodes():
                node.position = ctx.mobility.current_position(node.node_id, ctx.queue.now)
                if node.mobile:
                    self.schedule(Event(EventKind.MOBILITY_UPDATE, node.node_id), self.config.mobility_interval_ms)

        if self.config.until_ms is not None:
            self.schedule(Event(EventKind.STOP), max(0.0, self.config.until_ms - ctx.queue.now))

        logger.info(
            "Simulation set up: %d nodes, %d applications, %d sensors, %d actuators",
            len(ctx.topology), len(ctx.applications), len(ctx.sensors), len(ctx.actuators),
        )

    def schedule(self, event: Event, delay: float) -> Event:
        return self.context.queue.schedule(event, delay)

    # ═══════════════════════════════════════════════════════════════
    # DISPATCH
    # ═══════════════════════════════════════════════════════════════

    def handle(self, event: Event) -> None:
        """Single dispatch point for every event kind."""
        now = event.time
        try:
            if event.kind is EventKind.SENSOR_TICK:
                self.router.on_sensor_tick(self.context.sensors[event.target], now)
            elif event.kind is EventKind.TUPLE_ARRIVAL:
                self.router.on_tuple_arrival(event.target, event.payload, now)
            elif event.kind is EventKind.PROCESS_COMPLETE:
                self.router.on_process_complete(event.target, event.payload, now)
            elif event.kind is EventKind.MOBILITY_UPDATE:
                self._on_mobility_update(event.target, now)
            elif event.kind is EventKind.STOP:
                self._on_stop(now)
            else:
                raise ValueError(f"Unknown event kind: {event.kind}")
        except RoutingError as err:
            if event.payload is not None:
                self.router.drop(event.payload, err)
            else:
                logger.warning("Routing error at t=%.3f: %s", now, err)

    def _on_mobility_update(self, node_id: int, now: float) -> None:
        """
        Store the provider position of a mobile node for later hops.

        A pending refresh still counts as an event, so a run with mobile nodes
        ends at the first refresh after the last real work.
        """
        node = self.context.topology.get(node_id)
        node.position = self.context.mobility.current_position(node_id, now)
        # Keep refreshing only while something else is still scheduled
        queue = self.context.queue
        if queue.pending() > queue.pending(EventKind.MOBILITY_UPDATE):
            self.schedule(Event(EventKind.MOBILITY_UPDATE, node_id), self.config.mobility_interval_ms)

    def _on_stop(self, now: float) -> None:
        dropped = self.context.queue.clear()
        self.stopped_at = now
        logger.info("Stop at t=%.3f, %d pending events discarded", now, dropped)

    # ═══════════════════════════════════════════════════════════════
    # RUN CONTROL
    # ═══════════════════════════════════════════════════════════════

    def run(self) -> SimulationReport:
        """Set up, dispatch until no events remain, and build the report."""
        self.setup()
        dispatched = self.context.queue.run(self.handle)
        end = self.context.queue.now
        self.energy.finalize(end)
        logger.info("Simulation finished at t=%.3f after %d events", end, dispatched)
        return self.report()

    def abort(self) -> int:
        """Clear the event queue; a running dispatch loop stops after the current event."""
        return self.context.queue.clear()

    def report(self) -> SimulationReport:
        ctx = self.context
        return SimulationReport(
            end_time=ctx.queue.now,
            loop_averages=self.latency.averages(),
            loop_samples={loop_id: self.latency.sample_count(loop_id) for loop_id in self.latency.averages()},
            energy=self.energy.energy_by_node(),
            cost=self.energy.cost_by_node(),
            delivered={a.name: a.delivered for a in ctx.actuators},
            emitted=self.router.stats["emitted"],
            processed=self.router.stats["processed"],
            terminated=self.router.stats["terminated"],
            filtered=self.router.stats["filtered"],
            dropped=self.router.stats["dropped"],
        )
