"""
SimulationContext: every registry a run needs, owned by the caller.

There are no module-level device or sensor lists. The caller builds one
context, fills it through the builder calls below, and hands it to a
Simulation. The context also owns the single seeded random generator and
the event queue, so two contexts never share state.
"""

from __future__ import annotations
from dataclasses import dataclass, field

import numpy as np

from fogsim.core.application import Application, EdgeKind
from fogsim.core.devices import Actuator, Distribution, DistributionBehaviour, Sensor, SensorBehaviour
from fogsim.core.errors import ConfigurationError, UnknownNode, UnknownStage
from fogsim.core.events import EventQueue
from fogsim.core.mobility import MobilityProvider
from fogsim.core.placement import EdgewardPlacement, PlacementPolicy
from fogsim.core.topology import Topology


@dataclass
class SimulationContext:
    seed: int | None = None
    topology: Topology = field(default_factory=Topology)
    mobility: MobilityProvider | None = None

    applications: dict[str, Application] = field(default_factory=dict, init=False)
    policies: dict[str, PlacementPolicy] = field(default_factory=dict, init=False)
    sensors: list[Sensor] = field(default_factory=list, init=False)
    actuators: list[Actuator] = field(default_factory=list, init=False)
    queue: EventQueue = field(default_factory=EventQueue, init=False)
    rng: np.random.Generator = field(default=None, init=False)

    def __post_init__(self):
        self.rng = np.random.default_rng(self.seed)

    def reseed(self, seed: int | None = None) -> None:
        """Restart the random stream (from the original seed if none given)."""
        if seed is not None:
            self.seed = seed
        self.rng = np.random.default_rng(self.seed)

    def add_application(self, application: Application, policy: PlacementPolicy | None = None) -> None:
        if application.app_id in self.applications:
            raise ConfigurationError(f"Application '{application.app_id}' is already registered")
        for loop_id in application.loops:
            for other in self.applications.values():
                if loop_id in other.loops:
                    raise ConfigurationError(
                        f"Loop '{loop_id}' is defined by both '{other.app_id}' and '{application.app_id}'"
                    )
        self.applications[application.app_id] = application
        self.policies[application.app_id] = policy if policy is not None else EdgewardPlacement()

    def application(self, app_id: str | None = None) -> Application:
        if app_id is None:
            if len(self.applications) != 1:
                raise ConfigurationError("app_id is required when the context holds several applications")
            return next(iter(self.applications.values()))
        if app_id not in self.applications:
            raise ConfigurationError(f"Unknown application '{app_id}'")
        return self.applications[app_id]

    def attach_sensor(
        self,
        node_id: int,
        tuple_type: str,
        distribution: Distribution | None = None,
        *,
        app_id: str | None = None,
        name: str | None = None,
        latency: float = 0.0,
        behaviour: SensorBehaviour | None = None,
        start_delay: float = 0.0,
        max_emissions: int | None = None,
    ) -> Sensor:
        """
        Attach a sensor emitting tuple_type to gateway node_id.

        Either a distribution (inter-arrival times) or a full behaviour
        strategy must be given.
        """
        if node_id not in self.topology:
            raise UnknownNode(node_id)
        app = self.application(app_id)
        edge = app.edge(tuple_type)
        if edge.kind is not EdgeKind.SENSOR:
            raise UnknownStage(app.app_id, tuple_type)
        if behaviour is None:
            if distribution is None:
                raise ConfigurationError(f"Sensor for '{tuple_type}' needs a distribution or a behaviour")
            behaviour = DistributionBehaviour(distribution)
        if latency < 0 or start_delay < 0:
            raise ConfigurationError(f"Sensor for '{tuple_type}': latency and start delay must be non-negative")

        sensor_id = len(self.sensors)
        sensor = Sensor(
            sensor_id=sensor_id,
            name=name or f"s-{tuple_type}-{sensor_id}",
            tuple_type=tuple_type,
            app_id=app.app_id,
            gateway_id=node_id,
            latency=float(latency),
            behaviour=behaviour,
            start_delay=float(start_delay),
            max_emissions=max_emissions,
        )
        self.sensors.append(sensor)
        return sensor

    def attach_actuator(
        self,
        node_id: int,
        actuator_type: str,
        *,
        app_id: str | None = None,
        name: str | None = None,
        latency: float = 0.0,
    ) -> Actuator:
        if node_id not in self.topology:
            raise UnknownNode(node_id)
        app = self.application(app_id)
        if actuator_type not in app.actuators:
            raise UnknownStage(app.app_id, actuator_type)
        if latency < 0:
            raise ConfigurationError(f"Actuator '{actuator_type}': latency must be non-negative")

        actuator_id = len(self.actuators)
        actuator = Actuator(
            actuator_id=actuator_id,
            name=name or f"a-{actuator_type}-{actuator_id}",
            actuator_type=actuator_type,
            app_id=app.app_id,
            gateway_id=node_id,
            latency=float(latency),
        )
        self.actuators.append(actuator)
        return actuator

    def actuators_for(self, app_id: str, actuator_type: str) -> list[Actuator]:
        return [a for a in self.actuators if a.app_id == app_id and a.actuator_type == actuator_type]
