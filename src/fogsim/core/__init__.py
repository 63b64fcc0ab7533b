"""
Core engine primitives.

Setup-time builders (Topology, Application, SimulationContext, placement
policies) and the run-time machinery (EventQueue, TupleRouter, accountants,
Simulation). All run-time state lives in a caller-owned SimulationContext.
"""

from fogsim.core.errors import (
    FogSimError,
    ConfigurationError,
    DuplicateModule,
    DuplicateNode,
    DuplicateSelectivity,
    InvalidPowerModel,
    UnknownNode,
    UnknownParent,
    UnknownStage,
    PlacementError,
    NoCapacity,
    UnresolvedModule,
    RoutingError,
    UnplacedModule,
    SchedulingError,
    InvalidDelay,
)
from fogsim.core.events import Event, EventKind, EventQueue
from fogsim.core.topology import Node, PowerModel, Topology
from fogsim.core.application import (
    Application,
    AppEdge,
    AppLoop,
    Direction,
    EdgeKind,
    FractionalSelectivity,
    Module,
    PredicateSelectivity,
    Selectivity,
)
from fogsim.core.devices import (
    Actuator,
    DeterministicDistribution,
    DistributionBehaviour,
    ExponentialDistribution,
    FrozenDistribution,
    Sensor,
    SensorBehaviour,
    UniformDistribution,
)
from fogsim.core.mobility import Location, MobilityProvider, StaticPositions
from fogsim.core.placement import EdgewardPlacement, ModuleMapping, Placement, StaticPlacement
from fogsim.core.links import Link, LinkTable
from fogsim.core.accounting import EnergyAccountant, LatencyAccountant
from fogsim.core.context import SimulationContext
from fogsim.core.router import Tuple, TupleRouter, TupleState
from fogsim.core.engine import Simulation, SimulationConfig

__all__ = [
    "FogSimError",
    "ConfigurationError",
    "DuplicateModule",
    "DuplicateNode",
    "DuplicateSelectivity",
    "InvalidPowerModel",
    "UnknownNode",
    "UnknownParent",
    "UnknownStage",
    "PlacementError",
    "NoCapacity",
    "UnresolvedModule",
    "RoutingError",
    "UnplacedModule",
    "SchedulingError",
    "InvalidDelay",
    "Event",
    "EventKind",
    "EventQueue",
    "Node",
    "PowerModel",
    "Topology",
    "Application",
    "AppEdge",
    "AppLoop",
    "Direction",
    "EdgeKind",
    "FractionalSelectivity",
    "Module",
    "PredicateSelectivity",
    "Selectivity",
    "Actuator",
    "DeterministicDistribution",
    "DistributionBehaviour",
    "ExponentialDistribution",
    "FrozenDistribution",
    "Sensor",
    "SensorBehaviour",
    "UniformDistribution",
    "Location",
    "MobilityProvider",
    "StaticPositions",
    "EdgewardPlacement",
    "ModuleMapping",
    "Placement",
    "StaticPlacement",
    "Link",
    "LinkTable",
    "EnergyAccountant",
    "LatencyAccountant",
    "SimulationContext",
    "Tuple",
    "TupleRouter",
    "TupleState",
    "Simulation",
    "SimulationConfig",
]
