"""
Placement: map application modules onto topology nodes.

Two policies:
- StaticPlacement: an explicit module -> device-name table, every module
  must be listed.
- EdgewardPlacement: push each module as close to its data source as
  capacity allows, escalating toward the root. Modules listed in an optional
  ModuleMapping are pinned first.

Resolution never mutates the topology. Capacity bookkeeping is local to one
resolve() call, so resolving twice against the same inputs yields the same
assignment.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Protocol, Sequence, TYPE_CHECKING
import logging

if TYPE_CHECKING:
    from fogsim.core.application import Application
    from fogsim.core.devices import Sensor
    from fogsim.core.topology import Node, Topology

from fogsim.core.application import EdgeKind
from fogsim.core.errors import NoCapacity, UnresolvedModule

logger = logging.getLogger(__name__)


@dataclass
class ModuleMapping:
    """Explicit module name -> device name table."""

    entries: dict[str, str] = field(default_factory=dict)

    def add_module_to_device(self, module: str, device: str) -> None:
        self.entries[module] = device

    def device_for(self, module: str) -> str | None:
        return self.entries.get(module)


@dataclass
class Placement:
    """Resolved module -> node id assignment for one application."""

    app_id: str
    assignment: dict[str, int] = field(default_factory=dict)

    def node_of(self, module: str) -> int | None:
        return self.assignment.get(module)

    def modules_on(self, node_id: int) -> list[str]:
        return [m for m, n in self.assignment.items() if n == node_id]


class PlacementPolicy(Protocol):
    def resolve(
        self,
        topology: "Topology",
        application: "Application",
        sensors: Sequence["Sensor"] = (),
    ) -> Placement:
        ...


class _CapacityLedger:
    """Remaining MIPS and RAM per node for the duration of one resolve()."""

    def __init__(self, topology: "Topology"):
        self._mips = {n.node_id: n.mips for n in topology.iter_nodes()}
        self._ram = {n.node_id: n.ram for n in topology.iter_nodes()}

    def fits(self, node: "Node", weight: float, ram: float) -> bool:
        if node.mips <= 0:
            return False  # zero-capacity nodes never host modules
        if node.is_root:
            return weight <= node.mips and ram <= node.ram
        return weight <= self._mips[node.node_id] and ram <= self._ram[node.node_id]

    def reserve(self, node: "Node", weight: float, ram: float) -> None:
        self._mips[node.node_id] -= weight
        self._ram[node.node_id] -= ram


@dataclass
class StaticPlacement:
    """Place every module exactly where the mapping says."""

    mapping: ModuleMapping

    def resolve(
        self,
        topology: "Topology",
        application: "Application",
        sensors: Sequence["Sensor"] = (),
    ) -> Placement:
        placement = Placement(application.app_id)
        for name in application.modules:
            placement.assignment[name] = _mapped_node(topology, application, self.mapping, name).node_id
        logger.info("Static placement for '%s': %s", application.app_id, _describe(topology, placement))
        return placement


@dataclass
class EdgewardPlacement:
    """
    Edge-ward placement.

    Each module starts at the lowest common ancestor of the nodes feeding it
    (sensor gateways, or hosts of already placed upstream modules) and walks
    toward the root, taking the first node whose remaining MIPS and RAM cover
    the module. The root accepts any number of modules but not one that is
    larger than the root itself.
    """

    mapping: ModuleMapping | None = None

    def resolve(
        self,
        topology: "Topology",
        application: "Application",
        sensors: Sequence["Sensor"] = (),
    ) -> Placement:
        topology.validate()
        ledger = _CapacityLedger(topology)
        placement = Placement(application.app_id)

        # Pinned modules first, so they claim their capacity
        if self.mapping is not None:
            for name in application.modules:
                if self.mapping.device_for(name) is None:
                    continue
                module = application.modules[name]
                node = _mapped_node(topology, application, self.mapping, name)
                ledger.reserve(node, module.weight, module.ram)
                placement.assignment[name] = node.node_id

        for name in application.module_order():
            if name in placement.assignment:
                continue
            module = application.modules[name]
            feeders = self._feeder_nodes(application, sensors, placement, name)
            start = topology.lowest_common_ancestor(feeders) if feeders else topology.root
            path = topology.path_to_root(start.node_id)

            for node in path:
                if ledger.fits(node, module.weight, module.ram):
                    ledger.reserve(node, module.weight, module.ram)
                    placement.assignment[name] = node.node_id
                    logger.debug(
                        "Module '%s' (weight=%.1f) placed on '%s' (level %d)",
                        name, module.weight, node.name, node.level,
                    )
                    break
            else:
                raise NoCapacity(application.app_id, name, [n.name for n in path])

        logger.info("Edge-ward placement for '%s': %s", application.app_id, _describe(topology, placement))
        return placement

    @staticmethod
    def _feeder_nodes(
        application: "Application",
        sensors: Sequence["Sensor"],
        placement: Placement,
        module: str,
    ) -> list[int]:
        feeders: list[int] = []
        for edge in application.incoming(module):
            if edge.kind is EdgeKind.SENSOR:
                feeders.extend(
                    s.gateway_id
                    for s in sensors
                    if s.app_id == application.app_id and s.tuple_type == edge.tuple_type
                )
            elif edge.src in placement.assignment:
                feeders.append(placement.assignment[edge.src])
        # order-preserving dedupe
        return list(dict.fromkeys(feeders))


def _mapped_node(
    topology: "Topology",
    application: "Application",
    mapping: ModuleMapping,
    module: str,
) -> "Node":
    device = mapping.device_for(module)
    if device is None:
        raise UnresolvedModule(application.app_id, module)
    if not topology.has_name(device):
        raise UnresolvedModule(application.app_id, module, device)
    node = topology.by_name(device)
    if node.mips <= 0:
        raise NoCapacity(application.app_id, module, [node.name])
    return node


def _describe(topology: "Topology", placement: Placement) -> str:
    return ", ".join(
        f"{module}@{topology.get(node_id).name}" for module, node_id in placement.assignment.items()
    )
