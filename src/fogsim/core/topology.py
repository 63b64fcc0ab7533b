"""
Topology: the tree of heterogeneous compute nodes.

The cloud is the root (level 0); every other node has exactly one parent and
sits one level below it. Each node owns the uplink to its parent, described
by the node's upstream bandwidth and uplink latency. The parent's downstream
bandwidth describes the link back down.

The topology is built once during setup and never changes shape during a run.
Mobility moves node positions, not tree edges.
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Sequence
import logging

from fogsim.core.errors import (
    ConfigurationError,
    DuplicateNode,
    InvalidPowerModel,
    UnknownNode,
    UnknownParent,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PowerModel:
    """Linear power model between idle and busy draw (watts)."""

    busy_power: float
    idle_power: float

    def power(self, utilization: float) -> float:
        """Power draw at a utilization in [0, 1]."""
        u = min(1.0, max(0.0, utilization))
        return self.idle_power + (self.busy_power - self.idle_power) * u


@dataclass
class Node:
    """
    One fog, gateway, edge or cloud device.

    Static attributes come from the topology builder. The dynamic fields
    (queue, busy flag, energy, cost) are owned by the router and the
    accountant during a run.
    """

    node_id: int
    name: str
    mips: float           # Processing rate, million instructions per second
    ram: float
    up_bw: float          # Bytes per second toward the parent
    down_bw: float        # Bytes per second toward children
    rate_per_mips: float  # Cost per MIPS-second of busy CPU
    power_model: PowerModel
    parent_id: int | None = None
    uplink_latency: float = 0.0   # ms to the parent
    level: int = 0
    declared_level: int | None = None
    position: Any = None          # Location at the last mobility refresh
    mobile: bool = False

    # dynamic state
    queue: deque = field(default_factory=deque)
    busy: bool = False
    energy: float = 0.0   # joules
    cost: float = 0.0
    last_sample_time: float = 0.0

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def reset_state(self) -> None:
        """Clear everything a run mutates."""
        self.queue.clear()
        self.busy = False
        self.energy = 0.0
        self.cost = 0.0
        self.last_sample_time = 0.0


class Topology:
    """
    Registry and path queries for the node tree.

    Nodes are created detached and then attached with set_parent(), or created
    and attached in one step with add_node(). Levels are cached and refreshed
    for the whole subtree whenever a node is (re)attached.
    """

    def __init__(self):
        self._nodes: dict[int, Node] = {}
        self._by_name: dict[str, int] = {}
        self._children: dict[int, list[int]] = {}
        self._next_id = 0

    # ═══════════════════════════════════════════════════════════════
    # BUILDERS
    # ═══════════════════════════════════════════════════════════════

    def create_node(
        self,
        name: str,
        mips: float,
        ram: float,
        up_bw: float,
        down_bw: float,
        level: int | None = None,
        rate_per_mips: float = 0.0,
        busy_power: float = 0.0,
        idle_power: float = 0.0,
        mobile: bool = False,
    ) -> int:
        """
        Register a detached node and return its id.

        level is the tier the caller expects the node to sit at; it is checked
        against the computed depth once the node is attached.
        """
        if name in self._by_name:
            raise DuplicateNode(name)
        if idle_power < 0 or busy_power < idle_power:
            raise InvalidPowerModel(name, busy_power, idle_power)
        if mips < 0 or ram < 0 or up_bw < 0 or down_bw < 0:
            raise ConfigurationError(f"Node '{name}': capacities must be non-negative")

        node = Node(
            node_id=self._next_id,
            name=name,
            mips=float(mips),
            ram=float(ram),
            up_bw=float(up_bw),
            down_bw=float(down_bw),
            rate_per_mips=float(rate_per_mips),
            power_model=PowerModel(float(busy_power), float(idle_power)),
            declared_level=level,
            mobile=mobile,
        )
        self._next_id += 1
        self._nodes[node.node_id] = node
        self._by_name[name] = node.node_id
        self._children[node.node_id] = []
        return node.node_id

    def set_parent(self, node_id: int, parent_id: int, uplink_latency: float) -> None:
        """Attach node_id below parent_id with the given uplink latency (ms)."""
        node = self.get(node_id)
        if parent_id not in self._nodes:
            raise UnknownParent(node.name, parent_id)
        if uplink_latency < 0:
            raise ConfigurationError(
                f"Node '{node.name}': uplink latency must be non-negative, got {uplink_latency}"
            )
        if parent_id == node_id or node_id in self._ancestor_ids(parent_id):
            raise ConfigurationError(
                f"Attaching '{node.name}' below '{self._nodes[parent_id].name}' would create a cycle"
            )

        if node.parent_id is not None:
            self._children[node.parent_id].remove(node_id)
        node.parent_id = parent_id
        node.uplink_latency = float(uplink_latency)
        self._children[parent_id].append(node_id)
        self._refresh_levels(node_id)

    def add_node(self, node: Node, parent_id: int | None = None, uplink_latency: float = 0.0) -> int:
        """Register a pre-built node, attaching it in the same call."""
        if parent_id is not None and parent_id not in self._nodes:
            raise UnknownParent(node.name, parent_id)
        if node.name in self._by_name:
            raise DuplicateNode(node.name)

        node.node_id = self._next_id
        node.parent_id = None
        self._next_id += 1
        self._nodes[node.node_id] = node
        self._by_name[node.name] = node.node_id
        self._children[node.node_id] = []
        if parent_id is not None:
            self.set_parent(node.node_id, parent_id, uplink_latency)
        return node.node_id

    @classmethod
    def from_config(cls, nodes_config: Sequence[Mapping[str, Any]]) -> "Topology":
        """
        Build a topology from plain dicts, parents listed before children.

        Keys: name, parent (name or None), mips, ram, up_bw, down_bw,
        rate_per_mips, busy_power, idle_power, uplink_latency, level, mobile.
        """
        topology = cls()
        for cfg in nodes_config:
            node_id = topology.create_node(
                name=cfg["name"],
                mips=cfg["mips"],
                ram=cfg.get("ram", 0.0),
                up_bw=cfg.get("up_bw", 0.0),
                down_bw=cfg.get("down_bw", 0.0),
                level=cfg.get("level"),
                rate_per_mips=cfg.get("rate_per_mips", 0.0),
                busy_power=cfg.get("busy_power", 0.0),
                idle_power=cfg.get("idle_power", 0.0),
                mobile=cfg.get("mobile", False),
            )
            parent = cfg.get("parent")
            if parent is not None:
                if parent not in topology._by_name:
                    raise UnknownParent(cfg["name"], parent)
                topology.set_parent(
                    node_id, topology._by_name[parent], cfg.get("uplink_latency", 0.0)
                )
        return topology

    def validate(self) -> None:
        """Check the tree is complete: a single root, declared levels honoured."""
        roots = [n for n in self._nodes.values() if n.parent_id is None]
        if len(roots) != 1:
            names = ", ".join(n.name for n in roots) or "none"
            raise ConfigurationError(f"Topology must have exactly one root, found: {names}")
        for node in self._nodes.values():
            if node.declared_level is not None and node.declared_level != node.level:
                raise ConfigurationError(
                    f"Node '{node.name}' declared level {node.declared_level} "
                    f"but sits at depth {node.level}"
                )

    # ═══════════════════════════════════════════════════════════════
    # QUERIES
    # ═══════════════════════════════════════════════════════════════

    def get(self, node_id: int) -> Node:
        try:
            return self._nodes[node_id]
        except KeyError:
            raise UnknownNode(node_id) from None

    def by_name(self, name: str) -> Node:
        if name not in self._by_name:
            raise UnknownNode(name)
        return self._nodes[self._by_name[name]]

    def has_name(self, name: str) -> bool:
        return name in self._by_name

    @property
    def root(self) -> Node:
        self.validate()
        return next(n for n in self._nodes.values() if n.parent_id is None)

    def level_of(self, node_id: int) -> int:
        return self.get(node_id).level

    def children(self, node_id: int) -> list[Node]:
        return [self._nodes[c] for c in self._children[self.get(node_id).node_id]]

    def path_to_root(self, node_id: int) -> list[Node]:
        """Nodes from node_id (inclusive) up to the root (inclusive)."""
        node = self.get(node_id)
        path = [node]
        while node.parent_id is not None:
            node = self._nodes[node.parent_id]
            path.append(node)
        return path

    def lowest_common_ancestor(self, node_ids: Sequence[int]) -> Node:
        """Deepest node that has every node in node_ids in its subtree."""
        if not node_ids:
            raise ValueError("lowest_common_ancestor needs at least one node")
        common = [n.node_id for n in self.path_to_root(node_ids[0])]
        for other in node_ids[1:]:
            ancestors = {n.node_id for n in self.path_to_root(other)}
            common = [nid for nid in common if nid in ancestors]
        if not common:
            raise ConfigurationError("Nodes do not share a root; topology is not a tree")
        return self._nodes[common[0]]

    def route(self, src_id: int, dst_id: int) -> list[int]:
        """Hop sequence from src to dst through their lowest common ancestor."""
        if src_id == dst_id:
            return [src_id]
        lca = self.lowest_common_ancestor([src_id, dst_id]).node_id
        up = []
        for node in self.path_to_root(src_id):
            up.append(node.node_id)
            if node.node_id == lca:
                break
        down = []
        for node in self.path_to_root(dst_id):
            if node.node_id == lca:
                break
            down.append(node.node_id)
        return up + list(reversed(down))

    def iter_nodes(self) -> Iterator[Node]:
        yield from self._nodes.values()

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: int) -> bool:
        return node_id in self._nodes

    def _ancestor_ids(self, node_id: int) -> set[int]:
        return {n.node_id for n in self.path_to_root(node_id)}

    def _refresh_levels(self, node_id: int) -> None:
        node = self._nodes[node_id]
        node.level = 0 if node.parent_id is None else self._nodes[node.parent_id].level + 1
        stack = list(self._children[node_id])
        while stack:
            child = self._nodes[stack.pop()]
            child.level = self._nodes[child.parent_id].level + 1
            stack.extend(self._children[child.node_id])
