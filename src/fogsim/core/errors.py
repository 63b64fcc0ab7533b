"""
Error taxonomy for the fog simulation engine.

Four families, each with a different propagation policy:
- ConfigurationError: malformed topology or application graph, raised eagerly
  by the builder call that received the bad input
- PlacementError: module placement could not be completed, the run must not start
- RoutingError: a single tuple cannot be delivered, it is dropped and logged
- SchedulingError: a component asked for an impossible schedule (programming defect)

Every error keeps the offending identifiers as attributes.
"""

from __future__ import annotations


class FogSimError(Exception):
    """Base class for all engine errors."""


# ═══════════════════════════════════════════════════════════════
# CONFIGURATION
# ═══════════════════════════════════════════════════════════════


class ConfigurationError(FogSimError, ValueError):
    """Malformed topology or application graph."""


class DuplicateNode(ConfigurationError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Node '{name}' is already part of the topology")


class UnknownNode(ConfigurationError):
    def __init__(self, node_id):
        self.node_id = node_id
        super().__init__(f"Node {node_id!r} does not exist in the topology")


class UnknownParent(ConfigurationError):
    def __init__(self, node_name: str, parent_id):
        self.node_name = node_name
        self.parent_id = parent_id
        super().__init__(
            f"Cannot attach node '{node_name}': parent {parent_id!r} does not exist"
        )


class InvalidPowerModel(ConfigurationError):
    def __init__(self, node_name: str, busy_power: float, idle_power: float):
        self.node_name = node_name
        self.busy_power = busy_power
        self.idle_power = idle_power
        super().__init__(
            f"Node '{node_name}': power model needs 0 <= idle ({idle_power}) "
            f"<= busy ({busy_power})"
        )


class DuplicateModule(ConfigurationError):
    def __init__(self, app_id: str, module: str):
        self.app_id = app_id
        self.module = module
        super().__init__(f"Application '{app_id}' already has a module named '{module}'")


class UnknownStage(ConfigurationError):
    def __init__(self, app_id: str, stage: str):
        self.app_id = app_id
        self.stage = stage
        super().__init__(
            f"Application '{app_id}' has no module, sensor or actuator named '{stage}'"
        )


class DuplicateSelectivity(ConfigurationError):
    def __init__(self, app_id: str, in_type: str, out_type: str):
        self.app_id = app_id
        self.in_type = in_type
        self.out_type = out_type
        super().__init__(
            f"Application '{app_id}' already gates {in_type} -> {out_type}; "
            "pass replace=True to overwrite it"
        )


# ═══════════════════════════════════════════════════════════════
# PLACEMENT
# ═══════════════════════════════════════════════════════════════


class PlacementError(FogSimError):
    """Module placement could not be completed."""


class UnresolvedModule(PlacementError):
    def __init__(self, app_id: str, module: str, device: str | None = None):
        self.app_id = app_id
        self.module = module
        self.device = device
        if device is None:
            msg = f"Module '{module}' of application '{app_id}' has no mapping entry"
        else:
            msg = (
                f"Module '{module}' of application '{app_id}' is mapped to "
                f"unknown device '{device}'"
            )
        super().__init__(msg)


class NoCapacity(PlacementError):
    def __init__(self, app_id: str, module: str, path: list[str]):
        self.app_id = app_id
        self.module = module
        self.path = list(path)
        super().__init__(
            f"No node on path {' -> '.join(path)} can host module '{module}' "
            f"of application '{app_id}'"
        )


# ═══════════════════════════════════════════════════════════════
# ROUTING
# ═══════════════════════════════════════════════════════════════


class RoutingError(FogSimError):
    """A tuple could not be delivered."""


class UnplacedModule(RoutingError):
    def __init__(self, app_id: str, module: str, tuple_id: int, tuple_type: str):
        self.app_id = app_id
        self.module = module
        self.tuple_id = tuple_id
        self.tuple_type = tuple_type
        super().__init__(
            f"Tuple {tuple_id} ({tuple_type}) targets module '{module}' of "
            f"application '{app_id}', which was never placed"
        )


# ═══════════════════════════════════════════════════════════════
# SCHEDULING
# ═══════════════════════════════════════════════════════════════


class SchedulingError(FogSimError):
    """Impossible scheduling request."""


class InvalidDelay(SchedulingError):
    def __init__(self, delay: float, kind=None):
        self.delay = delay
        self.kind = kind
        super().__init__(f"Cannot schedule {kind or 'event'} with negative delay {delay}")
