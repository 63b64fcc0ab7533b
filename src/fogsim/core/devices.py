"""
Sensors, actuators and the strategies that drive them.

A sensor does not subclass anything to customise its behaviour. It holds a
SensorBehaviour: an object with next_interval() and build_payload(), chosen
when the sensor is created. The stock behaviour samples an inter-arrival
Distribution and emits an empty payload.

All randomness comes from the simulation's single generator, passed in on
every call, so a fixed seed replays exactly.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

import numpy as np
from scipy import stats


# ═══════════════════════════════════════════════════════════════
# INTER-ARRIVAL DISTRIBUTIONS
# ═══════════════════════════════════════════════════════════════


class Distribution(Protocol):
    """Inter-arrival time distribution in ms."""

    def next_sample(self, rng: np.random.Generator) -> float:
        ...

    @property
    def mean(self) -> float:
        ...


@dataclass(frozen=True)
class DeterministicDistribution:
    """Fixed interval."""

    value: float

    def next_sample(self, rng: np.random.Generator) -> float:
        return self.value

    @property
    def mean(self) -> float:
        return self.value


@dataclass(frozen=True)
class ExponentialDistribution:
    """Poisson arrivals with the given mean interval."""

    mean_interval: float

    def __post_init__(self):
        if self.mean_interval <= 0:
            raise ValueError(f"Exponential mean must be positive, got {self.mean_interval}")

    def next_sample(self, rng: np.random.Generator) -> float:
        return float(rng.exponential(self.mean_interval))

    @property
    def mean(self) -> float:
        return self.mean_interval


@dataclass(frozen=True)
class UniformDistribution:
    low: float
    high: float

    def __post_init__(self):
        if not 0 <= self.low <= self.high:
            raise ValueError(f"Uniform bounds must satisfy 0 <= low <= high, got ({self.low}, {self.high})")

    def next_sample(self, rng: np.random.Generator) -> float:
        return float(rng.uniform(self.low, self.high))

    @property
    def mean(self) -> float:
        return (self.low + self.high) / 2.0


@dataclass(frozen=True)
class FrozenDistribution:
    """
    Any frozen scipy.stats distribution, e.g. scipy.stats.gamma(a=2, scale=50).

    Samples are drawn through the simulation generator, so seeding still
    holds. Negative samples are clipped to zero.
    """

    dist: Any

    @classmethod
    def from_name(cls, name: str, **params) -> "FrozenDistribution":
        """Freeze a scipy.stats distribution by name, e.g. from_name("gamma", a=2, scale=50)."""
        family = getattr(stats, name, None)
        if family is None or not hasattr(family, "rvs"):
            raise ValueError(f"Unknown scipy.stats distribution: {name!r}")
        return cls(family(**params))

    def next_sample(self, rng: np.random.Generator) -> float:
        return max(0.0, float(self.dist.rvs(random_state=rng)))

    @property
    def mean(self) -> float:
        return float(self.dist.mean())


# ═══════════════════════════════════════════════════════════════
# SENSOR BEHAVIOUR STRATEGY
# ═══════════════════════════════════════════════════════════════


class SensorBehaviour(Protocol):
    """Capability interface selected when a sensor is configured."""

    def next_interval(self, rng: np.random.Generator) -> float:
        ...

    def build_payload(self, rng: np.random.Generator, emitted: int) -> dict:
        ...


@dataclass(frozen=True)
class DistributionBehaviour:
    """
    Emit on a Distribution's schedule.

    payload_fn, if given, builds each tuple's payload from the generator,
    e.g. lambda rng: {"HR": int(rng.integers(60, 140))}.
    """

    distribution: Distribution
    payload_fn: Callable[[np.random.Generator], dict] | None = None

    def next_interval(self, rng: np.random.Generator) -> float:
        return self.distribution.next_sample(rng)

    def build_payload(self, rng: np.random.Generator, emitted: int) -> dict:
        if self.payload_fn is None:
            return {}
        return dict(self.payload_fn(rng))


# ═══════════════════════════════════════════════════════════════
# DEVICES
# ═══════════════════════════════════════════════════════════════


@dataclass
class Sensor:
    """
    Tuple source attached to a gateway node.

    The first emission happens start_delay ms after the run starts; each
    emission schedules the next one after behaviour.next_interval(). A sensor
    stops after max_emissions tuples, or never if that is None.
    """

    sensor_id: int
    name: str
    tuple_type: str
    app_id: str
    gateway_id: int
    latency: float      # ms from the sensor to its gateway
    behaviour: SensorBehaviour
    start_delay: float = 0.0
    max_emissions: int | None = None
    emitted: int = field(default=0, init=False)

    @property
    def exhausted(self) -> bool:
        return self.max_emissions is not None and self.emitted >= self.max_emissions


@dataclass
class Actuator:
    """Tuple sink attached to a gateway node."""

    actuator_id: int
    name: str
    actuator_type: str
    app_id: str
    gateway_id: int
    latency: float      # ms from the gateway to the actuator
    delivered: int = field(default=0, init=False)
