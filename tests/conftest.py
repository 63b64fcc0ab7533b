"""
Pytest configuration and shared fixtures.
"""

import pytest
import numpy as np


@pytest.fixture
def rng():
    """Reproducible random number generator."""
    return np.random.default_rng(seed=42)


@pytest.fixture
def three_tier():
    """cloud <- gateway <- edge, returned as (topology, cloud, gateway, edge) ids."""
    from fogsim.core import Topology
    topo = Topology()
    cloud = topo.create_node("cloud", mips=10000, ram=40000, up_bw=0, down_bw=10000,
                             level=0, busy_power=100.0, idle_power=80.0)
    gateway = topo.create_node("gateway", mips=2000, ram=4096, up_bw=1000, down_bw=1000,
                               level=1, busy_power=40.0, idle_power=20.0)
    topo.set_parent(gateway, cloud, uplink_latency=50.0)
    edge = topo.create_node("edge", mips=1000, ram=1024, up_bw=1000, down_bw=1000,
                            level=2, busy_power=10.0, idle_power=5.0)
    topo.set_parent(edge, gateway, uplink_latency=2.0)
    return topo, cloud, gateway, edge


@pytest.fixture
def pipeline_app():
    """SENSOR -> edgeModule -> gwModule -> ACT with probability-1 gates."""
    from fogsim.core import Application, Direction, FractionalSelectivity
    app = Application("pipeline")
    app.add_module("edgeModule", 100)
    app.add_module("gwModule", 500)
    app.add_sensor("SENSOR")
    app.add_actuator("ACT")
    app.add_edge("SENSOR", "edgeModule", 100, 100, "SENSE", Direction.UP)
    app.add_edge("edgeModule", "gwModule", 200, 500, "FORWARD", Direction.UP)
    app.add_edge("gwModule", "ACT", 0, 100, "COMMAND", Direction.DOWN)
    app.add_selectivity("SENSE", "FORWARD", FractionalSelectivity(1.0))
    app.add_selectivity("FORWARD", "COMMAND", FractionalSelectivity(1.0))
    app.define_loop(["SENSOR", "edgeModule", "gwModule", "ACT"], name="control")
    return app
