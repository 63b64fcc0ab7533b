"""Unit tests for energy and latency accounting."""

import numpy as np
import pytest

from fogsim.core.accounting import EnergyAccountant, LatencyAccountant


class TestEnergyAccountant:
    """Tests for EnergyAccountant."""

    def test_idle_node_draws_idle_power(self, three_tier):
        topo, cloud, gateway, edge = three_tier
        accountant = EnergyAccountant(topo)
        accountant.start(0.0)
        accountant.finalize(2000.0)
        assert accountant.energy(cloud) == pytest.approx(80.0 * 2.0)
        assert accountant.energy(edge) == pytest.approx(5.0 * 2.0)

    def test_busy_interval_charged_at_busy_power(self, three_tier):
        topo, cloud, gateway, edge = three_tier
        node = topo.get(edge)
        accountant = EnergyAccountant(topo)
        accountant.start(0.0)

        accountant.observe(node, 1000.0)   # idle [0, 1000)
        node.busy = True
        accountant.observe(node, 1500.0)   # busy [1000, 1500)
        node.busy = False
        accountant.finalize(2000.0)        # idle [1500, 2000)

        expected = 5.0 * 1.0 + 10.0 * 0.5 + 5.0 * 0.5
        assert accountant.energy(edge) == pytest.approx(expected)

    def test_energy_never_decreases(self, three_tier):
        topo, cloud, gateway, edge = three_tier
        node = topo.get(gateway)
        accountant = EnergyAccountant(topo)
        accountant.start(0.0)
        readings = []
        for t in np.linspace(0.0, 5000.0, 11):
            node.busy = not node.busy
            accountant.observe(node, float(t))
            readings.append(node.energy)
        assert all(b >= a for a, b in zip(readings, readings[1:]))

    def test_cost_only_accrues_while_busy(self):
        from fogsim.core.topology import Topology
        topo = Topology()
        nid = topo.create_node("fog", mips=1000, ram=0, up_bw=0, down_bw=0,
                               rate_per_mips=0.01, busy_power=10, idle_power=5)
        node = topo.get(nid)
        accountant = EnergyAccountant(topo)
        accountant.start(0.0)
        node.busy = True
        accountant.observe(node, 2000.0)
        node.busy = False
        accountant.finalize(4000.0)
        assert accountant.cost_by_node()["fog"] == pytest.approx(0.01 * 1000 * 2.0)

    def test_start_resets(self, three_tier):
        topo, cloud, gateway, edge = three_tier
        accountant = EnergyAccountant(topo)
        accountant.start(0.0)
        accountant.finalize(1000.0)
        accountant.start(1000.0)
        assert all(v == 0.0 for v in accountant.energy_by_node().values())


class TestLatencyAccountant:
    """Tests for LatencyAccountant."""

    def test_no_samples_is_none(self):
        latency = LatencyAccountant()
        latency.register("loop")
        assert latency.current_average("loop") is None
        assert latency.averages() == {"loop": None}
        assert latency.sample_count("loop") == 0

    def test_identical_samples_average_exactly(self):
        latency = LatencyAccountant()
        for _ in range(7):
            latency.record_loop_sample("loop", 706.0)
        assert latency.current_average("loop") == 706.0

    def test_running_mean(self):
        latency = LatencyAccountant()
        for value in (10.0, 20.0, 60.0):
            latency.record_loop_sample("loop", value)
        assert latency.current_average("loop") == pytest.approx(30.0)
        assert latency.sample_count("loop") == 3
        np.testing.assert_allclose(latency.samples("loop"), [10.0, 20.0, 60.0])

    def test_reset_keeps_registration(self):
        latency = LatencyAccountant()
        latency.record_loop_sample("loop", 5.0)
        latency.reset()
        assert latency.averages() == {"loop": None}

    def test_samples_can_be_discarded(self):
        latency = LatencyAccountant(keep_samples=False)
        for value in (10.0, 20.0, 60.0):
            latency.record_loop_sample("loop", value)
        assert latency.current_average("loop") == pytest.approx(30.0)
        assert latency.sample_count("loop") == 3
        assert latency.samples("loop").size == 0
