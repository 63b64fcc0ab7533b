"""Unit tests for tuple routing, processing and selectivity during a run."""

import logging

from fogsim.core import (
    DeterministicDistribution,
    FractionalSelectivity,
    ModuleMapping,
    Placement,
    Simulation,
    SimulationContext,
    StaticPlacement,
    TupleState,
)


def build_context(three_tier, pipeline_app, interval=2000.0, max_emissions=None):
    topo, cloud, gateway, edge = three_tier
    ctx = SimulationContext(seed=42, topology=topo)
    mapping = ModuleMapping({"edgeModule": "edge", "gwModule": "gateway"})
    ctx.add_application(pipeline_app, StaticPlacement(mapping))
    ctx.attach_sensor(edge, "SENSE", DeterministicDistribution(interval),
                      latency=1.0, max_emissions=max_emissions)
    ctx.attach_actuator(gateway, "ACT", latency=3.0)
    return ctx


class TestSelectivityFlow:
    def test_probability_one_conserves_tuples(self, three_tier, pipeline_app):
        ctx = build_context(three_tier, pipeline_app, max_emissions=4)
        report = Simulation(ctx).run()
        # Every sensor tuple yields one FORWARD and one COMMAND tuple
        assert report.emitted == 12
        assert report.processed == 8
        assert report.terminated == 4
        assert report.filtered == 0

    def test_probability_zero_suppresses(self, three_tier, pipeline_app):
        pipeline_app.add_selectivity("SENSE", "FORWARD", FractionalSelectivity(0.0), replace=True)
        ctx = build_context(three_tier, pipeline_app, max_emissions=4)
        report = Simulation(ctx).run()
        assert report.emitted == 4
        assert report.processed == 4
        assert report.filtered == 4
        assert report.terminated == 0
        assert report.average("control") is None

    def test_predicate_gate_reads_payload(self, three_tier, pipeline_app):
        from fogsim.core import DistributionBehaviour
        pipeline_app.add_selectivity(
            "SENSE", "FORWARD", lambda tup: tup.payload["HR"] >= 100, replace=True
        )
        topo, cloud, gateway, edge = three_tier
        ctx = SimulationContext(seed=0, topology=topo)
        ctx.add_application(pipeline_app, StaticPlacement(
            ModuleMapping({"edgeModule": "edge", "gwModule": "gateway"})))
        readings = iter([80, 120, 90, 130])
        behaviour = DistributionBehaviour(
            DeterministicDistribution(2000.0), payload_fn=lambda rng: {"HR": next(readings)}
        )
        ctx.attach_sensor(edge, "SENSE", behaviour=behaviour, latency=1.0, max_emissions=4)
        ctx.attach_actuator(gateway, "ACT", latency=3.0)

        report = Simulation(ctx).run()
        assert report.terminated == 2
        assert report.filtered == 2


class TestQueueing:
    def test_single_processor_serves_in_order(self, three_tier, pipeline_app):
        from itertools import count
        from fogsim.core import DistributionBehaviour
        topo, cloud, gateway, edge = three_tier
        ctx = SimulationContext(seed=42, topology=topo)
        ctx.add_application(pipeline_app, StaticPlacement(
            ModuleMapping({"edgeModule": "edge", "gwModule": "gateway"})))
        emission = count()
        # Sensor faster than the edge processor: tuples queue up
        behaviour = DistributionBehaviour(
            DeterministicDistribution(10.0), payload_fn=lambda rng: {"seq": next(emission)}
        )
        ctx.attach_sensor(edge, "SENSE", behaviour=behaviour, latency=1.0, max_emissions=5)
        ctx.attach_actuator(gateway, "ACT", latency=3.0)

        sim = Simulation(ctx)
        order = []
        terminate = sim.router._terminate

        def record(tup, actuator, now):
            terminate(tup, actuator, now)
            order.append(tup.payload["seq"])

        sim.router._terminate = record
        report = sim.run()

        assert order == [0, 1, 2, 3, 4]
        assert report.terminated == 5
        assert report.dropped == 0
        edge_node = ctx.topology.by_name("edge")
        assert not edge_node.busy
        assert len(edge_node.queue) == 0

    def test_queued_tuples_add_latency(self, three_tier, pipeline_app):
        slow = build_context(three_tier, pipeline_app, interval=10.0, max_emissions=3)
        report = Simulation(slow).run()
        assert report.average("control") > 706.0


class TestDrops:
    def test_unplaced_module_drops_tuple(self, three_tier, pipeline_app, caplog):
        topo, cloud, gateway, edge = three_tier
        ctx = build_context(three_tier, pipeline_app, max_emissions=1)
        sim = Simulation(ctx)
        sim.setup()
        # Lose gwModule after setup: the FORWARD tuple has nowhere to go
        sim.router.set_placement(Placement("pipeline", {"edgeModule": edge}))

        with caplog.at_level(logging.WARNING, logger="fogsim.core.router"):
            ctx.queue.run(sim.handle)

        assert sim.router.stats["dropped"] == 1
        assert sim.router.stats["terminated"] == 0
        assert "gwModule" in caplog.text

    def test_missing_actuator_drops_tuple(self, three_tier, pipeline_app, caplog):
        topo, cloud, gateway, edge = three_tier
        ctx = SimulationContext(seed=1, topology=topo)
        ctx.add_application(pipeline_app, StaticPlacement(
            ModuleMapping({"edgeModule": "edge", "gwModule": "gateway"})))
        ctx.attach_sensor(edge, "SENSE", DeterministicDistribution(100.0), max_emissions=2)

        with caplog.at_level(logging.WARNING, logger="fogsim.core.router"):
            report = Simulation(ctx).run()
        assert report.dropped == 2
        assert report.processed == 4
        assert "ACT" in caplog.text


class TestActuators:
    def test_nearest_actuator_receives(self, three_tier, pipeline_app):
        topo, cloud, gateway, edge = three_tier
        ctx = build_context(three_tier, pipeline_app, max_emissions=2)
        far = ctx.attach_actuator(cloud, "ACT", latency=0.0, name="far")
        report = Simulation(ctx).run()
        assert report.delivered["a-ACT-0"] == 2
        assert report.delivered["far"] == 0
        assert far.delivered == 0

    def test_terminated_state(self, three_tier, pipeline_app):
        ctx = build_context(three_tier, pipeline_app, max_emissions=1)
        sim = Simulation(ctx)
        seen = []
        original = sim.router._terminate

        def spy(tup, actuator, now):
            original(tup, actuator, now)
            seen.append(tup)

        sim.router._terminate = spy
        sim.run()
        assert len(seen) == 1
        assert seen[0].state is TupleState.TERMINATED
        assert seen[0].tuple_type == "COMMAND"
        assert seen[0].path == [three_tier[2]]
