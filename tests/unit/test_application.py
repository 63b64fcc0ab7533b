"""Unit tests for the application graph, selectivity gates and loops."""

import numpy as np
import pytest

from fogsim.core.application import (
    Application,
    Direction,
    EdgeKind,
    FractionalSelectivity,
    PredicateSelectivity,
)
from fogsim.core.errors import (
    ConfigurationError,
    DuplicateModule,
    DuplicateSelectivity,
    UnknownStage,
)


@pytest.fixture
def bare_app():
    app = Application("app")
    app.add_module("a", 100)
    app.add_module("b", 100)
    app.add_sensor("S")
    app.add_actuator("A")
    return app


class TestBuilder:
    def test_duplicate_module(self, bare_app):
        with pytest.raises(DuplicateModule) as exc:
            bare_app.add_module("a", 10)
        assert exc.value.module == "a"
        assert exc.value.app_id == "app"

    def test_edge_unknown_stage(self, bare_app):
        with pytest.raises(UnknownStage) as exc:
            bare_app.add_edge("a", "ghost", 10, 10, "T")
        assert exc.value.stage == "ghost"

    def test_edge_kinds(self, bare_app):
        assert bare_app.add_edge("S", "a", 1, 1, "IN").kind is EdgeKind.SENSOR
        assert bare_app.add_edge("a", "b", 1, 1, "MID").kind is EdgeKind.MODULE
        assert bare_app.add_edge("b", "A", 1, 1, "OUT", Direction.DOWN).kind is EdgeKind.ACTUATOR

    def test_actuator_cannot_emit(self, bare_app):
        with pytest.raises(ConfigurationError):
            bare_app.add_edge("A", "a", 1, 1, "BAD")

    def test_sensor_cannot_receive(self, bare_app):
        with pytest.raises(ConfigurationError):
            bare_app.add_edge("a", "S", 1, 1, "BAD")

    def test_sensor_to_actuator_rejected(self, bare_app):
        with pytest.raises(ConfigurationError):
            bare_app.add_edge("S", "A", 1, 1, "BAD")

    def test_tuple_type_names_one_edge(self, bare_app):
        bare_app.add_edge("a", "b", 1, 1, "T")
        with pytest.raises(ConfigurationError):
            bare_app.add_edge("b", "a", 1, 1, "T")

    def test_negative_costs_rejected(self, bare_app):
        with pytest.raises(ConfigurationError):
            bare_app.add_edge("a", "b", -1, 1, "T")

    def test_stage_names_are_unique(self, bare_app):
        with pytest.raises(ConfigurationError):
            bare_app.add_sensor("a")
        with pytest.raises(ConfigurationError):
            bare_app.add_module("S", 10)

    def test_configuration_errors_are_value_errors(self, bare_app):
        with pytest.raises(ValueError):
            bare_app.add_module("a", 10)


class TestSelectivity:
    def test_fractional_bounds(self):
        with pytest.raises(ValueError):
            FractionalSelectivity(1.5)
        with pytest.raises(ValueError):
            FractionalSelectivity(-0.1)

    def test_fractional_extremes(self, rng):
        always = FractionalSelectivity(1.0)
        never = FractionalSelectivity(0.0)
        assert all(always.select(None, rng) for _ in range(200))
        assert not any(never.select(None, rng) for _ in range(200))

    def test_fractional_rate(self, rng):
        gate = FractionalSelectivity(0.3)
        hits = sum(gate.select(None, rng) for _ in range(10000))
        assert hits / 10000 == pytest.approx(0.3, abs=0.02)

    def test_fractional_is_reproducible(self):
        gate = FractionalSelectivity(0.5)
        r1, r2 = np.random.default_rng(7), np.random.default_rng(7)
        assert [gate.select(None, r1) for _ in range(50)] == [gate.select(None, r2) for _ in range(50)]

    def test_callable_wrapped_as_predicate(self, bare_app):
        bare_app.add_edge("S", "a", 1, 1, "IN")
        bare_app.add_edge("a", "b", 1, 1, "MID")
        bare_app.add_selectivity("IN", "MID", lambda tup: tup.payload["HR"] > 100)
        gate = bare_app.gate("IN", "MID")
        assert isinstance(gate, PredicateSelectivity)

    def test_duplicate_gate(self, bare_app):
        bare_app.add_edge("S", "a", 1, 1, "IN")
        bare_app.add_edge("a", "b", 1, 1, "MID")
        bare_app.add_selectivity("IN", "MID", FractionalSelectivity(0.5))
        with pytest.raises(DuplicateSelectivity):
            bare_app.add_selectivity("IN", "MID", FractionalSelectivity(0.2))

        replacement = FractionalSelectivity(0.2)
        bare_app.add_selectivity("IN", "MID", replacement, replace=True)
        assert bare_app.gate("IN", "MID") is replacement

    def test_gate_requires_connected_edges(self, bare_app):
        bare_app.add_edge("S", "a", 1, 1, "IN")
        bare_app.add_edge("b", "A", 1, 1, "OUT", Direction.DOWN)
        with pytest.raises(ConfigurationError):
            bare_app.add_selectivity("IN", "OUT", FractionalSelectivity(1.0))

    def test_missing_gate_is_none(self, pipeline_app):
        assert pipeline_app.gate("SENSE", "COMMAND") is None


class TestLoops:
    def test_loop_defaults_to_joined_name(self, bare_app):
        loop = bare_app.define_loop(["a", "b"])
        assert loop.loop_id == "a->b"
        assert loop.start == "a"
        assert loop.end == "b"

    def test_loop_unknown_stage(self, bare_app):
        with pytest.raises(UnknownStage):
            bare_app.define_loop(["a", "nope"])

    def test_loop_too_short(self, bare_app):
        with pytest.raises(ConfigurationError):
            bare_app.define_loop(["a"])

    def test_duplicate_loop(self, bare_app):
        bare_app.define_loop(["a", "b"], name="l")
        with pytest.raises(ConfigurationError):
            bare_app.define_loop(["b", "a"], name="l")


class TestQueries:
    def test_module_order_follows_data_flow(self):
        app = Application("chain")
        app.add_module("late", 1)
        app.add_module("early", 1)
        app.add_sensor("S")
        app.add_edge("S", "early", 1, 1, "IN")
        app.add_edge("early", "late", 1, 1, "MID")
        assert app.module_order() == ["early", "late"]

    def test_module_order_keeps_cycles(self):
        app = Application("cyclic")
        app.add_module("x", 1)
        app.add_module("y", 1)
        app.add_edge("x", "y", 1, 1, "XY")
        app.add_edge("y", "x", 1, 1, "YX")
        assert app.module_order() == ["x", "y"]

    def test_outgoing_and_incoming(self, pipeline_app):
        assert [e.tuple_type for e in pipeline_app.outgoing("edgeModule")] == ["FORWARD"]
        assert [e.tuple_type for e in pipeline_app.incoming("edgeModule")] == ["SENSE"]

    def test_unknown_edge(self, pipeline_app):
        with pytest.raises(ConfigurationError):
            pipeline_app.edge("NOPE")
