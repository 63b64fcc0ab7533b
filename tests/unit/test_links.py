"""Unit tests for directed links and bandwidth contention."""

import pytest

from fogsim.core.errors import RoutingError
from fogsim.core.links import Link, LinkTable


class TestLink:
    """Tests for Link."""

    def test_transmission_time_ms(self):
        link = Link(0, 1, bandwidth=1000.0, latency=2.0)
        assert link.transmission_time(500) == pytest.approx(500.0)

    def test_empty_payload_is_free(self):
        link = Link(0, 1, bandwidth=0.0, latency=2.0)
        assert link.transmission_time(0) == 0.0

    def test_zero_bandwidth(self):
        link = Link(0, 1, bandwidth=0.0, latency=2.0)
        with pytest.raises(RoutingError):
            link.transmission_time(10)

    def test_queueing_delay(self):
        link = Link(0, 1, bandwidth=1000.0, latency=0.0, busy_until=30.0)
        assert link.queueing_delay(10.0) == 20.0
        assert link.queueing_delay(40.0) == 0.0


class TestLinkTable:
    """Tests for LinkTable."""

    def test_uplink_uses_child_bandwidth(self, three_tier):
        topo, cloud, gateway, edge = three_tier
        table = LinkTable(topo)
        up = table.link(gateway, cloud)
        assert up.bandwidth == topo.get(gateway).up_bw
        assert up.latency == 50.0

    def test_downlink_uses_parent_bandwidth(self, three_tier):
        topo, cloud, gateway, edge = three_tier
        table = LinkTable(topo)
        down = table.link(cloud, gateway)
        assert down.bandwidth == topo.get(cloud).down_bw
        assert down.latency == 50.0

    def test_links_are_directed(self, three_tier):
        topo, cloud, gateway, edge = three_tier
        table = LinkTable(topo)
        assert table.link(edge, gateway) is not table.link(gateway, edge)
        assert table.link(edge, gateway) is table.link(edge, gateway)

    def test_non_adjacent(self, three_tier):
        topo, cloud, gateway, edge = three_tier
        with pytest.raises(RoutingError):
            LinkTable(topo).link(edge, cloud)

    def test_send_arrival_time(self, three_tier):
        topo, cloud, gateway, edge = three_tier
        table = LinkTable(topo)
        # 500 bytes at 1000 B/s plus 2 ms latency
        assert table.send(edge, gateway, 500, now=100.0) == pytest.approx(602.0)

    def test_contention_serialises_transfers(self, three_tier):
        topo, cloud, gateway, edge = three_tier
        table = LinkTable(topo)
        first = table.send(edge, gateway, 500, now=0.0)
        second = table.send(edge, gateway, 500, now=100.0)
        assert first == pytest.approx(502.0)
        assert second == pytest.approx(1002.0)
        link = table.link(edge, gateway)
        assert link.transfers == 2
        assert link.bytes_sent == 1000

    def test_opposite_directions_do_not_contend(self, three_tier):
        topo, cloud, gateway, edge = three_tier
        table = LinkTable(topo)
        table.send(edge, gateway, 500, now=0.0)
        assert table.send(gateway, edge, 500, now=0.0) == pytest.approx(502.0)

    def test_latency_override(self, three_tier):
        topo, cloud, gateway, edge = three_tier
        table = LinkTable(topo)
        assert table.send(edge, gateway, 0, now=0.0, latency=12.5) == pytest.approx(12.5)

    def test_reset(self, three_tier):
        topo, cloud, gateway, edge = three_tier
        table = LinkTable(topo)
        table.send(edge, gateway, 500, now=0.0)
        table.reset()
        assert table.links() == []
        assert table.link(edge, gateway).busy_until == 0.0
