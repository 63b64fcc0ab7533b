#!/usr/bin/env python3
"""
Demo: Vehicular Fog with Moving Nodes

A car and a bus carry fog nodes and hang off a roadside unit (RSU) under
the cloud. Each vehicle runs a camera sensor whose frames are analysed
edge-ward. As a vehicle drives away from the RSU its uplink latency grows
with distance, which shows up in the loop latency.

Positions come from a simple waypoint provider defined here. Trace
generation is not part of the engine: it only asks where a node is.

Output: output/demo_vehicular/latency.png
"""

from dataclasses import dataclass
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

from fogsim.core import (
    Application,
    Direction,
    EdgewardPlacement,
    ExponentialDistribution,
    FractionalSelectivity,
    FrozenDistribution,
    Location,
    Simulation,
    SimulationConfig,
    SimulationContext,
)


@dataclass
class WaypointProvider:
    """Linear interpolation between timed waypoints; static nodes use a fixed spot."""

    routes: dict[int, list[tuple[float, Location]]]
    fixed: dict[int, Location]

    def current_position(self, node_id: int, time_ms: float) -> Location | None:
        if node_id in self.fixed:
            return self.fixed[node_id]
        route = self.routes.get(node_id)
        if not route:
            return None
        times = np.array([t for t, _ in route])
        lats = np.array([loc.latitude for _, loc in route])
        lons = np.array([loc.longitude for _, loc in route])
        return Location(float(np.interp(time_ms, times, lats)), float(np.interp(time_ms, times, lons)))


def build_context(propagated: bool, seed: int = 7) -> SimulationContext:
    ctx = SimulationContext(seed=seed)
    topo = ctx.topology
    cloud = topo.create_node("cloud", mips=44800, ram=40000, up_bw=100000, down_bw=100000,
                             busy_power=1648, idle_power=1332)
    rsu = topo.create_node("RSUGateway", mips=5000, ram=16384, up_bw=25000, down_bw=12500,
                           busy_power=16 * 83.25, idle_power=16 * 83.25)
    topo.set_parent(rsu, cloud, uplink_latency=100.0)
    car = topo.create_node("CarFogNode", mips=2000, ram=4096, up_bw=10000, down_bw=5000,
                           rate_per_mips=0.01, busy_power=16 * 103, idle_power=16 * 83.25, mobile=True)
    topo.set_parent(car, rsu, uplink_latency=4.0)
    bus = topo.create_node("BusFogNode", mips=3000, ram=8192, up_bw=15000, down_bw=7500,
                           rate_per_mips=0.01, busy_power=16 * 103, idle_power=16 * 83.25, mobile=True)
    topo.set_parent(bus, rsu, uplink_latency=4.0)

    app = Application("traffic")
    app.add_module("frameFilter", 1500)
    app.add_module("hazardDetector", 2500)
    app.add_module("coordinator", 10000)
    app.add_sensor("CAMERA")
    app.add_actuator("BRAKE_ASSIST")
    app.add_edge("CAMERA", "frameFilter", 300, 20000, "FRAME", Direction.UP)
    app.add_edge("frameFilter", "hazardDetector", 2000, 4000, "CANDIDATE", Direction.UP)
    app.add_edge("hazardDetector", "coordinator", 500, 500, "HAZARD", Direction.UP)
    app.add_edge("coordinator", "BRAKE_ASSIST", 50, 100, "WARNING", Direction.DOWN)
    app.add_selectivity("FRAME", "CANDIDATE", FractionalSelectivity(0.5))
    app.add_selectivity("CANDIDATE", "HAZARD", FractionalSelectivity(0.3))
    app.add_selectivity("HAZARD", "WARNING", FractionalSelectivity(1.0))
    app.define_loop(["CAMERA", "frameFilter", "hazardDetector"], name="detection")
    app.define_loop(["hazardDetector", "coordinator", "BRAKE_ASSIST"], name="warning")
    ctx.add_application(app, EdgewardPlacement())

    # The bus camera runs at a burstier gamma-distributed frame rate
    ctx.attach_sensor(car, "FRAME", ExponentialDistribution(200.0), latency=1.0)
    ctx.attach_sensor(bus, "FRAME", FrozenDistribution.from_name("gamma", a=0.5, scale=400.0), latency=1.0)
    for node in (car, bus):
        ctx.attach_actuator(node, "BRAKE_ASSIST", latency=1.0)

    if propagated:
        ctx.mobility = WaypointProvider(
            routes={
                car: [(0.0, Location(-37.8134, 144.9523)), (60_000.0, Location(-37.8400, 144.9900))],
                bus: [(0.0, Location(-37.8100, 144.9600)), (30_000.0, Location(-37.8160, 144.9750)),
                      (60_000.0, Location(-37.8100, 144.9600))],
            },
            fixed={rsu: Location(-37.8150, 144.9650), cloud: Location(-33.8688, 151.2093)},
        )
    return ctx


def main():
    print("=" * 60)
    print("  VEHICULAR FOG WITH MOBILITY")
    print("=" * 60)

    config = SimulationConfig(until_ms=60_000, propagation_ms_per_km=0.5, mobility_interval_ms=5000)
    results = {}
    for label, propagated in (("static links", False), ("distance-aware links", True)):
        print(f"\n-- {label} --")
        report = Simulation(build_context(propagated), config).run()
        results[label] = report
        for loop_id, avg in report.loop_averages.items():
            shown = "no data" if avg is None else f"{avg:.2f} ms"
            print(f"   {loop_id:<10}: {shown}")
        print(f"   warnings delivered: {report.delivered}")
        print(f"   vehicle energy: {report.total_energy(['CarFogNode', 'BusFogNode']):.1f} J")

    print("\nCreating visualization...")
    fig, ax = plt.subplots(figsize=(8, 5))
    loops = list(next(iter(results.values())).loop_averages)
    x = np.arange(len(loops))
    width = 0.35
    for i, (label, report) in enumerate(results.items()):
        values = [report.loop_averages[l] or 0.0 for l in loops]
        ax.bar(x + i * width, values, width, label=label)
    ax.set_xticks(x + width / 2)
    ax.set_xticklabels(loops)
    ax.set_ylabel("Average loop latency (ms)")
    ax.legend()
    ax.grid(True, axis="y", alpha=0.3)

    output_dir = Path("output/demo_vehicular")
    output_dir.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_dir / "latency.png", dpi=150, bbox_inches="tight")
    plt.close(fig)
    print(f"   Saved to {output_dir / 'latency.png'}")


if __name__ == "__main__":
    main()
