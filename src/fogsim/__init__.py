"""
fogsim: hierarchical fog-computing discrete-event simulation engine.

A tree of heterogeneous compute nodes runs application graphs whose tuples
are routed and transformed probabilistically across the tree. The engine
reports per-loop end-to-end latency and per-node energy.

Core concepts:
- Topology: cloud at the root, gateways and edge devices below it
- Application: modules joined by typed edges, gated by selectivity
- Placement: static or edge-ward mapping of modules onto nodes
- Router: events move tuples over contended links and through node queues
- Accounting: busy/idle energy integration and loop latency averages
"""

__version__ = "0.1.0"
