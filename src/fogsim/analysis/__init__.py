"""
Analysis layer: derived quantities over a finished run.

Nothing here is seen by the engine while it runs.
"""

from fogsim.analysis.report import SimulationReport

__all__ = ["SimulationReport"]
