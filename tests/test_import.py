"""Basic import tests to verify package structure."""


def test_import_fogsim():
    """Verify main package imports."""
    import fogsim
    assert fogsim.__version__ == "0.1.0"


def test_import_core():
    """Verify core module structure exists."""
    from fogsim import core
    assert hasattr(core, "__doc__")
    assert hasattr(core, "Simulation")


def test_import_analysis():
    """Verify analysis module structure exists."""
    from fogsim import analysis
    assert hasattr(analysis, "SimulationReport")
