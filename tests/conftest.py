from pathlib import Path
import sys

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest

from circsim.core.engine import SimulationEngine
from circsim.core.state import SimulationConfig
from circsim.logging_config import reset_logging
from circsim.physiology.params import SimulationParameters


@pytest.fixture(autouse=True)
def clean_logging():
    """Entry points install handlers on the package logger; drop them after each test."""
    yield
    reset_logging()


@pytest.fixture
def default_params():
    """Reference adult parameter set (HR 60, competent valves)."""
    return SimulationParameters()


@pytest.fixture
def engine():
    """Started engine with a single default instance."""
    sim = SimulationEngine(SimulationConfig())
    sim.add_instance()
    sim.start()
    return sim


@pytest.fixture
def run_steps():
    """Helper to run a fixed number of physics steps, bypassing the scheduler."""
    def _run(sim, steps):
        for _ in range(int(steps)):
            sim.step()
        return sim

    return _run
