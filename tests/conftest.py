"""Pytest fixtures for export pipeline tests."""

import shutil
import tempfile

import pytest

# Add src directory to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from simexport.model import ConcentrationIncarnation, SimpleEnvironment
from simexport.statistics import default_registry


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp = tempfile.mkdtemp()
    yield temp
    shutil.rmtree(temp, ignore_errors=True)


@pytest.fixture
def incarnation():
    """Create a concentration-backed incarnation."""
    return ConcentrationIncarnation()


@pytest.fixture
def registry():
    """Create a registry holding the standard statistics."""
    return default_registry()


@pytest.fixture
def empty_environment(incarnation):
    """Create an environment without nodes."""
    return SimpleEnvironment(incarnation)


@pytest.fixture
def two_node_environment(incarnation):
    """Create two nodes with reference values [2, 4] and actual values [3, 7]."""
    env = SimpleEnvironment(incarnation)
    env.add_node({"reference": 2.0, "actual": 3.0})
    env.add_node({"reference": 4.0, "actual": 7.0})
    return env


@pytest.fixture
def sample_environment(incarnation):
    """Create a small environment with scalar and structured concentrations."""
    env = SimpleEnvironment(incarnation)
    for i in range(10):
        env.add_node({
            "temperature": 20.0 + i,
            "sensor": {"reading": float(i), "error": 0.1 * i},
            "active": i % 2 == 0,
        })
    return env


class FakeReaction:
    """Stand-in for the engine's firing event."""

    def __init__(self, name: str = "reaction") -> None:
        self.name = name


@pytest.fixture
def reaction():
    """Create a firing event."""
    return FakeReaction()
