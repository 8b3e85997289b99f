"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest

# Add the project root to the path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from galaxygen import GalaxyGenerator, GalaxyParameters, PointCloudScene  # noqa: E402


@pytest.fixture
def scene():
    """Headless scene that records attach / detach / release calls."""
    return PointCloudScene()


@pytest.fixture
def rng():
    """Seeded random source so coordinates are reproducible per test."""
    return np.random.default_rng(1234)


@pytest.fixture
def generator(scene, rng):
    return GalaxyGenerator(scene, rng=rng)


@pytest.fixture
def small_params():
    """Default shape with a particle count small enough for quick tests."""
    return GalaxyParameters(count=2_000)


@pytest.fixture
def spiral_params():
    """The 100-particle, zero-randomness red-to-blue scenario."""
    return GalaxyParameters(
        count=100,
        radius=5.0,
        branch_count=3,
        spin=1.0,
        randomness=0.0,
        randomness_power=3.0,
        inward_color="#ff0000",
        outward_color="#0000ff",
    )
