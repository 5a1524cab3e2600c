import logging

import numpy as np
import pytest

from config import ExecutionMode, SimulationConfig
from particle import ParticleSystem


@pytest.fixture
def small_config():
    return SimulationConfig(
        particle_count=37,
        cycles=5,
        width=400.0,
        height=300.0,
        seed=1234,
        mode=ExecutionMode.SEQUENTIAL,
    )


@pytest.fixture
def two_particle_config():
    return SimulationConfig(
        particle_count=2,
        cycles=1,
        width=800.0,
        height=600.0,
        seed=0,
        min_distance=5.0,
        boundary_charge=0.0,
        mode=ExecutionMode.SEQUENTIAL,
    )


@pytest.fixture
def repelling_pair():
    """Two positive unit charges at rest on the line y = 300."""
    return ParticleSystem(
        positions=[[10.0, 300.0], [50.0, 300.0]],
        velocities=np.zeros((2, 2)),
        charges=[1.0, 1.0],
    )


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
