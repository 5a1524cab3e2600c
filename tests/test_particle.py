import numpy as np
import pytest

from config import SimulationConfig
from particle import ParticleSystem, charge_sign, initial_particle_state


def test_charge_sign_alternates_starting_positive():
    assert [charge_sign(i) for i in range(5)] == [1.0, -1.0, 1.0, -1.0, 1.0]


def test_initial_state_is_pure_function_of_index_and_seed():
    assert initial_particle_state(17, 99, 800.0, 600.0) == initial_particle_state(17, 99, 800.0, 600.0)
    assert initial_particle_state(17, 99, 800.0, 600.0) != initial_particle_state(17, 100, 800.0, 600.0)
    assert initial_particle_state(17, 99, 800.0, 600.0) != initial_particle_state(18, 99, 800.0, 600.0)


def test_initial_state_ranges():
    for index in range(200):
        x, y, vx, vy, charge = initial_particle_state(index, 5, 800.0, 600.0)
        assert 0.0 <= x < 800.0
        assert 0.0 <= y < 600.0
        assert -0.5 <= vx < 0.5
        assert -0.5 <= vy < 0.5
        assert 0.5 <= abs(charge) < 2.0
        assert np.sign(charge) == charge_sign(index)


def test_from_config_builds_seeded_store(small_config):
    first = ParticleSystem.from_config(small_config)
    second = ParticleSystem.from_config(small_config)

    assert first.particle_count == small_config.particle_count
    assert first.positions.shape == (37, 2)
    assert first.velocities.shape == (37, 2)
    assert first.forces.shape == (37, 2)
    assert first.charges.shape == (37,)
    assert np.all(first.forces == 0.0)
    np.testing.assert_array_equal(first.positions, second.positions)
    np.testing.assert_array_equal(first.charges, second.charges)


def test_store_prefix_does_not_depend_on_particle_count(small_config):
    small = ParticleSystem.from_config(small_config)
    larger = ParticleSystem.from_config(SimulationConfig(
        particle_count=50, cycles=1, width=400.0, height=300.0, seed=small_config.seed
    ))
    np.testing.assert_array_equal(small.positions, larger.positions[:37])


def test_mismatched_arrays_are_rejected():
    with pytest.raises(ValueError):
        ParticleSystem(np.zeros((3, 2)), np.zeros((2, 2)), np.zeros(3))


def test_reset_forces_range():
    particles = ParticleSystem(np.zeros((4, 2)), np.zeros((4, 2)), np.ones(4))
    particles.forces[:] = 1.0

    particles.reset_forces(1, 3)

    np.testing.assert_array_equal(particles.forces[:, 0], [1.0, 0.0, 0.0, 1.0])


def test_store_owns_its_arrays():
    positions = np.array([[1.0, 2.0]])
    particles = ParticleSystem(positions, [[0.0, 0.0]], [1.0])
    positions[0, 0] = 9.0
    assert particles.positions[0, 0] == 1.0
