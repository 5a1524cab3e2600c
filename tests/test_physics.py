import numpy as np
import pytest

import physics
from constants import SLOW_DOWN, BOUNCE_FACTOR
from particle import ParticleSystem


def test_pair_force_is_antisymmetric():
    rng = np.random.default_rng(7)
    for _ in range(50):
        xi, yi, xj, yj = rng.uniform(0, 100, 4)
        qi, qj = rng.uniform(-2, 2, 2)
        fij = physics.pair_force(xi, yi, qi, xj, yj, qj, 5.0)
        fji = physics.pair_force(xj, yj, qj, xi, yi, qi, 5.0)
        assert fij[0] == -fji[0]
        assert fij[1] == -fji[1]


def test_like_charges_repel_and_opposite_charges_attract():
    fx, fy = physics.pair_force(0.0, 0.0, 1.0, 10.0, 0.0, 1.0, 1.0)
    assert fx < 0.0
    assert fy == 0.0

    fx, _ = physics.pair_force(0.0, 0.0, 1.0, 10.0, 0.0, -1.0, 1.0)
    assert fx > 0.0


def test_pair_force_follows_inverse_square():
    fx, _ = physics.pair_force(0.0, 0.0, 2.0, 20.0, 0.0, 1.5, 1.0)
    assert fx == pytest.approx(-(2.0 * 1.5) / 400.0)


def test_pair_force_clamps_distance_below_minimum():
    # Coincident particles: finite, zero force along a zero direction.
    fx, fy = physics.pair_force(5.0, 5.0, 1.0, 5.0, 5.0, 1.0, 5.0)
    assert np.isfinite(fx) and np.isfinite(fy)
    assert fx == 0.0 and fy == 0.0

    # Closer than min_distance behaves as if at min_distance.
    fx, _ = physics.pair_force(0.0, 0.0, 1.0, 1.0, 0.0, 1.0, 5.0)
    assert fx == pytest.approx(-(1.0 / 25.0) * (1.0 / 5.0))


def test_accumulate_pair_forces_adds_equal_and_opposite():
    positions = np.array([[0.0, 0.0], [3.0, 4.0]])
    charges = np.array([1.0, -2.0])
    out = np.zeros((2, 2))

    physics.accumulate_pair_forces(positions, charges, 0, 2, 1.0, out)

    fx, fy = physics.pair_force(0.0, 0.0, 1.0, 3.0, 4.0, -2.0, 1.0)
    np.testing.assert_array_equal(out[0], [fx, fy])
    np.testing.assert_array_equal(out[1], [-fx, -fy])
    assert fx != 0.0 and fy != 0.0


def test_total_pair_force_vanishes():
    rng = np.random.default_rng(3)
    positions = rng.uniform(0, 200, (40, 2))
    charges = rng.uniform(-2, 2, 40)
    out = np.zeros((40, 2))

    physics.accumulate_pair_forces(positions, charges, 0, 40, 5.0, out)

    np.testing.assert_allclose(out.sum(axis=0), 0.0, atol=1e-12)


def test_slice_forces_match_pair_forces():
    rng = np.random.default_rng(11)
    positions = rng.uniform(0, 200, (25, 2))
    charges = rng.uniform(-2, 2, 25)
    pairwise = np.zeros((25, 2))
    sliced = np.zeros((25, 2))

    physics.accumulate_pair_forces(positions, charges, 0, 25, 5.0, pairwise)
    physics.accumulate_slice_forces(positions, charges, 10, 20, 5.0, sliced)

    np.testing.assert_allclose(sliced[10:20], pairwise[10:20], rtol=1e-12, atol=1e-12)
    assert np.all(sliced[:10] == 0.0)
    assert np.all(sliced[20:] == 0.0)


@pytest.mark.parametrize(
    "x, y, expected_sign",
    [
        (5.0, 150.0, (1.0, 0.0)),    # left wall pushes right
        (395.0, 150.0, (-1.0, 0.0)), # right wall pushes left
        (200.0, 5.0, (0.0, 1.0)),    # ceiling pushes down
        (200.0, 295.0, (0.0, -1.0)), # floor pushes up
    ],
)
def test_boundary_force_points_away_from_walls(x, y, expected_sign):
    fx, fy = physics.boundary_force(x, y, 400.0, 300.0, 1000.0)
    assert np.sign(fx) == expected_sign[0]
    assert np.sign(fy) == expected_sign[1]
    assert abs(fx) + abs(fy) == pytest.approx(1000.0 / 25.0)


def test_boundary_force_is_zero_outside_margin():
    assert physics.boundary_force(200.0, 150.0, 400.0, 300.0, 1000.0) == (0.0, 0.0)


def test_boundary_force_clamps_wall_distance():
    fx, _ = physics.boundary_force(0.0, 150.0, 400.0, 300.0, 1000.0)
    assert fx == pytest.approx(1000.0)
    fx, _ = physics.boundary_force(0.25, 150.0, 400.0, 300.0, 1000.0)
    assert fx == pytest.approx(1000.0)


def test_apply_boundary_forces_accumulates():
    positions = np.array([[5.0, 150.0], [200.0, 150.0]])
    forces = np.array([[1.0, 1.0], [1.0, 1.0]])

    physics.apply_boundary_forces(positions, forces, 0, 2, 400.0, 300.0, 100.0)

    np.testing.assert_allclose(forces[0], [1.0 + 100.0 / 25.0, 1.0])
    np.testing.assert_allclose(forces[1], [1.0, 1.0])


def test_merge_scratch_sums_only_the_given_range():
    scratch = np.arange(3 * 4 * 2, dtype=np.float64).reshape(3, 4, 2)
    forces = np.zeros((4, 2))

    physics.merge_scratch(scratch, 1, 3, forces)

    np.testing.assert_allclose(forces[1:3], scratch[:, 1:3].sum(axis=0))
    assert np.all(forces[0] == 0.0) and np.all(forces[3] == 0.0)


def _integrate(particles, width=400.0, height=300.0, damping=1.0, clumping=False, max_speed=5.0):
    physics.integrate(
        particles.positions, particles.velocities, particles.forces,
        0, particles.particle_count, width, height, damping, clumping, max_speed
    )


def test_integrate_applies_force_then_velocity():
    particles = ParticleSystem([[100.0, 100.0]], [[1.0, -1.0]], [1.0])
    particles.forces[:] = [[2.0, 4.0]]

    _integrate(particles)

    expected_velocity = np.array([1.0 + 2.0 * SLOW_DOWN, -1.0 + 4.0 * SLOW_DOWN])
    np.testing.assert_allclose(particles.velocities[0], expected_velocity)
    np.testing.assert_allclose(particles.positions[0], [100.0, 100.0] + expected_velocity * SLOW_DOWN)
    # Forces are left for the caller to reset.
    np.testing.assert_array_equal(particles.forces[0], [2.0, 4.0])


def test_integrate_clamps_speed_preserving_direction():
    particles = ParticleSystem([[100.0, 100.0]], [[30.0, 40.0]], [1.0])

    _integrate(particles, max_speed=5.0)

    np.testing.assert_allclose(particles.velocities[0], [3.0, 4.0])
    assert np.linalg.norm(particles.velocities[0]) <= 5.0 + 1e-12


def test_integrate_damps_only_when_clumping():
    damped = ParticleSystem([[100.0, 100.0]], [[1.0, 1.0]], [1.0])
    undamped = ParticleSystem(damped.positions, damped.velocities, damped.charges)

    _integrate(damped, damping=0.5, clumping=True)
    _integrate(undamped, damping=0.5, clumping=False)

    np.testing.assert_allclose(damped.velocities[0], [0.5, 0.5])
    np.testing.assert_allclose(undamped.velocities[0], [1.0, 1.0])


def test_integrate_bounces_inelastically_off_walls():
    particles = ParticleSystem(
        [[0.1, 150.0], [399.9, 150.0], [200.0, 0.1], [200.0, 299.9]],
        [[-2.0, 0.0], [2.0, 0.0], [0.0, -2.0], [0.0, 2.0]],
        [1.0, 1.0, 1.0, 1.0],
    )

    _integrate(particles)

    np.testing.assert_allclose(particles.positions, [[0.0, 150.0], [400.0, 150.0], [200.0, 0.0], [200.0, 300.0]])
    np.testing.assert_allclose(
        particles.velocities,
        [[2.0 * BOUNCE_FACTOR, 0.0], [-2.0 * BOUNCE_FACTOR, 0.0], [0.0, 2.0 * BOUNCE_FACTOR], [0.0, -2.0 * BOUNCE_FACTOR]],
    )


def test_integrate_touches_only_its_range():
    particles = ParticleSystem([[10.0, 10.0], [20.0, 20.0]], [[1.0, 1.0], [1.0, 1.0]], [1.0, -1.0])

    physics.integrate(
        particles.positions, particles.velocities, particles.forces,
        1, 2, 400.0, 300.0, 1.0, False, 5.0
    )

    np.testing.assert_array_equal(particles.positions[0], [10.0, 10.0])
    assert particles.positions[1, 0] != 20.0
