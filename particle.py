# particle.py
"""
Manages the state of all particles in the simulation.

This module defines the ParticleSystem class, the particle store shared by
every execution strategy. Particle state lives in NumPy arrays indexed by
particle number; the index is the particle's identity and never changes
during a run.
"""
import logging
import numpy as np
from typing import Tuple

from config import SimulationConfig

# --- Data Contracts ---
#
# initial_particle_state(index, seed, width, height) -> (x, y, vx, vy, charge):
#   - Pure: the same (index, seed, width, height) always yields the same
#     particle, independent of how many particles are created or in what
#     order.
#   - Invariants: 0 <= x < width, 0 <= y < height, -0.5 <= vx, vy < 0.5,
#     0.5 <= |charge| < 2.0, sign(charge) == charge_sign(index).
#
# class ParticleSystem:
#   - __init__(self, positions, velocities, charges):
#     - Inputs: array-likes of shape (N, 2), (N, 2) and (N,).
#     - Side Effects: Copies the inputs into float64 arrays and allocates a
#       zeroed force array.
#     - Invariants:
#       - self.positions, self.velocities, self.forces are (N, 2) float64.
#       - self.charges is (N,) float64 and is never modified by the physics.


def charge_sign(index: int) -> float:
    """Charges alternate in sign by creation order, starting positive."""
    return 1.0 if index % 2 == 0 else -1.0


def initial_particle_state(
    index: int, seed: int, width: float, height: float
) -> Tuple[float, float, float, float, float]:
    """
    Draws the starting state of one particle from a stream keyed by
    (seed, index).
    """
    rng = np.random.default_rng([seed, index])
    x, y, vx, vy, strength = rng.random(5)
    return (
        x * width,
        y * height,
        vx - 0.5,
        vy - 0.5,
        (0.5 + strength * 1.5) * charge_sign(index),
    )


class ParticleSystem:
    """
    A container for all particles, managing their state via NumPy arrays.
    """
    def __init__(self, positions, velocities, charges):
        self.positions = np.array(positions, dtype=np.float64).reshape(-1, 2)
        self.velocities = np.array(velocities, dtype=np.float64).reshape(-1, 2)
        self.charges = np.array(charges, dtype=np.float64).reshape(-1)
        self.particle_count = self.positions.shape[0]

        if self.velocities.shape[0] != self.particle_count or self.charges.shape[0] != self.particle_count:
            msg = (
                f"Particle arrays disagree on particle count: positions {self.positions.shape}, "
                f"velocities {self.velocities.shape}, charges {self.charges.shape}."
            )
            logging.critical(msg)
            raise ValueError(msg)

        self.forces = np.zeros((self.particle_count, 2), dtype=np.float64)

    @classmethod
    def from_config(cls, config: SimulationConfig) -> "ParticleSystem":
        """Creates the seeded initial particle set described by the config."""
        states = np.array(
            [
                initial_particle_state(i, config.seed, config.width, config.height)
                for i in range(config.particle_count)
            ],
            dtype=np.float64,
        )
        particles = cls(states[:, 0:2], states[:, 2:4], states[:, 4])

        logging.info(
            f"ParticleSystem initialized with {particles.particle_count} "
            f"particles (seed {config.seed})."
        )
        logging.debug(
            f"Particle data arrays created. "
            f"Positions shape: {particles.positions.shape}, "
            f"Velocities shape: {particles.velocities.shape}, "
            f"Charges shape: {particles.charges.shape}"
        )
        return particles

    def reset_forces(self, start: int = 0, end: int = None) -> None:
        """Zeroes the accumulated forces of particles [start, end)."""
        self.forces[start:end] = 0.0
