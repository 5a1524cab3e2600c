# physics.py
"""
Force kernel and integrator shared by every execution strategy.

All functions here are Numba-jitted and operate on plain NumPy arrays and
half-open index ranges, so a strategy decides which particles a call
touches and where the results go. They are compiled with `nogil=True` so
worker threads of the parallel strategy run them concurrently.
"""
import numpy as np
from numba import jit

from constants import SLOW_DOWN, WALL_MARGIN, MIN_WALL_DISTANCE, BOUNCE_FACTOR

# --- Data Contracts ---
#
# positions, velocities, forces, scratch: float64 arrays of shape (N, 2)
# charges: float64 array of shape (N,)
# start, end: half-open particle range [start, end), 0 <= start <= end <= N
#
# pair_force(...) -> (fx, fy):
#   - Force acting on particle i from particle j. Particle j receives the
#     exact negation. Same-sign charges repel.
#   - The distance is clamped to min_distance before use.
#
# accumulate_* / apply_boundary_forces / merge_scratch:
#   - Add into the output array, never overwrite it.
#
# integrate(...):
#   - Reads forces, updates velocities and positions of [start, end) only.
#   - Leaves forces untouched; callers reset them before the next pass.


@jit(nopython=True, nogil=True)
def pair_force(xi, yi, qi, xj, yj, qj, min_distance):
    """
    Coulomb-style force on particle i exerted by particle j.
    """
    dx = xj - xi
    dy = yj - yi
    distance_sq = dx * dx + dy * dy
    distance = np.sqrt(distance_sq)

    if distance < min_distance:
        distance = min_distance
        distance_sq = distance * distance

    magnitude = (qi * qj) / distance_sq
    return -magnitude * (dx / distance), -magnitude * (dy / distance)


@jit(nopython=True, nogil=True)
def boundary_force(x, y, width, height, boundary_charge):
    """
    Push-back from the four walls for a particle within WALL_MARGIN of them.
    Independent of the particle's charge.
    """
    fx = 0.0
    fy = 0.0

    # Left wall
    if x < WALL_MARGIN:
        distance = max(x, MIN_WALL_DISTANCE)
        fx += boundary_charge / (distance * distance)
    # Right wall
    if x > width - WALL_MARGIN:
        distance = max(width - x, MIN_WALL_DISTANCE)
        fx -= boundary_charge / (distance * distance)
    # Ceiling
    if y < WALL_MARGIN:
        distance = max(y, MIN_WALL_DISTANCE)
        fy += boundary_charge / (distance * distance)
    # Floor
    if y > height - WALL_MARGIN:
        distance = max(height - y, MIN_WALL_DISTANCE)
        fy -= boundary_charge / (distance * distance)

    return fx, fy


@jit(nopython=True, nogil=True)
def accumulate_pair_forces(positions, charges, start, end, min_distance, out):
    """
    Computes every unordered pair (j, k) with j in [start, end) and k > j,
    adding the force to out[j] and its negation to out[k].

    Called with [0, N) this visits each pair exactly once. Disjoint ranges
    together visit each pair exactly once as well.
    """
    particle_count = positions.shape[0]
    for j in range(start, end):
        xj = positions[j, 0]
        yj = positions[j, 1]
        qj = charges[j]
        for k in range(j + 1, particle_count):
            fx, fy = pair_force(xj, yj, qj, positions[k, 0], positions[k, 1], charges[k], min_distance)
            out[j, 0] += fx
            out[j, 1] += fy
            out[k, 0] -= fx
            out[k, 1] -= fy


@jit(nopython=True, nogil=True)
def accumulate_slice_forces(positions, charges, start, end, min_distance, out):
    """
    Computes the full force on each particle in [start, end) against every
    other particle, writing only to out[start:end].
    """
    particle_count = positions.shape[0]
    for i in range(start, end):
        xi = positions[i, 0]
        yi = positions[i, 1]
        qi = charges[i]
        for j in range(particle_count):
            if i == j:
                continue
            fx, fy = pair_force(xi, yi, qi, positions[j, 0], positions[j, 1], charges[j], min_distance)
            out[i, 0] += fx
            out[i, 1] += fy


@jit(nopython=True, nogil=True)
def apply_boundary_forces(positions, forces, start, end, width, height, boundary_charge):
    for i in range(start, end):
        fx, fy = boundary_force(positions[i, 0], positions[i, 1], width, height, boundary_charge)
        forces[i, 0] += fx
        forces[i, 1] += fy


@jit(nopython=True, nogil=True)
def merge_scratch(scratch, start, end, forces):
    """
    Sums the per-worker buffers scratch[w] for particles [start, end) into
    forces. Workers are summed in index order.
    """
    worker_count = scratch.shape[0]
    for i in range(start, end):
        for w in range(worker_count):
            forces[i, 0] += scratch[w, i, 0]
            forces[i, 1] += scratch[w, i, 1]


@jit(nopython=True, nogil=True)
def integrate(positions, velocities, forces, start, end, width, height, damping, clumping, max_speed):
    """
    Advances velocity and position of particles [start, end) by one cycle.
    """
    for i in range(start, end):
        vx = velocities[i, 0] + forces[i, 0] * SLOW_DOWN
        vy = velocities[i, 1] + forces[i, 1] * SLOW_DOWN

        if clumping:
            vx *= damping
            vy *= damping

        speed = np.sqrt(vx * vx + vy * vy)
        if speed > max_speed:
            scale = max_speed / speed
            vx *= scale
            vy *= scale

        x = positions[i, 0] + vx * SLOW_DOWN
        y = positions[i, 1] + vy * SLOW_DOWN

        # Inelastic bounce off the walls
        if x <= 0.0:
            x = 0.0
            vx = abs(vx) * BOUNCE_FACTOR
        elif x >= width:
            x = width
            vx = -abs(vx) * BOUNCE_FACTOR

        if y <= 0.0:
            y = 0.0
            vy = abs(vy) * BOUNCE_FACTOR
        elif y >= height:
            y = height
            vy = -abs(vy) * BOUNCE_FACTOR

        positions[i, 0] = x
        positions[i, 1] = y
        velocities[i, 0] = vx
        velocities[i, 1] = vy
