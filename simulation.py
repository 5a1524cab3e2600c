# simulation.py
"""
Handles the core simulation loop and the shared-memory execution strategies.

This module defines the strategy interface every execution mode implements,
the sequential and thread-parallel strategies, the observer interface used
by the optional visualizer, and the cycle driver that runs a strategy for
the configured number of cycles while reporting throughput.
"""
import logging
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

import physics
from config import ExecutionMode, SimulationConfig
from constants import REPORT_INTERVAL
from particle import ParticleSystem

# --- Data Contracts ---
#
# partition(count: int, parts: int) -> List[Tuple[int, int]]:
#   - Outputs: `parts` half-open ranges [start, end) in ascending order.
#   - Invariants: ranges are contiguous and disjoint, their union is
#     exactly [0, count); every range but the last holds count // parts
#     particles and the last absorbs the remainder.
#
# class SimulationStrategy:
#   - run_cycle(self, particles, config) -> None:
#     - Side Effects: Resets forces, accumulates pair and boundary forces,
#       then integrates. Mutates `particles` in place.
#   - finish(self, particles) -> None: brings `particles` to the final
#     global state once the last cycle ran.
#   - close(self) -> None: releases pools or other resources.
#   - is_coordinator: True for the unit that reports progress.
#
# run_simulation(config, particles, strategy, observer=None) -> RunSummary:
#   - Runs exactly config.cycles cycles. Reports progress to the log and
#     the observer at most once per REPORT_INTERVAL seconds, coordinator
#     only.


class SynchronizationError(RuntimeError):
    """Raised when a barrier or collective wait could not complete."""


def partition(count: int, parts: int) -> List[Tuple[int, int]]:
    """Splits [0, count) into `parts` contiguous ranges."""
    if parts < 1:
        raise ValueError(f"Cannot partition into {parts} parts.")
    per_part = count // parts
    ranges = []
    for i in range(parts):
        start = i * per_part
        end = count if i == parts - 1 else (i + 1) * per_part
        ranges.append((start, end))
    return ranges


class SimulationStrategy(ABC):
    """
    One way of advancing the particle store by a cycle.
    """
    @abstractmethod
    def run_cycle(self, particles: ParticleSystem, config: SimulationConfig) -> None:
        ...

    @property
    def is_coordinator(self) -> bool:
        return True

    def finish(self, particles: ParticleSystem) -> None:
        pass

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class SequentialSimulation(SimulationStrategy):
    """
    Single-threaded reference implementation. Summation order is fixed, so
    a given seed always produces bit-identical trajectories.
    """
    def run_cycle(self, particles: ParticleSystem, config: SimulationConfig) -> None:
        n = particles.particle_count
        particles.reset_forces()

        physics.accumulate_pair_forces(
            particles.positions, particles.charges, 0, n,
            config.min_distance, particles.forces
        )
        physics.apply_boundary_forces(
            particles.positions, particles.forces, 0, n,
            config.width, config.height, config.boundary_charge
        )
        physics.integrate(
            particles.positions, particles.velocities, particles.forces, 0, n,
            config.width, config.height, config.damping, config.clumping, config.max_speed
        )


class ParallelSimulation(SimulationStrategy):
    """
    Shared-memory strategy using a fixed pool of worker threads.

    Each worker computes the pairs owned by its range into a private scratch
    buffer. After every worker is done the buffers are merged, each worker
    summing the buffers for its own range of particles, so no two threads
    ever write to the same element.
    """
    def __init__(self, config: SimulationConfig, workers: Optional[int] = None):
        self.worker_count = workers or config.worker_count
        self.ranges = partition(config.particle_count, self.worker_count)
        # One (N, 2) buffer per worker, reused across cycles.
        self.scratch = np.zeros((self.worker_count, config.particle_count, 2), dtype=np.float64)
        self.executor = ThreadPoolExecutor(
            max_workers=self.worker_count, thread_name_prefix="force-worker"
        )
        logging.info(
            f"Parallel strategy started with {self.worker_count} worker threads "
            f"for {config.particle_count} particles."
        )
        logging.debug(f"Worker ranges: {self.ranges}")

    def _force_task(self, worker: int, particles: ParticleSystem, min_distance: float) -> None:
        start, end = self.ranges[worker]
        buffer = self.scratch[worker]
        buffer.fill(0.0)
        physics.accumulate_pair_forces(
            particles.positions, particles.charges, start, end, min_distance, buffer
        )

    def _merge_task(self, worker: int, particles: ParticleSystem) -> None:
        start, end = self.ranges[worker]
        physics.merge_scratch(self.scratch, start, end, particles.forces)

    def _run_phase(self, name: str, task, *args) -> None:
        """Submits `task` once per worker and blocks until all have finished."""
        futures = [self.executor.submit(task, worker, *args) for worker in range(self.worker_count)]
        done, _ = wait(futures)
        for future in done:
            error = future.exception()
            if error is not None:
                logging.error(f"{name} interrupted: {error}")
                raise SynchronizationError(f"{name} interrupted") from error

    def run_cycle(self, particles: ParticleSystem, config: SimulationConfig) -> None:
        n = particles.particle_count
        particles.reset_forces()

        self._run_phase("Force computation", self._force_task, particles, config.min_distance)
        self._run_phase("Particle force merge", self._merge_task, particles)

        physics.apply_boundary_forces(
            particles.positions, particles.forces, 0, n,
            config.width, config.height, config.boundary_charge
        )
        physics.integrate(
            particles.positions, particles.velocities, particles.forces, 0, n,
            config.width, config.height, config.damping, config.clumping, config.max_speed
        )

    def close(self) -> None:
        self.executor.shutdown(wait=True)
        logging.debug("Parallel worker pool shut down.")


class SimulationObserver:
    """
    Receives periodic snapshots of the running simulation.

    The default implementation does nothing; the visualizer overrides it.
    """
    def start(self, particles: ParticleSystem) -> None:
        pass

    def on_cycle_snapshot(self, positions: np.ndarray, charges: np.ndarray, cycles_per_second: float) -> None:
        pass

    def stop(self) -> None:
        pass


@dataclass(frozen=True)
class RunSummary:
    elapsed_seconds: float
    cycles: int
    particle_count: int

    @property
    def cycles_per_second(self) -> float:
        if self.elapsed_seconds <= 0:
            return float("inf")
        return self.cycles / self.elapsed_seconds

    def log(self) -> None:
        logging.info(f"Simulation completed in {round(self.elapsed_seconds * 1000)} ms")
        logging.info(f"Cycles: {self.cycles}")
        logging.info(f"Particles: {self.particle_count}")
        logging.info(f"Average calculations per second: {self.cycles_per_second:.0f}")


def run_simulation(
    config: SimulationConfig,
    particles: ParticleSystem,
    strategy: SimulationStrategy,
    observer: Optional[SimulationObserver] = None,
    report_interval: float = REPORT_INTERVAL,
) -> RunSummary:
    """
    Runs `strategy` for config.cycles cycles.

    Only the coordinating strategy instance logs progress and drives the
    observer.
    """
    coordinator = strategy.is_coordinator
    if not coordinator:
        observer = None

    if observer is not None:
        observer.start(particles)

    start_time = time.perf_counter()
    last_report = start_time
    cycles_since_report = 0

    try:
        for cycle in range(config.cycles):
            strategy.run_cycle(particles, config)
            cycles_since_report += 1

            if not coordinator:
                continue

            now = time.perf_counter()
            since_report = now - last_report
            if since_report >= report_interval:
                cycles_per_second = cycles_since_report / since_report if since_report > 0 else float("inf")
                logging.info(f"Number of cycles completed: {cycle + 1}/{config.cycles}")
                if observer is not None:
                    observer.on_cycle_snapshot(
                        particles.positions.copy(), particles.charges.copy(), cycles_per_second
                    )
                last_report = now
                cycles_since_report = 0

        strategy.finish(particles)
    finally:
        if observer is not None:
            observer.stop()

    elapsed = time.perf_counter() - start_time
    return RunSummary(elapsed, config.cycles, particles.particle_count)


def create_observer(config: SimulationConfig) -> Optional[SimulationObserver]:
    """Builds the pygame visualizer when the GUI is enabled."""
    if not config.enable_gui:
        return None
    # Imported here so headless runs never need a display.
    from visualization import Visualizer
    return Visualizer(config)


def create_strategy(config: SimulationConfig) -> SimulationStrategy:
    """Strategy for the shared-memory modes."""
    if config.mode == ExecutionMode.SEQUENTIAL:
        return SequentialSimulation()
    if config.mode == ExecutionMode.PARALLEL:
        return ParallelSimulation(config)
    raise ValueError(f"{config.mode.value} mode needs a collective transport; see distributed.py")
