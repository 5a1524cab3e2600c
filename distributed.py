# distributed.py
"""
Distributed execution strategy and the collective transports it runs on.

Each cooperating process holds a full copy of the particle store but owns
only one contiguous slice of it. Every cycle the processes exchange their
slices through an all-gather, compute forces for their own slice against
the complete snapshot, and integrate that slice. The strategy depends only
on the narrow CollectiveTransport interface, so the same algorithm runs on
MPI or on a group of local processes sharing memory.
"""
import dataclasses
import logging
import multiprocessing as mp
import queue
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

import physics
from config import SimulationConfig
from particle import ParticleSystem
from simulation import (
    SimulationStrategy, SynchronizationError,
    create_observer, partition, run_simulation,
)
from utils import rank_log_settings, setup_logging

# --- Data Contracts ---
#
# class CollectiveTransport:
#   - rank() -> int, size() -> int: position of this participant and the
#     number of participants, fixed for the lifetime of the transport.
#   - all_gather_variable(local_chunk, counts) -> np.ndarray:
#     - Inputs: local_chunk of shape (counts[rank], C), float64; counts
#       lists the row count contributed by every participant in rank order.
#     - Outputs: array of shape (sum(counts), C) holding every chunk
#       concatenated in rank order, identical on every participant.
#     - Blocks until every participant has contributed.
#   - broadcast(value, root=0) -> value: root's value on every participant.
#
# class DistributedSimulation:
#   - Owns particles [start, end) = partition(N, size)[rank].
#   - run_cycle: gather -> force (own slice vs. global) -> integrate own slice.
#   - finish: one more gather so every participant holds the final state.

# Columns of the per-cycle exchange: x, y, vx, vy
STATE_COLUMNS = 4


class CollectiveTransport(ABC):
    @abstractmethod
    def rank(self) -> int:
        ...

    @abstractmethod
    def size(self) -> int:
        ...

    @abstractmethod
    def all_gather_variable(self, local_chunk: np.ndarray, counts: Sequence[int]) -> np.ndarray:
        ...

    def broadcast(self, value: Any, root: int = 0) -> Any:
        """
        Returns root's `value` on every participant. Participants started
        from one parent process already agree, so the default is a no-op.
        """
        return value

    def close(self) -> None:
        pass


class SingleProcessTransport(CollectiveTransport):
    """A group of one: the gather returns the local chunk."""
    def rank(self) -> int:
        return 0

    def size(self) -> int:
        return 1

    def all_gather_variable(self, local_chunk: np.ndarray, counts: Sequence[int]) -> np.ndarray:
        return np.array(local_chunk, dtype=np.float64, copy=True)


class MPITransport(CollectiveTransport):
    """
    Transport over an MPI communicator, launched with e.g.
    `mpiexec -n 4 python main.py --mode distributed --transport mpi`.
    """
    def __init__(self, comm=None):
        try:
            from mpi4py import MPI
        except ImportError as e:
            raise RuntimeError("The mpi transport requires mpi4py.") from e
        self._mpi = MPI
        self.comm = comm if comm is not None else MPI.COMM_WORLD
        self._rank = self.comm.Get_rank()
        self._size = self.comm.Get_size()

    def rank(self) -> int:
        return self._rank

    def size(self) -> int:
        return self._size

    def all_gather_variable(self, local_chunk: np.ndarray, counts: Sequence[int]) -> np.ndarray:
        chunk = np.ascontiguousarray(local_chunk, dtype=np.float64)
        columns = chunk.shape[1] if chunk.ndim > 1 else 1
        counts = np.asarray(counts, dtype=np.int64)
        displacements = np.concatenate(([0], np.cumsum(counts)[:-1]))
        result = np.empty((int(counts.sum()), columns), dtype=np.float64)
        try:
            self.comm.Allgatherv(
                chunk,
                [result, (counts * columns).tolist(), (displacements * columns).tolist(), self._mpi.DOUBLE],
            )
        except self._mpi.Exception as e:
            logging.error(f"Collective gather failed on rank {self._rank}: {e}")
            raise SynchronizationError("Collective gather failed") from e
        return result

    def broadcast(self, value: Any, root: int = 0) -> Any:
        try:
            return self.comm.bcast(value, root=root)
        except self._mpi.Exception as e:
            logging.error(f"Broadcast from rank {root} failed on rank {self._rank}: {e}")
            raise SynchronizationError("Broadcast failed") from e


class SharedMemoryTransport(CollectiveTransport):
    """
    Transport between local processes through a shared double array and a
    barrier. Participants write their chunk at its offset, wait for all
    writes, read the whole array, and wait again before the buffer can be
    reused.
    """
    def __init__(self, rank: int, size: int, buffer, barrier):
        self._rank = rank
        self._size = size
        self.buffer = buffer
        self.barrier = barrier

    def rank(self) -> int:
        return self._rank

    def size(self) -> int:
        return self._size

    def _wait(self) -> None:
        try:
            self.barrier.wait()
        except threading.BrokenBarrierError as e:
            logging.error(f"Collective gather interrupted on rank {self._rank}.")
            raise SynchronizationError("Collective gather interrupted") from e

    def all_gather_variable(self, local_chunk: np.ndarray, counts: Sequence[int]) -> np.ndarray:
        chunk = np.asarray(local_chunk, dtype=np.float64)
        columns = chunk.shape[1] if chunk.ndim > 1 else 1
        total = int(sum(counts))
        offset = int(sum(counts[:self._rank]))

        shared = np.frombuffer(self.buffer.get_obj(), dtype=np.float64, count=total * columns)
        shared = shared.reshape(total, columns)

        shared[offset:offset + counts[self._rank]] = chunk.reshape(-1, columns)
        self._wait()
        result = shared.copy()
        self._wait()
        return result

    def abort(self) -> None:
        self.barrier.abort()


class DistributedSimulation(SimulationStrategy):
    """
    Strategy for one participant of a distributed run.

    Each participant repeats the full O(N) force sum for each particle of
    its own slice against the gathered snapshot, so a single all-gather per
    cycle is the only communication.
    """
    def __init__(self, config: SimulationConfig, transport: CollectiveTransport):
        self.transport = transport
        self.rank = transport.rank()
        self.size = transport.size()
        self.ranges = partition(config.particle_count, self.size)
        self.counts = [end - start for start, end in self.ranges]
        self.start, self.end = self.ranges[self.rank]
        self._charges_synced = False

        logging.debug(
            f"Rank {self.rank}/{self.size} owns particles [{self.start}, {self.end})."
        )

    @property
    def is_coordinator(self) -> bool:
        return self.rank == 0

    def gather(self, particles: ParticleSystem) -> None:
        """Replaces the local store with the global state of all slices."""
        s, e = self.start, self.end
        local = np.hstack((particles.positions[s:e], particles.velocities[s:e]))
        snapshot = self.transport.all_gather_variable(local, self.counts)
        particles.positions[:] = snapshot[:, 0:2]
        particles.velocities[:] = snapshot[:, 2:4]

        # Charges never change, so they travel only once.
        if not self._charges_synced:
            charges = self.transport.all_gather_variable(particles.charges[s:e, np.newaxis], self.counts)
            particles.charges[:] = charges[:, 0]
            self._charges_synced = True

    def run_cycle(self, particles: ParticleSystem, config: SimulationConfig) -> None:
        s, e = self.start, self.end
        self.gather(particles)

        particles.reset_forces(s, e)
        physics.accumulate_slice_forces(
            particles.positions, particles.charges, s, e,
            config.min_distance, particles.forces
        )
        physics.apply_boundary_forces(
            particles.positions, particles.forces, s, e,
            config.width, config.height, config.boundary_charge
        )
        physics.integrate(
            particles.positions, particles.velocities, particles.forces, s, e,
            config.width, config.height, config.damping, config.clumping, config.max_speed
        )

    def finish(self, particles: ParticleSystem) -> None:
        self.gather(particles)

    def close(self) -> None:
        self.transport.close()


def _run_local_rank(
    config: SimulationConfig,
    rank: int,
    size: int,
    buffer,
    barrier,
    results,
    log_settings: Optional[Dict[str, Any]],
) -> None:
    """Body of one process started by launch_local_processes."""
    if log_settings is not None:
        setup_logging(rank_log_settings(log_settings, rank, quiet=rank != 0))

    transport = SharedMemoryTransport(rank, size, buffer, barrier)
    try:
        particles = ParticleSystem.from_config(config)
        observer = create_observer(config) if rank == 0 else None
        with DistributedSimulation(config, transport) as strategy:
            summary = run_simulation(config, particles, strategy, observer)
    except BaseException:
        logging.exception(f"Rank {rank} aborted its run.")
        transport.abort()
        raise

    if rank == 0:
        results.put((summary, particles.positions, particles.velocities, particles.charges))


def _abort_local_run(workers: List[mp.Process], barrier, failed: List[mp.Process]) -> None:
    barrier.abort()
    for p in workers:
        p.join()
    names = ", ".join(f"{p.name} (exit code {p.exitcode})" for p in failed)
    logging.error(f"Distributed run aborted: {names or 'no result from rank 0'}")
    raise SynchronizationError("Distributed run aborted")


def launch_local_processes(
    config: SimulationConfig,
    processes: Optional[int] = None,
    log_settings: Optional[Dict[str, Any]] = None,
):
    """
    Runs a distributed simulation across `processes` local OS processes.

    Returns the coordinator's RunSummary and its final ParticleSystem.
    """
    size = processes or config.process_count
    if size == 1:
        logging.info("Running the distributed strategy in-process with a single rank.")
        particles = ParticleSystem.from_config(config)
        with DistributedSimulation(config, SingleProcessTransport()) as strategy:
            summary = run_simulation(config, particles, strategy, create_observer(config))
        return summary, particles

    ctx = mp.get_context()
    buffer = ctx.Array('d', config.particle_count * STATE_COLUMNS)
    barrier = ctx.Barrier(size)
    results = ctx.Queue()

    logging.info(f"Launching {size} local processes for the distributed run.")
    workers: List[mp.Process] = []
    for rank in range(size):
        process = ctx.Process(
            target=_run_local_rank,
            args=(config, rank, size, buffer, barrier, results, log_settings),
            name=f"particle-rank-{rank}",
        )
        process.start()
        workers.append(process)

    # Drain the result queue before joining so rank 0 can exit.
    outcome = None
    while outcome is None:
        try:
            outcome = results.get(timeout=0.5)
        except queue.Empty:
            failed = [p for p in workers if p.exitcode not in (None, 0)]
            if failed:
                _abort_local_run(workers, barrier, failed)
            if all(p.exitcode is not None for p in workers):
                # Every rank exited cleanly; rank 0's result may still be in flight.
                try:
                    outcome = results.get(timeout=5.0)
                except queue.Empty:
                    _abort_local_run(workers, barrier, [])

    for p in workers:
        p.join()

    summary, positions, velocities, charges = outcome
    return summary, ParticleSystem(positions, velocities, charges)


def run_mpi(config: SimulationConfig, transport: Optional[CollectiveTransport] = None):
    """
    Runs this process's share of a distributed simulation over MPI.

    Every rank adopts the coordinator's seed before building its store, so
    the run is reproducible from the seed rank 0 logs. Returns the RunSummary,
    the final ParticleSystem and whether this rank is the coordinator.
    """
    transport = transport if transport is not None else MPITransport()
    seed = transport.broadcast(config.seed)
    if seed != config.seed:
        logging.debug(f"Rank {transport.rank()} adopts coordinator seed {seed}.")
        config = dataclasses.replace(config, seed=seed)

    particles = ParticleSystem.from_config(config)
    with DistributedSimulation(config, transport) as strategy:
        observer = create_observer(config) if strategy.is_coordinator else None
        summary = run_simulation(config, particles, strategy, observer)
        return summary, particles, strategy.is_coordinator
