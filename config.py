# config.py
"""
Defines the immutable configuration of a simulation run.

The configuration is produced once by the loader in `utils.py` and then
only read by the particle store, the strategies and the cycle driver.
"""
import os
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

# --- Data Contracts ---
#
# class SimulationConfig (frozen dataclass):
#   - Fields: see below, defaults match the stock config.json.
#   - Invariants (checked in __post_init__, ConfigError on violation):
#     - particle_count, cycles > 0
#     - width, height, min_distance > 0
#     - 0 <= damping <= 1
#     - max_speed, boundary_charge >= 0
#     - seed is a non-negative integer
#     - workers, processes are None or >= 1


class ConfigError(ValueError):
    """Raised when a configuration value is outside its allowed range."""


class ExecutionMode(Enum):
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    DISTRIBUTED = "distributed"


class TransportKind(Enum):
    LOCAL = "local"
    MPI = "mpi"


def default_seed() -> int:
    """Seed derived from the current time in milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class SimulationConfig:
    particle_count: int = 500
    cycles: int = 100000
    width: float = 800.0
    height: float = 600.0
    seed: int = field(default_factory=default_seed)
    damping: float = 0.99995
    min_distance: float = 5.0
    max_speed: float = 5.0
    boundary_charge: float = 1000.0
    clumping: bool = False
    mode: ExecutionMode = ExecutionMode.DISTRIBUTED
    enable_gui: bool = False
    # Execution settings. None means "one per available CPU".
    workers: Optional[int] = None
    processes: Optional[int] = None
    transport: TransportKind = TransportKind.LOCAL

    def __post_init__(self):
        checks = (
            (self.particle_count > 0, "particle_count must be positive"),
            (self.cycles > 0, "cycles must be positive"),
            (self.width > 0 and self.height > 0, "width and height must be positive"),
            (0.0 <= self.damping <= 1.0, "damping must lie in [0, 1]"),
            (self.min_distance > 0, "min_distance must be positive"),
            (self.max_speed >= 0, "max_speed must be non-negative"),
            (self.boundary_charge >= 0, "boundary_charge must be non-negative"),
            (isinstance(self.seed, int) and self.seed >= 0, "seed must be a non-negative integer"),
            (self.workers is None or self.workers >= 1, "workers must be at least 1"),
            (self.processes is None or self.processes >= 1, "processes must be at least 1"),
        )
        for ok, message in checks:
            if not ok:
                raise ConfigError(message)
        if not isinstance(self.mode, ExecutionMode):
            raise ConfigError(f"Unknown execution mode: {self.mode!r}")
        if not isinstance(self.transport, TransportKind):
            raise ConfigError(f"Unknown transport: {self.transport!r}")

    @property
    def worker_count(self) -> int:
        """Size of the parallel worker pool."""
        return self.workers or os.cpu_count() or 1

    @property
    def process_count(self) -> int:
        """Number of processes for a local distributed run."""
        return self.processes or os.cpu_count() or 1
