# main.py
"""
Main entry point for the particle simulation.

This script orchestrates the entire simulation lifecycle:
1. Parses the command line and loads configuration from `config.json`.
2. Initializes the logging system.
3. Builds the particle store and the strategy for the selected mode.
4. Runs the cycle driver.
5. Reports the run summary and handles clean shutdown.
"""
import logging
import cProfile
import pstats
import io
import sys
from typing import List, Optional

from utils import (
    setup_logging, load_config, build_config, parse_args, collect_params,
    rank_log_settings, wants_mpi,
)


def run(config, file_config, transport=None) -> bool:
    """
    Runs the simulation for the configured mode.

    Returns True if this process should report the run summary.
    """
    from config import ExecutionMode, TransportKind
    from particle import ParticleSystem
    from simulation import create_observer, create_strategy, run_simulation

    if config.mode != ExecutionMode.DISTRIBUTED:
        particles = ParticleSystem.from_config(config)
        with create_strategy(config) as strategy:
            summary = run_simulation(config, particles, strategy, create_observer(config))
        summary.log()
        return True

    from distributed import launch_local_processes, run_mpi

    if config.transport == TransportKind.MPI:
        summary, _, coordinator = run_mpi(config, transport)
        if coordinator:
            summary.log()
        return coordinator

    summary, _ = launch_local_processes(config, config.process_count, file_config)
    summary.log()
    return True


def main(argv: Optional[List[str]] = None) -> int:
    """
    The main function to run the simulation.
    """
    args = parse_args(argv)

    # Logging is not set up yet, so we use a print for these errors.
    try:
        file_config = load_config(args.config)
    except Exception as e:
        print(f"FATAL: Could not load {args.config}. Error: {e}")
        return 1

    params = collect_params(file_config, args)

    # MPI ranks are known before logging starts; only rank 0 logs at full level.
    transport = None
    log_settings = file_config
    if wants_mpi(params):
        from distributed import MPITransport
        try:
            transport = MPITransport()
        except RuntimeError as e:
            print(f"FATAL: {e}")
            return 1
        if transport.rank() != 0:
            log_settings = rank_log_settings(file_config, transport.rank())

    setup_logging(log_settings)
    config = build_config(params)

    logging.info("--- Particle Simulation Starting ---")
    logging.info(f"Mode: {config.mode.value}, particles: {config.particle_count}, cycles: {config.cycles}")

    profiler = cProfile.Profile() if args.profile else None
    if profiler is not None:
        profiler.enable()

    coordinator = run(config, file_config, transport)

    if profiler is not None:
        profiler.disable()
        if coordinator:
            logging.info("--- Performance Profile ---")
            s = io.StringIO()
            # Sort by cumulative time spent in the function
            stats = pstats.Stats(profiler, stream=s).sort_stats('cumtime')
            stats.print_stats(20)
            logging.info(f"\n{s.getvalue()}")

    if coordinator:
        logging.info("--- Particle Simulation Shutting Down ---")
    return 0


if __name__ == "__main__":
    sys.exit(main())
