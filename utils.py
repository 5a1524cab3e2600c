# utils.py
"""
Utility functions for the simulation framework.

This module provides helper functions, such as logging setup and
configuration loading, that are used across different parts of the
application but do not belong to the physics or the execution strategies.
"""
import argparse
import logging
import logging.handlers
import json
import os
from dataclasses import fields
from typing import Any, Callable, Dict, List, Optional

from config import ExecutionMode, SimulationConfig, TransportKind, default_seed

# --- Data Contracts ---
#
# setup_logging(config: Dict[str, Any]) -> None:
#   - Inputs:
#     - config: A dictionary containing a "logging" key with "level",
#       "format", and "log_file" sub-keys.
#   - Outputs: None
#   - Side Effects: Configures the root Python logger. Creates a log
#     directory if it doesn't exist. Sets up a console handler and a
#     rotating file handler.
#   - Invariants: After this function runs, the logging system is
#     initialized and ready for use throughout the application.
#
# build_config(params: Dict[str, Any]) -> SimulationConfig:
#   - Inputs: flat mapping of SimulationConfig field names to raw values
#     (strings from the command line or JSON values).
#   - Outputs: a valid SimulationConfig.
#   - Side Effects: Logs an error for every value that cannot be parsed or
#     is out of range; that field keeps its default.

def setup_logging(config: Dict[str, Any]) -> None:
    """
    Configures the logging system from a configuration dictionary.

    Sets up logging to both the console and a rotating file.
    """
    log_config = config.get('logging', {})
    log_level = log_config.get('level', 'INFO').upper()
    log_format = log_config.get('format', '%(asctime)s - %(levelname)s - %(message)s')
    log_file_path = log_config.get('log_file', 'logs/simulation.log')

    # Ensure the log directory exists
    log_dir = os.path.dirname(log_file_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    # Get the root logger
    logger = logging.getLogger()
    logger.setLevel(log_level)

    # Clear existing handlers to avoid duplication
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Rotates when the log reaches 1MB, keeps 5 backup logs.
    file_handler = logging.handlers.RotatingFileHandler(
        log_file_path, maxBytes=1024*1024, backupCount=5
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    logging.info("Logging system initialized.")
    logging.debug(f"Log level set to {log_level}.")
    logging.debug(f"Log file path: {log_file_path}")

def load_config(path: str) -> Dict[str, Any]:
    """Loads a JSON configuration file."""
    logging.info(f"Loading configuration from {path}...")
    try:
        with open(path, 'r') as f:
            config = json.load(f)
        logging.info("Configuration loaded successfully.")
        return config
    except FileNotFoundError:
        logging.error(f"Configuration file not found at {path}.")
        raise
    except json.JSONDecodeError:
        logging.error(f"Error decoding JSON from {path}.")
        raise


def rank_log_settings(config: Dict[str, Any], rank: int, quiet: bool = True) -> Dict[str, Any]:
    """
    Logging settings for one process of a distributed run.

    Each rank writes its own file (`simulation.log` -> `simulation.rank1.log`)
    so no two processes rotate the same file. Quiet ranks only log warnings.
    """
    log_config = dict(config.get('logging', {}))
    root, ext = os.path.splitext(log_config.get('log_file', 'logs/simulation.log'))
    log_config['log_file'] = f"{root}.rank{rank}{ext}"
    if quiet:
        log_config['level'] = 'WARNING'
    return dict(config, logging=log_config)


def wants_mpi(params: Dict[str, Any]) -> bool:
    """
    True if the raw options select a distributed run over MPI. Checked
    before logging is set up, so each rank can pick its own log settings.
    """
    transport = str(params.get('transport', TransportKind.LOCAL.value)).strip().lower()
    mode = str(params.get('mode', ExecutionMode.DISTRIBUTED.value)).strip().lower()
    return transport == TransportKind.MPI.value and mode not in (
        ExecutionMode.SEQUENTIAL.value, ExecutionMode.PARALLEL.value
    )


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ('true', '1', 'yes', 'on'):
        return True
    if text in ('false', '0', 'no', 'off'):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _parse_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"not an integer: {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"not an integer: {value!r}")
        return int(value)
    return int(str(value).strip())


def _parse_optional_int(value: Any) -> Optional[int]:
    return None if value is None else _parse_int(value)


def _parse_enum(enum_type) -> Callable[[Any], Any]:
    def parse(value: Any):
        if isinstance(value, enum_type):
            return value
        return enum_type(str(value).strip().lower())
    return parse


# Converters and range checks for each configurable field.
_FIELD_RULES: Dict[str, tuple] = {
    'particle_count': (_parse_int, lambda v: v > 0),
    'cycles': (_parse_int, lambda v: v > 0),
    'width': (float, lambda v: v > 0),
    'height': (float, lambda v: v > 0),
    'seed': (_parse_int, lambda v: v >= 0),
    'damping': (float, lambda v: 0.0 <= v <= 1.0),
    'min_distance': (float, lambda v: v > 0),
    'max_speed': (float, lambda v: v >= 0),
    'boundary_charge': (float, lambda v: v >= 0),
    'clumping': (_parse_bool, lambda v: True),
    'mode': (_parse_enum(ExecutionMode), lambda v: True),
    'enable_gui': (_parse_bool, lambda v: True),
    'workers': (_parse_optional_int, lambda v: v is None or v >= 1),
    'processes': (_parse_optional_int, lambda v: v is None or v >= 1),
    'transport': (_parse_enum(TransportKind), lambda v: True),
}


def build_config(params: Dict[str, Any]) -> SimulationConfig:
    """
    Converts raw option values into a SimulationConfig, falling back to the
    default of any option whose value is malformed or out of range.
    """
    known = {f.name for f in fields(SimulationConfig)}
    values: Dict[str, Any] = {}

    for key, raw in params.items():
        if key not in known:
            logging.warning(f"Ignoring unknown configuration option '{key}'.")
            continue
        convert, valid = _FIELD_RULES[key]
        try:
            value = convert(raw)
        except (TypeError, ValueError) as e:
            logging.error(f"Invalid value {raw!r} for '{key}': {e}. Using the default.")
            continue
        if not valid(value):
            logging.error(f"Value {value!r} for '{key}' is out of range. Using the default.")
            continue
        values[key] = value

    if 'seed' not in values:
        values['seed'] = default_seed()
        logging.info(f"No seed configured, using time-derived seed {values['seed']}.")

    config = SimulationConfig(**values)
    logging.debug(f"Simulation configuration: {config}")
    return config


# Command-line flag -> SimulationConfig field
_CLI_OPTIONS = {
    '--mode': 'mode',
    '--particles': 'particle_count',
    '--cycles': 'cycles',
    '--gui': 'enable_gui',
    '--width': 'width',
    '--height': 'height',
    '--seed': 'seed',
    '--clumping': 'clumping',
    '--boundary': 'boundary_charge',
    '--damping': 'damping',
    '--minDistance': 'min_distance',
    '--maxSpeed': 'max_speed',
    '--workers': 'workers',
    '--processes': 'processes',
    '--transport': 'transport',
}


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parses the command line. Option values are kept as raw strings and are
    validated later by build_config.
    """
    parser = argparse.ArgumentParser(
        description="Charged particle simulation with sequential, parallel and distributed strategies."
    )
    parser.add_argument('--config', default='config.json', help="Path to the JSON configuration file.")
    parser.add_argument('--profile', action='store_true', help="Print a cProfile report after the run.")
    for flag, field_name in _CLI_OPTIONS.items():
        parser.add_argument(flag, dest=field_name, default=None, metavar='VALUE')
    return parser.parse_args(argv)


def collect_params(file_config: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    """Merges the config file sections with command-line overrides."""
    params: Dict[str, Any] = {}
    params.update(file_config.get('simulation_parameters', {}))
    params.update(file_config.get('run_control', {}))
    for field_name in _CLI_OPTIONS.values():
        value = getattr(args, field_name, None)
        if value is not None:
            params[field_name] = value
    return params
