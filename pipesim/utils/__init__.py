"""Utilities for pipesim.

Includes:
- Snapshot loading with env var substitution and imports
- Structured logging
- Structural hashing for memoization
"""

from .config_loader import load_yaml_with_env
from .hashing import compute_params_hash, compute_snapshot_hash
from .logging import StructuredLogger, configure_logging, get_logger, logger

__all__ = [
    "load_yaml_with_env",
    "compute_params_hash",
    "compute_snapshot_hash",
    "StructuredLogger",
    "configure_logging",
    "get_logger",
    "logger",
]
