"""
Pipeline Validation
===================

Structural checks (dangling references, role compatibility, missing inputs,
dead ends, cycles) followed by the registered SSIS, Azure Data Factory and
Databricks platform rules.
"""

from .engine import (
    ValidationIssue,
    ValidationReport,
    Validator,
    find_cycles,
    stamp_components,
    stamp_connections,
)
from . import rules  # noqa: F401  registers the platform rules

__all__ = [
    "ValidationIssue",
    "ValidationReport",
    "Validator",
    "find_cycles",
    "stamp_components",
    "stamp_connections",
]
