"""Custom exceptions for pipesim.

Data problems inside a snapshot (dangling edges, cycles, unknown categories)
never raise: they are reported as issues, notes or ``incomplete`` flags.
The exceptions below cover programming-contract violations and bad input
files only.
"""

from typing import List, Optional


class PipesimException(Exception):
    """Base exception for all pipesim errors."""

    pass


class ConfigValidationError(PipesimException):
    """Snapshot or configuration file failed validation."""

    def __init__(self, message: str, file: Optional[str] = None, line: Optional[int] = None):
        self.message = message
        self.file = file
        self.line = line
        super().__init__(self._format_error())

    def _format_error(self) -> str:
        """Format error message with location info."""
        parts = ["Configuration validation error"]
        if self.file:
            parts.append(f"\n  File: {self.file}")
        if self.line:
            parts.append(f"\n  Line: {self.line}")
        parts.append(f"\n  Error: {self.message}")
        return "".join(parts)


class GraphContractError(PipesimException, TypeError):
    """An analysis was called with something that is not a graph."""

    def __init__(self, received: object):
        self.received = received
        super().__init__(
            f"Expected a PipelineGraph, PipelineSnapshot or mapping, got {type(received).__name__}"
        )


class ComponentNotFoundError(PipesimException, ValueError):
    """A component id passed by the caller does not exist in the graph."""

    def __init__(self, component_id: str, available: Optional[List[str]] = None):
        self.component_id = component_id
        self.available = available or []
        super().__init__(self._format_error())

    def _format_error(self) -> str:
        parts = [f"Component '{self.component_id}' not found"]
        if self.available:
            preview = ", ".join(self.available[:10])
            if len(self.available) > 10:
                preview += ", ..."
            parts.append(f"\n  Available: {preview}")
        return "".join(parts)


class UnsupportedFormatError(PipesimException, ValueError):
    """Requested artifact format has no generator."""

    def __init__(self, target_format: str, supported: List[str]):
        self.target_format = target_format
        self.supported = supported
        super().__init__(
            f"Unsupported artifact format: {target_format}. "
            f"Supported formats: {', '.join(supported)}"
        )
