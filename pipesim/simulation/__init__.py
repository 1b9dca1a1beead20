"""Static simulation: data preview, performance, cost and tuning analysis."""

from .analysis import PerformanceAnalysis, PerformanceIssue, analyze_performance
from .cost import CostBreakdown, estimate_cost
from .data import ComponentPreview, simulate_data
from .execution import ExecutionEstimate, ExecutionStep, simulate_execution
from .performance import ComponentMetric, SimulationResult, simulate_performance
from .suggestions import (
    OptimizationSuggestion,
    SuggestionCategory,
    SuggestionSeverity,
    suggest_optimizations,
)

__all__ = [
    "ComponentMetric",
    "ComponentPreview",
    "CostBreakdown",
    "ExecutionEstimate",
    "ExecutionStep",
    "OptimizationSuggestion",
    "PerformanceAnalysis",
    "PerformanceIssue",
    "SimulationResult",
    "SuggestionCategory",
    "SuggestionSeverity",
    "analyze_performance",
    "estimate_cost",
    "simulate_data",
    "simulate_execution",
    "simulate_performance",
    "suggest_optimizations",
]
