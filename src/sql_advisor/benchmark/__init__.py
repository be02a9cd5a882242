"""Benchmark module for timed query execution and metric aggregation."""

from sql_advisor.benchmark.engine import (
    BenchmarkEngine,
    aggregate_metrics,
    escape_like,
    substitute_parameters,
)
from sql_advisor.benchmark.models import (
    PerformanceComparison,
    PerformanceMetrics,
    improvement_percentage,
)

__all__ = [
    "BenchmarkEngine",
    "aggregate_metrics",
    "escape_like",
    "substitute_parameters",
    "PerformanceComparison",
    "PerformanceMetrics",
    "improvement_percentage",
]
