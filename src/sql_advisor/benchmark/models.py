"""Data models for the benchmark module."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class PerformanceMetrics:
    """Measurements for one run, or the mean over several runs."""

    execution_time_ms: float = 0.0
    cpu_time_ms: float = 0.0
    logical_reads: float = 0.0
    physical_reads: float = 0.0
    rows_returned: float = 0.0
    rows_scanned: float = 0.0
    execution_plan: str = ""
    estimated_plan_cost: float = 0.0
    is_plan_cached: bool = False
    plan_reuse_count: int = 0

    def to_dict(self, include_plan: bool = False) -> dict[str, Any]:
        """Convert to dictionary. The plan XML is omitted unless asked for."""
        data = {
            "execution_time_ms": self.execution_time_ms,
            "cpu_time_ms": self.cpu_time_ms,
            "logical_reads": self.logical_reads,
            "physical_reads": self.physical_reads,
            "rows_returned": self.rows_returned,
            "rows_scanned": self.rows_scanned,
            "estimated_plan_cost": self.estimated_plan_cost,
            "is_plan_cached": self.is_plan_cached,
            "plan_reuse_count": self.plan_reuse_count,
        }
        if include_plan:
            data["execution_plan"] = self.execution_plan
        return data


def improvement_percentage(original: float, optimized: float) -> float:
    """(original - optimized) / original * 100, or 0 when original <= 0."""
    if original <= 0:
        return 0.0
    return (original - optimized) / original * 100.0


@dataclass(frozen=True)
class PerformanceComparison:
    """Benchmarks of an original query and its rewrite."""

    original_query: str
    optimized_query: str
    original_metrics: PerformanceMetrics
    optimized_metrics: PerformanceMetrics

    @property
    def execution_time_improvement(self) -> float:
        return improvement_percentage(
            self.original_metrics.execution_time_ms,
            self.optimized_metrics.execution_time_ms,
        )

    @property
    def cpu_time_improvement(self) -> float:
        return improvement_percentage(
            self.original_metrics.cpu_time_ms,
            self.optimized_metrics.cpu_time_ms,
        )

    @property
    def logical_reads_improvement(self) -> float:
        return improvement_percentage(
            self.original_metrics.logical_reads,
            self.optimized_metrics.logical_reads,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "original_query": self.original_query,
            "optimized_query": self.optimized_query,
            "original_metrics": self.original_metrics.to_dict(),
            "optimized_metrics": self.optimized_metrics.to_dict(),
            "execution_time_improvement": self.execution_time_improvement,
            "cpu_time_improvement": self.cpu_time_improvement,
            "logical_reads_improvement": self.logical_reads_improvement,
        }
