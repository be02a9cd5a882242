"""Data models for the orchestrator module."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sql_advisor.advisor.models import IndexRecommendation, RedundantIndexInfo
from sql_advisor.benchmark.models import PerformanceMetrics
from sql_advisor.detector.models import Issue
from sql_advisor.exceptions import InvalidInputError


class SuggestionPriority(Enum):
    """How urgently a suggestion should be acted on."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class Suggestion:
    """An actionable recommendation shown to the user."""

    title: str
    description: str
    original_fragment: str
    suggested_fragment: str
    priority: SuggestionPriority
    estimated_impact: float

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "title": self.title,
            "description": self.description,
            "original_fragment": self.original_fragment,
            "suggested_fragment": self.suggested_fragment,
            "priority": self.priority.value,
            "estimated_impact": self.estimated_impact,
        }


@dataclass(frozen=True)
class AnalysisOptions:
    """Which stages an analysis runs, and their limits."""

    analyze_plan: bool = True
    analyze_indexes: bool = True
    analyze_syntax: bool = True
    collect_metrics: bool = True
    collect_statistics: bool = True
    attempt_rewrite: bool = True
    max_execution_time_ms: int = 30000  # per round trip; 0 disables the limit
    max_recommendations: int = 10
    metrics_iterations: int = 1
    metrics_warmup: int = 0
    comparison_iterations: int = 3
    comparison_warmup: int = 1

    def validate(self) -> None:
        """
        Check option values.

        Raises:
            InvalidInputError: If any limit is out of range
        """
        if self.max_recommendations < 1:
            raise InvalidInputError("max_recommendations must be at least 1")
        if self.max_execution_time_ms < 0:
            raise InvalidInputError("max_execution_time_ms must not be negative")
        if self.metrics_iterations < 1 or self.comparison_iterations < 1:
            raise InvalidInputError("iteration counts must be at least 1")
        if self.metrics_warmup < 0 or self.comparison_warmup < 0:
            raise InvalidInputError("warmup counts must not be negative")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AnalysisResult:
    """Everything one analysis produced."""

    original_query: str
    optimized_query: str = ""
    server_info: str = "Unknown"
    issues: tuple[Issue, ...] = field(default_factory=tuple)
    performance_metrics: PerformanceMetrics | None = None
    index_recommendations: tuple[IndexRecommendation, ...] = field(default_factory=tuple)
    redundant_indexes: tuple[RedundantIndexInfo, ...] = field(default_factory=tuple)
    suggestions: tuple[Suggestion, ...] = field(default_factory=tuple)
    complexity_rating: int = 1
    improvement_percentage: float = 0.0
    estimated_plan_cost: float = 0.0
    analyzed_at: datetime = field(default_factory=_utcnow)

    @property
    def was_rewritten(self) -> bool:
        return bool(self.optimized_query) and self.optimized_query != self.original_query

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "original_query": self.original_query,
            "optimized_query": self.optimized_query,
            "server_info": self.server_info,
            "issues": [i.to_dict() for i in self.issues],
            "performance_metrics": (
                self.performance_metrics.to_dict() if self.performance_metrics else None
            ),
            "index_recommendations": [r.to_dict() for r in self.index_recommendations],
            "redundant_indexes": [r.to_dict() for r in self.redundant_indexes],
            "suggestions": [s.to_dict() for s in self.suggestions],
            "complexity_rating": self.complexity_rating,
            "improvement_percentage": self.improvement_percentage,
            "estimated_plan_cost": self.estimated_plan_cost,
            "analyzed_at": self.analyzed_at.isoformat(),
        }
