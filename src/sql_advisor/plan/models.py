"""Data models for execution plan interpretation."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class PlanMode(Enum):
    """How a plan is obtained from the server."""

    ESTIMATED = "estimated"  # SET SHOWPLAN_XML: compiled, not executed
    ACTUAL = "actual"  # SET STATISTICS XML: executed with runtime counters


@dataclass(frozen=True)
class MissingIndexAdvisory:
    """One missing-index hint the optimizer embedded in a plan."""

    database: str
    schema: str
    table: str
    equality_columns: tuple[str, ...] = ()
    inequality_columns: tuple[str, ...] = ()
    include_columns: tuple[str, ...] = ()
    impact: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "database": self.database,
            "schema": self.schema,
            "table": self.table,
            "equality_columns": list(self.equality_columns),
            "inequality_columns": list(self.inequality_columns),
            "include_columns": list(self.include_columns),
            "impact": self.impact,
        }


@dataclass(frozen=True)
class PlanExtraction:
    """Facts pulled out of a showplan document."""

    mode: PlanMode = PlanMode.ESTIMATED
    estimated_cost: float = 0.0
    missing_indexes: tuple[MissingIndexAdvisory, ...] = field(default_factory=tuple)
    plan_xml: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.plan_xml

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "mode": self.mode.value,
            "estimated_cost": self.estimated_cost,
            "missing_indexes": [m.to_dict() for m in self.missing_indexes],
        }
