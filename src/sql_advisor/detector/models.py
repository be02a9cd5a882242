"""Data models for the detector module."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class IssueType(Enum):
    """Kinds of problem an analysis can report."""

    CARTESIAN_PRODUCT = "cartesian_product"
    COLUMN_WILDCARD = "column_wildcard"
    IMPLICIT_CONVERSION = "implicit_conversion"
    MISSING_INDEX = "missing_index"
    NON_SARGABLE_CONDITION = "non_sargable_condition"
    PARAMETER_SNIFFING = "parameter_sniffing"
    SUBOPTIMAL_JOIN = "suboptimal_join"
    TABLE_SCAN = "table_scan"
    DIRTY_READ = "dirty_read"
    UNNECESSARY_DISTINCT = "unnecessary_distinct"
    SCALAR_FUNCTION = "scalar_function"


class IssueSeverity(Enum):
    """How badly an issue is expected to hurt."""

    CRITICAL = "critical"
    MAJOR = "major"
    MEDIUM = "medium"
    MINOR = "minor"
    INFO = "info"


@dataclass(frozen=True)
class Issue:
    """A single anti-pattern found in query text."""

    issue_type: IssueType
    description: str
    fragment: str
    severity: IssueSeverity

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "issue_type": self.issue_type.value,
            "description": self.description,
            "fragment": self.fragment,
            "severity": self.severity.value,
        }
