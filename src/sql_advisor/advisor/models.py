"""Data models for the index advisor module."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class SortDirection(Enum):
    """Key column ordering."""

    ASC = "ASC"
    DESC = "DESC"


class IndexKind(Enum):
    """Physical index type."""

    NONCLUSTERED = "NONCLUSTERED"
    CLUSTERED = "CLUSTERED"
    COLUMNSTORE = "COLUMNSTORE"
    SPATIAL = "SPATIAL"
    XML = "XML"


@dataclass(frozen=True)
class IndexColumn:
    """A column participating in an index key."""

    name: str
    sort_direction: SortDirection = SortDirection.ASC

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"name": self.name, "sort_direction": self.sort_direction.value}


@dataclass(frozen=True)
class IndexRecommendation:
    """A proposed index derived from a missing-index advisory."""

    database: str
    schema: str
    table: str
    key_columns: tuple[IndexColumn, ...] = field(default_factory=tuple)
    included_columns: tuple[str, ...] = field(default_factory=tuple)
    is_unique: bool = False
    index_kind: IndexKind = IndexKind.NONCLUSTERED
    filter_predicate: str = ""
    create_statement: str = ""
    estimated_impact: float = 0.0

    @property
    def suggested_name(self) -> str:
        """IX_<table>_<first three chars of each key column>, CIX_ when clustered."""
        prefix = "CIX" if self.index_kind == IndexKind.CLUSTERED else "IX"
        columns = "_".join(column.name[:3] for column in self.key_columns)
        return f"{prefix}_{self.table}_{columns}"

    @property
    def qualified_table(self) -> str:
        return f"[{self.database}].[{self.schema}].[{self.table}]"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "database": self.database,
            "schema": self.schema,
            "table": self.table,
            "name": self.suggested_name,
            "key_columns": [c.to_dict() for c in self.key_columns],
            "included_columns": list(self.included_columns),
            "is_unique": self.is_unique,
            "index_kind": self.index_kind.value,
            "filter_predicate": self.filter_predicate,
            "create_statement": self.create_statement,
            "estimated_impact": self.estimated_impact,
        }


@dataclass(frozen=True)
class RedundantIndexInfo:
    """An existing index whose column signature duplicates another's."""

    schema: str
    table: str
    index_name: str
    reason: str
    recommendation: str
    drop_statement: str
    size_mb: float = 0.0
    usage_count: int = 0
    last_used: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "schema": self.schema,
            "table": self.table,
            "index_name": self.index_name,
            "reason": self.reason,
            "recommendation": self.recommendation,
            "drop_statement": self.drop_statement,
            "size_mb": self.size_mb,
            "usage_count": self.usage_count,
            "last_used": self.last_used.isoformat() if self.last_used else None,
        }
