"""Advisor module for index recommendations and redundant index detection."""

from sql_advisor.advisor.index_advisor import (
    IndexAdvisor,
    estimate_impact,
    extract_table_names,
    generate_create_statement,
)
from sql_advisor.advisor.redundancy import RedundantIndexFinder, find_duplicates
from sql_advisor.advisor.models import (
    IndexColumn,
    IndexKind,
    IndexRecommendation,
    RedundantIndexInfo,
    SortDirection,
)

__all__ = [
    "IndexAdvisor",
    "RedundantIndexFinder",
    "estimate_impact",
    "extract_table_names",
    "find_duplicates",
    "generate_create_statement",
    "IndexColumn",
    "IndexKind",
    "IndexRecommendation",
    "RedundantIndexInfo",
    "SortDirection",
]
