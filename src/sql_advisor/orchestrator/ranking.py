"""Complexity rating and suggestion ranking."""

from sql_advisor.advisor.models import IndexRecommendation
from sql_advisor.detector.models import Issue, IssueSeverity, IssueType
from sql_advisor.orchestrator.models import Suggestion, SuggestionPriority
from sql_advisor.orchestrator.rewriter import QueryRewriter

MAX_COMPLEXITY = 10

ISSUE_TITLES = {
    IssueType.CARTESIAN_PRODUCT: "Avoid cartesian product",
    IssueType.COLUMN_WILDCARD: "Avoid SELECT *",
    IssueType.IMPLICIT_CONVERSION: "Avoid implicit type conversion",
    IssueType.MISSING_INDEX: "Add missing index",
    IssueType.NON_SARGABLE_CONDITION: "Use SARGable conditions",
    IssueType.PARAMETER_SNIFFING: "Handle parameter sniffing",
    IssueType.SUBOPTIMAL_JOIN: "Optimize join strategy",
    IssueType.TABLE_SCAN: "Avoid table scans",
    IssueType.DIRTY_READ: "Avoid NOLOCK dirty reads",
    IssueType.UNNECESSARY_DISTINCT: "Avoid unnecessary DISTINCT",
    IssueType.SCALAR_FUNCTION: "Avoid scalar functions",
}
DEFAULT_TITLE = "Optimize query"

ISSUE_IMPACTS = {
    IssueType.CARTESIAN_PRODUCT: 80.0,
    IssueType.COLUMN_WILDCARD: 30.0,
    IssueType.IMPLICIT_CONVERSION: 60.0,
    IssueType.MISSING_INDEX: 70.0,
    IssueType.NON_SARGABLE_CONDITION: 50.0,
    IssueType.PARAMETER_SNIFFING: 40.0,
    IssueType.SUBOPTIMAL_JOIN: 45.0,
    IssueType.TABLE_SCAN: 65.0,
    IssueType.DIRTY_READ: 65.0,
    IssueType.UNNECESSARY_DISTINCT: 25.0,
    IssueType.SCALAR_FUNCTION: 55.0,
}
DEFAULT_IMPACT = 10.0

SEVERITY_PRIORITIES = {
    IssueSeverity.CRITICAL: SuggestionPriority.CRITICAL,
    IssueSeverity.MAJOR: SuggestionPriority.HIGH,
    IssueSeverity.MEDIUM: SuggestionPriority.MEDIUM,
}


def priority_for_impact(impact: float) -> SuggestionPriority:
    """Priority of an index suggestion: 70+ critical, 40+ high, 20+ medium."""
    if impact >= 70:
        return SuggestionPriority.CRITICAL
    if impact >= 40:
        return SuggestionPriority.HIGH
    if impact >= 20:
        return SuggestionPriority.MEDIUM
    return SuggestionPriority.LOW


def calculate_complexity(query: str, issues: list[Issue]) -> int:
    """
    Rate query complexity from 1 to 10.

    Length and issue count contribute, as do joins, APPLY operators,
    CTEs, UNION and GROUP BY. Keyword checks are case-insensitive
    substring tests on the raw text.
    """
    text = query.upper()
    rating = 1
    rating += min(3, len(query) // 1000)
    rating += min(4, len(issues) // 2)

    if "JOIN" in text:
        rating += 1
    if "OUTER APPLY" in text or "CROSS APPLY" in text:
        rating += 2
    if "CTE" in text or "WITH " in text:
        rating += 1
    if "UNION" in text:
        rating += 1
    if "GROUP BY" in text:
        rating += 1

    return min(MAX_COMPLEXITY, rating)


def issue_suggestion(issue: Issue, rewriter: QueryRewriter) -> Suggestion:
    return Suggestion(
        title=ISSUE_TITLES.get(issue.issue_type, DEFAULT_TITLE),
        description=issue.description,
        original_fragment=issue.fragment,
        suggested_fragment=rewriter.rewrite_fragment(issue),
        priority=SEVERITY_PRIORITIES.get(issue.severity, SuggestionPriority.LOW),
        estimated_impact=ISSUE_IMPACTS.get(issue.issue_type, DEFAULT_IMPACT),
    )


def index_suggestion(recommendation: IndexRecommendation) -> Suggestion:
    columns = ", ".join(column.name for column in recommendation.key_columns)
    impact = recommendation.estimated_impact
    return Suggestion(
        title=f"Create index on {recommendation.table}",
        description=(
            f"Creating an index on {columns} could improve query performance "
            f"by approximately {impact:.1f}%."
        ),
        original_fragment="",
        suggested_fragment=recommendation.create_statement,
        priority=priority_for_impact(impact),
        estimated_impact=impact,
    )


def rank_suggestions(suggestions: list[Suggestion], limit: int | None = None) -> list[Suggestion]:
    """Sort by estimated impact, highest first; ties keep their input order."""
    ranked = sorted(suggestions, key=lambda s: s.estimated_impact, reverse=True)
    return ranked if limit is None else ranked[:limit]


def build_suggestions(
    issues: list[Issue],
    recommendations: list[IndexRecommendation],
    rewriter: QueryRewriter,
    limit: int | None = None,
) -> list[Suggestion]:
    """
    Turn issues and index recommendations into ranked suggestions.

    Issue suggestions come first in the unsorted list, then index
    suggestions, so equal impacts favour issues.
    """
    suggestions = [issue_suggestion(issue, rewriter) for issue in issues]
    suggestions.extend(index_suggestion(rec) for rec in recommendations)
    return rank_suggestions(suggestions, limit)
