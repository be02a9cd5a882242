"""Orchestrator module: the analysis pipeline, rewrites and ranking."""

from sql_advisor.orchestrator.query_analyzer import QueryAnalyzer
from sql_advisor.orchestrator.rewriter import QueryRewriter
from sql_advisor.orchestrator.ranking import (
    build_suggestions,
    calculate_complexity,
    rank_suggestions,
)
from sql_advisor.orchestrator.models import (
    AnalysisOptions,
    AnalysisResult,
    Suggestion,
    SuggestionPriority,
)

__all__ = [
    "QueryAnalyzer",
    "QueryRewriter",
    "build_suggestions",
    "calculate_complexity",
    "rank_suggestions",
    "AnalysisOptions",
    "AnalysisResult",
    "Suggestion",
    "SuggestionPriority",
]
