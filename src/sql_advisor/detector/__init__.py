"""Detector module for lexical query anti-pattern detection."""

from sql_advisor.detector.pattern_detector import PatternDetector, normalize_query
from sql_advisor.detector.models import Issue, IssueSeverity, IssueType

__all__ = [
    "PatternDetector",
    "normalize_query",
    "Issue",
    "IssueSeverity",
    "IssueType",
]
