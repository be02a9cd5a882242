"""Conservative textual rewrites keyed by detected issue type."""

import logging
import re

import sqlglot
from sqlglot.errors import SqlglotError

from sql_advisor.detector.models import Issue, IssueType

logger = logging.getLogger(__name__)

# Only issue types listed here are ever rewritten. SELECT * is deliberately
# absent: the column list is unknown without the schema.
REWRITES: dict[IssueType, tuple[re.Pattern, str]] = {
    IssueType.UNNECESSARY_DISTINCT: (
        re.compile(r"\bSELECT\s+DISTINCT\b", re.IGNORECASE),
        "SELECT",
    ),
    IssueType.DIRTY_READ: (
        re.compile(r"\s*\bWITH\s*\(\s*NOLOCK\s*\)", re.IGNORECASE),
        "",
    ),
}


class QueryRewriter:
    """Applies the rewrite table to query text."""

    def __init__(self, dialect: str = "tsql"):
        """Initialize the rewriter."""
        self.dialect = dialect

    def parses(self, sql: str) -> bool:
        """Check whether sqlglot can parse the text in this dialect."""
        try:
            sqlglot.parse(sql, read=self.dialect)
            return True
        except SqlglotError:
            return False

    def rewrite_fragment(self, issue: Issue) -> str:
        """The replacement text for one issue's fragment, or '' if none applies."""
        rule = REWRITES.get(issue.issue_type)
        if rule is None:
            return ""
        pattern, replacement = rule
        return pattern.sub(replacement, issue.fragment).strip()

    def rewrite(self, query: str, issues: list[Issue]) -> str:
        """
        Rewrite a query for the issues found in it.

        A substitution that turns parseable text into unparseable text is
        discarded.

        Args:
            query: Original SQL text
            issues: Issues detected in that text

        Returns:
            The rewritten text, or the original when nothing applied
        """
        rewritten = query
        original_parses = self.parses(query)

        for issue_type in dict.fromkeys(issue.issue_type for issue in issues):
            rule = REWRITES.get(issue_type)
            if rule is None:
                continue
            pattern, replacement = rule
            candidate = pattern.sub(replacement, rewritten)
            if candidate == rewritten:
                continue
            if original_parses and not self.parses(candidate):
                logger.warning(f"Discarded {issue_type.value} rewrite: result does not parse")
                continue
            rewritten = candidate

        if rewritten != query:
            logger.info("Query rewritten")
        return rewritten

    def format(self, sql: str) -> str:
        """Pretty-print SQL, returning it unchanged if it cannot be parsed."""
        try:
            statements = sqlglot.transpile(
                sql, read=self.dialect, write=self.dialect, pretty=True
            )
        except SqlglotError:
            return sql
        return ";\n".join(statements) if statements else sql
