"""Text-based anti-pattern detection over raw SQL.

Detection is lexical on purpose: no AST is built, so the detector works on
any dialect fragment and on queries that do not parse. The cost is that
string literal contents are not protected from matching.
"""

import logging
import re
from typing import Callable

from sql_advisor.detector.models import Issue, IssueSeverity, IssueType
from sql_advisor.exceptions import InvalidInputError

logger = logging.getLogger(__name__)

_LINE_COMMENT = re.compile(r"--.*$", re.MULTILINE)
_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_WHITESPACE = re.compile(r"\s+")

_NUMERIC_TYPES = r"(?:INT|BIGINT|SMALLINT|TINYINT|DECIMAL|NUMERIC|FLOAT|REAL|MONEY|SMALLMONEY|BIT)"
_STRING_TYPES = r"(?:VARCHAR|NVARCHAR|CHAR|NCHAR|TEXT|NTEXT)"
_COMPARISON = r"(?:=|<>|!=|<=|>=|<|>)"
_TYPE_ARGS = r"(?:\s*\(\s*(?:\d+|MAX)(?:\s*,\s*\d+)?\s*\))?"


def _typed(types: str) -> str:
    """Pattern for CAST(... AS type) or CONVERT(type, ...)."""
    return (
        rf"(?:CAST\s*\([^()]*?\bAS\s+{types}\b{_TYPE_ARGS}\s*\)"
        rf"|CONVERT\s*\(\s*{types}\b{_TYPE_ARGS}\s*,[^()]*\))"
    )


_STRING_EXPR = rf"(?:{_typed(_STRING_TYPES)}|N?'[^']*')"
_NUMERIC_EXPR = rf"(?:{_typed(_NUMERIC_TYPES)}|(?<![\w@.])-?\d+(?:\.\d+)?\b)"

_SELECT_STAR = re.compile(
    r"\bSELECT\s+(?:DISTINCT\s+|ALL\s+)?"
    r"(?:TOP\s*\(?\s*\d+\s*\)?\s+(?:PERCENT\s+)?)?\*\s*FROM\b",
    re.IGNORECASE,
)
_NOLOCK = re.compile(r"\bWITH\s*\(\s*NOLOCK\s*\)", re.IGNORECASE)
_IMPLICIT_CONVERSION = re.compile(
    rf"{_STRING_EXPR}\s*{_COMPARISON}\s*{_NUMERIC_EXPR}"
    rf"|{_NUMERIC_EXPR}\s*{_COMPARISON}\s*{_STRING_EXPR}",
    re.IGNORECASE,
)
_FILTER_FUNCTION = re.compile(
    r"\b(?:WHERE|ON|HAVING)\b"
    r"(?:(?!\b(?:GROUP\s+BY|ORDER\s+BY|UNION|SELECT)\b).)*?"
    r"\b(?P<func>UPPER|LOWER|SUBSTRING|LEFT|RIGHT|LTRIM|RTRIM|DATEPART|YEAR|MONTH|DAY|CONVERT|CAST)"
    r"\s*\(\s*\[?[A-Za-z_]",
    re.IGNORECASE,
)
_LEADING_WILDCARD = re.compile(r"\bLIKE\s+N?'%[^']*'?", re.IGNORECASE)
_DISTINCT = re.compile(r"\bSELECT\s+DISTINCT\b", re.IGNORECASE)

_NOT_AN_ALIAS = (
    r"(?!(?:WHERE|JOIN|INNER|LEFT|RIGHT|FULL|CROSS|OUTER|APPLY|ON|GROUP|ORDER"
    r"|HAVING|UNION|EXCEPT|INTERSECT|WITH|OPTION|PIVOT|UNPIVOT|FOR|WINDOW)\b)"
)
_NAME_PART = r"(?:\[[^\]]+\]|[A-Za-z_#@][\w$#]*)"
_TABLE_REF = (
    rf"{_NAME_PART}(?:\.{_NAME_PART}){{0,3}}"
    rf"(?:\s+(?:AS\s+)?{_NOT_AN_ALIAS}[A-Za-z_]\w*)?"
    r"(?:\s+WITH\s*\([^()]*\))?"
)
_COMMA_JOIN = re.compile(
    rf"\bFROM\s+{_TABLE_REF}\s*,\s*{_TABLE_REF}",
    re.IGNORECASE,
)
_EXPLICIT_JOIN_FOLLOWS = re.compile(
    r"\s*(?:ON\b|(?:(?:INNER|CROSS|(?:LEFT|RIGHT|FULL)(?:\s+OUTER)?)\s+)?JOIN\b)",
    re.IGNORECASE,
)
_PROJECTION = re.compile(r"\bSELECT\b(?P<projection>.*?)(?:\bFROM\b|$)", re.IGNORECASE)
_QUALIFIED_CALL = re.compile(
    r"(?<![\w\].])(?:\[?[A-Za-z_]\w*\]?\.)+\[?[A-Za-z_]\w*\]?\s*\("
)


def normalize_query(query: str) -> str:
    """
    Strip comments and collapse whitespace.

    Comment markers inside string literals are not recognized as literal
    text, so a literal containing '--' is truncated.

    Args:
        query: Raw SQL text

    Returns:
        Single-line SQL text
    """
    text = _LINE_COMMENT.sub("", query)
    text = _BLOCK_COMMENT.sub("", text)
    text = _WHITESPACE.sub(" ", text)
    return text.strip()


def _call_text(text: str, start: int) -> str:
    """Return the function call starting at `start`, up to its closing paren."""
    depth = 0
    for position in range(start, len(text)):
        char = text[position]
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return text[start : position + 1]
    return text[start:].strip()


class PatternDetector:
    """Runs a fixed, ordered set of lexical rules over a query."""

    def __init__(self):
        """Initialize the detector."""
        self._rules: list[Callable[[str], Issue | None]] = [
            self._check_select_star,
            self._check_nolock,
            self._check_implicit_conversion,
            self._check_non_sargable,
            self._check_distinct,
            self._check_cartesian_product,
            self._check_scalar_function,
        ]

    def detect(self, query: str) -> list[Issue]:
        """
        Detect anti-patterns in a query.

        Args:
            query: SQL text

        Returns:
            Issues in rule-evaluation order (not severity order)

        Raises:
            InvalidInputError: If the query is empty or blank
        """
        if query is None or not query.strip():
            raise InvalidInputError("Query text must not be empty")

        text = normalize_query(query)
        issues = []
        for rule in self._rules:
            issue = rule(text)
            if issue is not None:
                issues.append(issue)

        logger.debug(f"Detected {len(issues)} issues")
        return issues

    def _check_select_star(self, text: str) -> Issue | None:
        match = _SELECT_STAR.search(text)
        if not match:
            return None
        return Issue(
            issue_type=IssueType.COLUMN_WILDCARD,
            description=(
                "SELECT * returns every column, adding I/O and network traffic "
                "and defeating covering indexes. List only the columns you need."
            ),
            fragment=match.group(0),
            severity=IssueSeverity.MEDIUM,
        )

    def _check_nolock(self, text: str) -> Issue | None:
        match = _NOLOCK.search(text)
        if not match:
            return None
        return Issue(
            issue_type=IssueType.DIRTY_READ,
            description=(
                "The NOLOCK hint allows dirty reads, so rows can be missed or "
                "read twice. Use an appropriate isolation level such as "
                "READ COMMITTED SNAPSHOT instead."
            ),
            fragment=match.group(0),
            severity=IssueSeverity.MEDIUM,
        )

    def _check_implicit_conversion(self, text: str) -> Issue | None:
        match = _IMPLICIT_CONVERSION.search(text)
        if not match:
            return None
        return Issue(
            issue_type=IssueType.IMPLICIT_CONVERSION,
            description=(
                "A string value is compared with a numeric one. The engine "
                "converts one side implicitly, which can prevent index seeks."
            ),
            fragment=match.group(0),
            severity=IssueSeverity.MAJOR,
        )

    def _check_non_sargable(self, text: str) -> Issue | None:
        match = _FILTER_FUNCTION.search(text)
        if match:
            return Issue(
                issue_type=IssueType.NON_SARGABLE_CONDITION,
                description=(
                    f"{match.group('func').upper()}() wraps a column in a filter, "
                    "which prevents index seeks. Apply the function to the "
                    "parameter side instead."
                ),
                fragment=_call_text(text, match.start("func")),
                severity=IssueSeverity.MAJOR,
            )

        match = _LEADING_WILDCARD.search(text)
        if match:
            return Issue(
                issue_type=IssueType.NON_SARGABLE_CONDITION,
                description=(
                    "A LIKE pattern starting with % cannot use an index seek. "
                    "Consider full-text search or a trailing wildcard."
                ),
                fragment=match.group(0),
                severity=IssueSeverity.MEDIUM,
            )
        return None

    def _check_distinct(self, text: str) -> Issue | None:
        match = _DISTINCT.search(text)
        if not match:
            return None
        return Issue(
            issue_type=IssueType.UNNECESSARY_DISTINCT,
            description=(
                "DISTINCT forces a sort or hash over the whole result. Fix the "
                "joins or use GROUP BY if duplicates are not expected."
            ),
            fragment=match.group(0),
            severity=IssueSeverity.MINOR,
        )

    def _check_cartesian_product(self, text: str) -> Issue | None:
        for match in _COMMA_JOIN.finditer(text):
            if _EXPLICIT_JOIN_FOLLOWS.match(text, match.end()):
                continue
            return Issue(
                issue_type=IssueType.CARTESIAN_PRODUCT,
                description=(
                    "Tables are listed with commas in FROM. A missing or wrong "
                    "predicate produces a cartesian product; use explicit JOIN "
                    "... ON syntax."
                ),
                fragment=match.group(0),
                severity=IssueSeverity.CRITICAL,
            )
        return None

    def _check_scalar_function(self, text: str) -> Issue | None:
        for select in _PROJECTION.finditer(text):
            projection = select.group("projection")
            call = _QUALIFIED_CALL.search(projection)
            if call:
                return Issue(
                    issue_type=IssueType.SCALAR_FUNCTION,
                    description=(
                        "A scalar user-defined function in the SELECT list runs "
                        "once per row and blocks parallelism. Consider inline "
                        "logic, an inline table-valued function or a computed column."
                    ),
                    fragment=_call_text(projection, call.start()).strip(),
                    severity=IssueSeverity.MEDIUM,
                )
        return None
