"""Tests for detector module."""

import pytest

from sql_advisor.detector import IssueSeverity, IssueType, PatternDetector, normalize_query
from sql_advisor.exceptions import InvalidInputError


COMPLEX_QUERY = (
    "SELECT DISTINCT * FROM Customers c, Orders o "
    "WHERE UPPER(c.LastName) = 'SMITH' AND o.CustomerId = c.Id "
    "AND c.FirstName LIKE '%John%'"
)


def issue_types(issues):
    return [issue.issue_type for issue in issues]


class TestNormalizeQuery:
    """Tests for normalize_query."""

    def test_strips_line_comments(self):
        """Test that -- comments are removed up to end of line."""
        assert normalize_query("SELECT Id -- the key\nFROM T") == "SELECT Id FROM T"

    def test_strips_block_comments(self):
        """Test that /* */ comments are removed, including multi-line ones."""
        assert normalize_query("SELECT /* all\ncolumns */ Id FROM T") == "SELECT Id FROM T"

    def test_collapses_whitespace(self):
        """Test that runs of whitespace become single spaces."""
        assert normalize_query("  SELECT\tId\n\n  FROM   T  ") == "SELECT Id FROM T"


class TestPatternDetector:
    """Tests for PatternDetector."""

    def test_blank_query_rejected(self):
        """Test that empty and whitespace-only input is invalid."""
        detector = PatternDetector()
        with pytest.raises(InvalidInputError):
            detector.detect("")
        with pytest.raises(ValueError):
            detector.detect("   \n\t")

    def test_select_star_any_case(self):
        """Test wildcard projection detection is case-insensitive."""
        detector = PatternDetector()
        for query in ("SELECT * FROM Users", "select * from users", "SeLeCt  *\nFrOm users"):
            issues = detector.detect(query)
            assert IssueType.COLUMN_WILDCARD in issue_types(issues)

    def test_count_star_is_not_wildcard(self):
        """Test that COUNT(*) is not reported as SELECT *."""
        issues = PatternDetector().detect("SELECT COUNT(*) FROM Users")
        assert IssueType.COLUMN_WILDCARD not in issue_types(issues)

    def test_nolock_yields_single_dirty_read(self):
        """Test WITH (NOLOCK) produces exactly one dirty-read issue."""
        issues = PatternDetector().detect("SELECT Id FROM T WITH (NOLOCK)")
        assert len(issues) == 1
        assert issues[0].issue_type == IssueType.DIRTY_READ
        assert issues[0].fragment == "WITH (NOLOCK)"
        assert issues[0].severity == IssueSeverity.MEDIUM

    def test_leading_wildcard_like(self):
        """Test LIKE '%...' is non-SARGable."""
        issues = PatternDetector().detect("SELECT Name FROM Customers WHERE Name LIKE '%Smith'")
        assert issue_types(issues) == [IssueType.NON_SARGABLE_CONDITION]
        assert issues[0].fragment == "LIKE '%Smith'"
        assert issues[0].severity == IssueSeverity.MEDIUM

    def test_trailing_wildcard_like_is_fine(self):
        """Test LIKE 'x%' produces no issue."""
        issues = PatternDetector().detect("SELECT Name FROM Customers WHERE Name LIKE 'Smith%'")
        assert issues == []

    def test_function_on_column_in_where(self):
        """Test a function wrapping a filtered column is non-SARGable."""
        issues = PatternDetector().detect(
            "SELECT Id FROM Customers c WHERE UPPER(c.LastName) = @name"
        )
        assert issue_types(issues) == [IssueType.NON_SARGABLE_CONDITION]
        assert issues[0].severity == IssueSeverity.MAJOR
        assert issues[0].fragment == "UPPER(c.LastName)"

    def test_function_on_parameter_is_fine(self):
        """Test a function applied to the parameter side is not flagged."""
        issues = PatternDetector().detect("SELECT Id FROM Customers WHERE LastName = UPPER(@name)")
        assert issues == []

    def test_implicit_conversion_cast_vs_string(self):
        """Test numeric CAST compared with a string literal."""
        issues = PatternDetector().detect(
            "SELECT Id FROM Accounts WHERE CAST(@AccountCode AS INT) = '12345'"
        )
        assert issue_types(issues) == [IssueType.IMPLICIT_CONVERSION]
        assert issues[0].severity == IssueSeverity.MAJOR
        assert issues[0].fragment == "CAST(@AccountCode AS INT) = '12345'"

    def test_implicit_conversion_string_first(self):
        """Test the string-literal-first order is detected too."""
        issues = PatternDetector().detect("SELECT Id FROM Accounts WHERE '42' = CONVERT(INT, @x)")
        assert IssueType.IMPLICIT_CONVERSION in issue_types(issues)

    def test_distinct(self):
        """Test SELECT DISTINCT is reported as minor."""
        issues = PatternDetector().detect("SELECT DISTINCT City FROM Customers")
        assert issue_types(issues) == [IssueType.UNNECESSARY_DISTINCT]
        assert issues[0].severity == IssueSeverity.MINOR

    def test_comma_join_is_cartesian(self):
        """Test a comma-separated FROM list is a cartesian product."""
        issues = PatternDetector().detect("SELECT A.x FROM A, B WHERE A.x = B.y")
        assert issue_types(issues) == [IssueType.CARTESIAN_PRODUCT]
        assert issues[0].severity == IssueSeverity.CRITICAL

    def test_explicit_join_is_not_cartesian(self):
        """Test JOIN ... ON produces no issue."""
        issues = PatternDetector().detect("SELECT A.x FROM A JOIN B ON A.x = B.y")
        assert issues == []

    def test_comma_join_with_aliases_and_schema(self):
        """Test aliased, schema-qualified comma joins are detected."""
        issues = PatternDetector().detect(
            "SELECT o.Id FROM dbo.Orders AS o, dbo.Customers c WHERE o.CustomerId = c.Id"
        )
        assert IssueType.CARTESIAN_PRODUCT in issue_types(issues)

    def test_scalar_function_in_projection(self):
        """Test a schema-qualified function call in the SELECT list."""
        issues = PatternDetector().detect(
            "SELECT o.Id, dbo.fn_OrderTotal(o.Id) AS Total FROM Orders o"
        )
        assert issue_types(issues) == [IssueType.SCALAR_FUNCTION]
        assert issues[0].fragment == "dbo.fn_OrderTotal(o.Id)"

    def test_column_reference_is_not_scalar_function(self):
        """Test qualified column names alone are not function calls."""
        issues = PatternDetector().detect("SELECT o.Id, o.Total FROM Orders o")
        assert issues == []

    def test_complex_query_multiple_findings(self):
        """Test several rules fire on one query, in evaluation order."""
        issues = PatternDetector().detect(COMPLEX_QUERY)
        assert issue_types(issues) == [
            IssueType.COLUMN_WILDCARD,
            IssueType.NON_SARGABLE_CONDITION,
            IssueType.UNNECESSARY_DISTINCT,
            IssueType.CARTESIAN_PRODUCT,
        ]

    def test_detection_is_idempotent(self):
        """Test repeated detection returns equal results."""
        detector = PatternDetector()
        assert detector.detect(COMPLEX_QUERY) == detector.detect(COMPLEX_QUERY)

    def test_commented_out_pattern_ignored(self):
        """Test patterns inside comments are not reported."""
        issues = PatternDetector().detect("SELECT Id FROM T -- WITH (NOLOCK)\n/* SELECT * FROM T */")
        assert issues == []

    def test_clean_query(self):
        """Test a well-formed query has no issues."""
        issues = PatternDetector().detect(
            "SELECT o.Id, o.Total FROM Orders o INNER JOIN Customers c "
            "ON c.Id = o.CustomerId WHERE o.OrderDate >= @since"
        )
        assert issues == []
