"""Index advisor - turns plan advisories into concrete index DDL."""

import dataclasses
import logging
import re

from sql_advisor.advisor.models import (
    IndexColumn,
    IndexKind,
    IndexRecommendation,
    SortDirection,
)
from sql_advisor.benchmark.engine import substitute_parameters
from sql_advisor.db.session import DatabaseSession, run_mandatory
from sql_advisor.plan.interpreter import PlanInterpreter
from sql_advisor.plan.models import MissingIndexAdvisory, PlanExtraction, PlanMode

logger = logging.getLogger(__name__)

MAX_HEURISTIC_IMPACT = 90.0

_TABLE_NAME = re.compile(
    r"\b(?:FROM|JOIN)\s+"
    r"((?:(?:\[[^\]]+\]|[A-Za-z0-9_#]+)\s*\.\s*){0,3})"
    r"(?:\[(?P<bracketed>[^\]]+)\]|(?P<bare>[A-Za-z0-9_#]+))",
    re.IGNORECASE,
)


def estimate_impact(key_column_count: int, included_column_count: int) -> float:
    """
    Heuristic impact when the plan carries no figure of its own.

    25 base, plus 5 per key column (max 25), plus 3 per included column
    (max 15), capped at 90.
    """
    impact = (
        25.0
        + min(25.0, 5.0 * key_column_count)
        + min(15.0, 3.0 * included_column_count)
    )
    return min(impact, MAX_HEURISTIC_IMPACT)


def generate_create_statement(recommendation: IndexRecommendation) -> str:
    """
    Render CREATE INDEX DDL for a recommendation.

    Args:
        recommendation: The index to render

    Returns:
        The DDL, or an empty string when there are no key columns
    """
    if not recommendation.key_columns:
        return ""

    parts = ["CREATE "]
    if recommendation.is_unique:
        parts.append("UNIQUE ")
    parts.append(
        "CLUSTERED " if recommendation.index_kind == IndexKind.CLUSTERED else "NONCLUSTERED "
    )
    parts.append(f"INDEX [{recommendation.suggested_name}] ON {recommendation.qualified_table} ")

    keys = ", ".join(
        f"{column.name} {column.sort_direction.value}"
        for column in recommendation.key_columns
    )
    parts.append(f"({keys})")

    if recommendation.included_columns:
        parts.append(f" INCLUDE ({', '.join(recommendation.included_columns)})")

    if recommendation.filter_predicate.strip():
        parts.append(f" WHERE {recommendation.filter_predicate.strip()}")

    return "".join(parts)


def extract_table_names(query: str) -> list[str]:
    """
    Find table names that follow FROM or JOIN.

    Schema-qualified names are reduced to their table part. Duplicates are
    dropped, keeping first-seen order.
    """
    names: list[str] = []
    for match in _TABLE_NAME.finditer(query or ""):
        name = match.group("bracketed") or match.group("bare")
        if name and name not in names:
            names.append(name)
    return names


class IndexAdvisor:
    """Builds index recommendations from missing-index advisories."""

    def __init__(self, interpreter: PlanInterpreter | None = None):
        """Initialize the advisor."""
        self.interpreter = interpreter or PlanInterpreter()

    def build_recommendation(self, advisory: MissingIndexAdvisory) -> IndexRecommendation:
        """
        Build one recommendation from one advisory.

        Key columns are the equality columns followed by the inequality
        columns, all ascending. A column listed in both groups appears twice.
        """
        key_columns = tuple(
            IndexColumn(name, SortDirection.ASC)
            for name in (*advisory.equality_columns, *advisory.inequality_columns)
        )

        if advisory.impact is not None and advisory.impact > 0:
            impact = advisory.impact
        else:
            impact = estimate_impact(len(key_columns), len(advisory.include_columns))

        recommendation = IndexRecommendation(
            database=advisory.database,
            schema=advisory.schema,
            table=advisory.table,
            key_columns=key_columns,
            included_columns=advisory.include_columns,
            estimated_impact=impact,
        )
        return dataclasses.replace(
            recommendation, create_statement=generate_create_statement(recommendation)
        )

    def build_recommendations(self, extraction: PlanExtraction) -> list[IndexRecommendation]:
        """One recommendation per advisory, in plan document order."""
        recommendations = [self.build_recommendation(a) for a in extraction.missing_indexes]
        logger.info(f"Built {len(recommendations)} index recommendations")
        return recommendations

    async def recommend_indexes(
        self,
        session: DatabaseSession,
        query: str,
        timeout: float | None = None,
    ) -> list[IndexRecommendation]:
        """
        Fetch the estimated plan for a query and derive recommendations.

        Args:
            session: Open database session
            query: SQL text
            timeout: Per round-trip timeout in seconds

        Returns:
            Index recommendations (empty if the plan has no advisories)

        Raises:
            FatalExecutionError: If the plan cannot be retrieved
        """
        extraction = await self.fetch_estimated_plan(session, query, timeout)
        return self.build_recommendations(extraction)

    async def fetch_estimated_plan(
        self,
        session: DatabaseSession,
        query: str,
        timeout: float | None = None,
    ) -> PlanExtraction:
        """
        Fetch and interpret the estimated plan for a query.

        Parameter placeholders are replaced with dummy literals first, since
        the server cannot compile text with undeclared variables.

        Raises:
            FatalExecutionError: If the plan cannot be retrieved
        """
        plan_xml = await run_mandatory(
            "estimated plan retrieval",
            session.fetch_plan(substitute_parameters(query), PlanMode.ESTIMATED),
            timeout,
        )
        extraction = self.interpreter.interpret(plan_xml, PlanMode.ESTIMATED)
        if extraction.is_empty:
            logger.warning("No usable estimated plan returned")
        return extraction
