"""Query analyzer - sequences every stage of an analysis and ranks results."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sql_advisor.advisor.index_advisor import IndexAdvisor
from sql_advisor.advisor.models import IndexRecommendation, RedundantIndexInfo
from sql_advisor.advisor.redundancy import RedundantIndexFinder
from sql_advisor.benchmark.engine import BenchmarkEngine
from sql_advisor.benchmark.models import PerformanceComparison, PerformanceMetrics
from sql_advisor.config import Settings, get_settings
from sql_advisor.db.odbc import OdbcSession
from sql_advisor.db.session import (
    DatabaseSession,
    SessionFactory,
    close_session,
    open_session,
    run_best_effort,
    timeout_seconds,
)
from sql_advisor.detector.pattern_detector import PatternDetector
from sql_advisor.exceptions import AdvisorError, InvalidInputError
from sql_advisor.orchestrator.models import AnalysisOptions, AnalysisResult
from sql_advisor.orchestrator.ranking import build_suggestions, calculate_complexity
from sql_advisor.orchestrator.rewriter import QueryRewriter
from sql_advisor.plan.interpreter import PlanInterpreter
from sql_advisor.plan.models import PlanExtraction

logger = logging.getLogger(__name__)

SERVER_INFO_SQL = (
    "SELECT SERVERPROPERTY('ProductVersion') AS Version, "
    "SERVERPROPERTY('ProductLevel') AS Level, "
    "SERVERPROPERTY('Edition') AS Edition"
)
UNKNOWN_SERVER = "Unknown"


def _require_query(query: str, name: str = "query") -> None:
    if query is None or not query.strip():
        raise InvalidInputError(f"{name} must not be empty")


def _require_counts(iterations: int, warmup: int) -> None:
    if iterations < 1 or warmup < 0:
        raise InvalidInputError("iterations must be >= 1 and warmup >= 0")


class QueryAnalyzer:
    """Main entry point: analyzes, rewrites, benchmarks and compares queries.

    Collaborators are injected; anything not supplied gets its default.
    Calls share no mutable state and each opens its own session.
    """

    def __init__(
        self,
        session_factory: SessionFactory | None = None,
        settings: Settings | None = None,
        detector: PatternDetector | None = None,
        interpreter: PlanInterpreter | None = None,
        index_advisor: IndexAdvisor | None = None,
        redundancy_finder: RedundantIndexFinder | None = None,
        benchmark_engine: BenchmarkEngine | None = None,
        rewriter: QueryRewriter | None = None,
    ):
        """Initialize the analyzer."""
        self.settings = settings or get_settings()
        self.session_factory = session_factory or OdbcSession.connect
        self.detector = detector or PatternDetector()
        self.interpreter = interpreter or PlanInterpreter()
        self.index_advisor = index_advisor or IndexAdvisor(self.interpreter)
        self.redundancy_finder = redundancy_finder or RedundantIndexFinder()
        self.benchmark_engine = benchmark_engine or BenchmarkEngine(self.interpreter)
        self.rewriter = rewriter or QueryRewriter(self.settings.sql_dialect)

    @property
    def default_timeout(self) -> float | None:
        return timeout_seconds(int(self.settings.command_timeout_seconds * 1000))

    def _resolve_connection(self, connection_string: str | None) -> str:
        resolved = connection_string or self.settings.connection_string
        if not resolved or not resolved.strip():
            raise InvalidInputError("A connection string is required")
        return resolved

    @asynccontextmanager
    async def _session(
        self,
        connection_string: str,
        timeout: float | None,
    ) -> AsyncIterator[DatabaseSession]:
        session = await open_session(self.session_factory, connection_string, timeout)
        try:
            yield session
        finally:
            await close_session(session)

    async def analyze(
        self,
        query: str,
        connection_string: str | None = None,
        options: AnalysisOptions | None = None,
    ) -> AnalysisResult:
        """
        Run a full analysis of a query.

        Args:
            query: SQL text
            connection_string: Target database (defaults to settings)
            options: Stage switches and limits (defaults to settings)

        Returns:
            AnalysisResult with issues, metrics, indexes and ranked suggestions

        Raises:
            InvalidInputError: On bad input, before any I/O
            FatalExecutionError: If a mandatory stage fails
            asyncio.CancelledError: If the calling task is cancelled
        """
        options = options or self.settings.default_options()
        _require_query(query)
        options.validate()
        connection_string = self._resolve_connection(connection_string)
        timeout = timeout_seconds(options.max_execution_time_ms)

        logger.info("Starting analysis of SQL query")
        try:
            async with self._session(connection_string, timeout) as session:
                result = await self._run_pipeline(session, query, options, timeout)
        except asyncio.CancelledError:
            logger.warning("Analysis cancelled")
            raise
        except AdvisorError as e:
            logger.error(f"Analysis failed: {e}")
            raise

        logger.info(
            f"Analysis complete: {len(result.issues)} issues, "
            f"{len(result.index_recommendations)} index recommendations"
        )
        return result

    async def _run_pipeline(
        self,
        session: DatabaseSession,
        query: str,
        options: AnalysisOptions,
        timeout: float | None,
    ) -> AnalysisResult:
        server_info = await self._server_info(session, timeout)

        issues = self.detector.detect(query) if options.analyze_syntax else []

        metrics = None
        if options.collect_metrics:
            logger.info("Collecting performance metrics")
            metrics = await self.benchmark_engine.benchmark(
                session,
                query,
                iterations=options.metrics_iterations,
                warmup=options.metrics_warmup,
                collect_statistics=options.collect_statistics,
                timeout=timeout,
            )

        extraction = PlanExtraction()
        if options.analyze_plan or options.analyze_indexes:
            extraction = await self.index_advisor.fetch_estimated_plan(session, query, timeout)

        recommendations: list[IndexRecommendation] = []
        redundant: list[RedundantIndexInfo] = []
        if options.analyze_indexes:
            logger.info("Analyzing indexes")
            recommendations = self.index_advisor.build_recommendations(extraction)
            redundant = await self.redundancy_finder.find_redundant_indexes(
                session, query, timeout
            )

        optimized = query
        improvement = 0.0
        if options.attempt_rewrite:
            rewrite_issues = issues if options.analyze_syntax else self.detector.detect(query)
            optimized = self.rewriter.rewrite(query, rewrite_issues)
            if optimized != query and options.collect_metrics:
                comparison = await self._compare(
                    session,
                    query,
                    optimized,
                    iterations=options.comparison_iterations,
                    warmup=options.comparison_warmup,
                    collect_statistics=options.collect_statistics,
                    timeout=timeout,
                )
                improvement = comparison.execution_time_improvement

        suggestions = build_suggestions(
            issues, recommendations, self.rewriter, options.max_recommendations
        )

        return AnalysisResult(
            original_query=query,
            optimized_query=optimized,
            server_info=server_info,
            issues=tuple(issues),
            performance_metrics=metrics,
            index_recommendations=tuple(recommendations),
            redundant_indexes=tuple(redundant),
            suggestions=tuple(suggestions),
            complexity_rating=calculate_complexity(query, issues),
            improvement_percentage=improvement,
            estimated_plan_cost=extraction.estimated_cost,
        )

    async def _server_info(self, session: DatabaseSession, timeout: float | None) -> str:
        rows = await run_best_effort(
            "server info", session.fetch_all(SERVER_INFO_SQL), [], timeout
        )
        if not rows:
            return UNKNOWN_SERVER
        row = rows[0]
        return f"SQL Server {row.get('Edition')} {row.get('Version')} {row.get('Level')}"

    async def _compare(
        self,
        session: DatabaseSession,
        original: str,
        optimized: str,
        iterations: int,
        warmup: int,
        collect_statistics: bool,
        timeout: float | None,
    ) -> PerformanceComparison:
        logger.info("Comparing performance of original and optimized queries")
        original_metrics = await self.benchmark_engine.benchmark(
            session, original, iterations, warmup, collect_statistics, timeout
        )
        optimized_metrics = await self.benchmark_engine.benchmark(
            session, optimized, iterations, warmup, collect_statistics, timeout
        )
        return PerformanceComparison(
            original_query=original,
            optimized_query=optimized,
            original_metrics=original_metrics,
            optimized_metrics=optimized_metrics,
        )

    async def optimize_query(self, query: str) -> str:
        """
        Rewrite a query without touching the database.

        Returns:
            The rewritten text, or the original if no rewrite applies
        """
        _require_query(query)
        return self.rewriter.rewrite(query, self.detector.detect(query))

    async def benchmark_query(
        self,
        query: str,
        connection_string: str | None = None,
        iterations: int | None = None,
        warmup: int | None = None,
    ) -> PerformanceMetrics:
        """
        Benchmark a query on its own session.

        Raises:
            InvalidInputError: If the query is blank or counts are invalid
        """
        _require_query(query)
        iterations = self.settings.benchmark_iterations if iterations is None else iterations
        warmup = self.settings.warmup_iterations if warmup is None else warmup
        _require_counts(iterations, warmup)
        connection_string = self._resolve_connection(connection_string)
        timeout = self.default_timeout

        async with self._session(connection_string, timeout) as session:
            return await self.benchmark_engine.benchmark(
                session, query, iterations=iterations, warmup=warmup, timeout=timeout
            )

    async def compare_queries(
        self,
        original: str,
        optimized: str,
        connection_string: str | None = None,
        iterations: int | None = None,
        warmup: int | None = None,
    ) -> PerformanceComparison:
        """
        Benchmark two queries back to back on one session.

        Raises:
            InvalidInputError: If either query is blank or counts are invalid
        """
        _require_query(original, "original query")
        _require_query(optimized, "optimized query")
        iterations = self.settings.benchmark_iterations if iterations is None else iterations
        warmup = self.settings.warmup_iterations if warmup is None else warmup
        _require_counts(iterations, warmup)
        connection_string = self._resolve_connection(connection_string)
        timeout = self.default_timeout

        async with self._session(connection_string, timeout) as session:
            return await self._compare(
                session, original, optimized, iterations, warmup, True, timeout
            )

    async def recommend_indexes(
        self,
        query: str,
        connection_string: str | None = None,
    ) -> tuple[list[IndexRecommendation], list[RedundantIndexInfo]]:
        """Missing-index recommendations and redundant indexes for a query."""
        _require_query(query)
        connection_string = self._resolve_connection(connection_string)
        timeout = self.default_timeout

        async with self._session(connection_string, timeout) as session:
            extraction = await self.index_advisor.fetch_estimated_plan(session, query, timeout)
            recommendations = self.index_advisor.build_recommendations(extraction)
            redundant = await self.redundancy_finder.find_redundant_indexes(
                session, query, timeout
            )
        return recommendations, redundant
