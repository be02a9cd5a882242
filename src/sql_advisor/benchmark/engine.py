"""Benchmark engine - repeated, timed execution with plan and DMV capture."""

import logging
import re
import time
from statistics import fmean

from sql_advisor.benchmark.models import PerformanceMetrics
from sql_advisor.db.session import DatabaseSession, run_best_effort, run_mandatory
from sql_advisor.exceptions import FatalExecutionError, InvalidInputError
from sql_advisor.plan.interpreter import PlanInterpreter
from sql_advisor.plan.models import PlanMode

logger = logging.getLogger(__name__)

STATISTICS_ON_SQL = "SET STATISTICS IO ON; SET STATISTICS TIME ON;"

QUERY_STATS_SQL = """
SELECT TOP 1
    qs.total_logical_reads / qs.execution_count AS avg_logical_reads,
    qs.total_physical_reads / qs.execution_count AS avg_physical_reads,
    qs.total_worker_time / qs.execution_count AS avg_cpu_time_us,
    qs.total_rows / qs.execution_count AS avg_rows,
    qs.execution_count
FROM sys.dm_exec_query_stats AS qs
CROSS APPLY sys.dm_exec_sql_text(qs.sql_handle) AS st
WHERE st.text LIKE ? ESCAPE '\\'
ORDER BY qs.last_execution_time DESC
"""

_LIKE_PARAMETER = re.compile(r"\bLIKE\s+@\w+", re.IGNORECASE)
_PARAMETER = re.compile(r"(?<![@\w])@(?!@)\w+")
_LIKE_WILDCARD = re.compile(r"([\\%_\[])")

_NUMERIC_FIELDS = (
    "execution_time_ms",
    "cpu_time_ms",
    "logical_reads",
    "physical_reads",
    "rows_returned",
    "rows_scanned",
    "estimated_plan_cost",
)


def substitute_parameters(query: str) -> str:
    """
    Replace @placeholders with dummy literals so the text can execute.

    LIKE @p becomes LIKE '1'; every other @p becomes 1. @@system variables
    are left alone. The dummy values can match very different row sets from
    real parameter values, so timings are indicative only.
    """
    query = _LIKE_PARAMETER.sub("LIKE '1'", query)
    return _PARAMETER.sub("1", query)


def escape_like(text: str) -> str:
    """Escape LIKE wildcards (and the backslash escape itself) in literal text."""
    return _LIKE_WILDCARD.sub(r"\\\1", text)


def aggregate_metrics(runs: list[PerformanceMetrics]) -> PerformanceMetrics:
    """
    Average a list of runs.

    Numeric fields are arithmetic means. The plan text and plan-cache
    fields come from the first run.

    Raises:
        InvalidInputError: If runs is empty
    """
    if not runs:
        raise InvalidInputError("Cannot aggregate zero benchmark runs")

    first = runs[0]
    means = {name: fmean(getattr(run, name) for run in runs) for name in _NUMERIC_FIELDS}
    return PerformanceMetrics(
        **means,
        execution_plan=first.execution_plan,
        is_plan_cached=first.is_plan_cached,
        plan_reuse_count=first.plan_reuse_count,
    )


class BenchmarkEngine:
    """Executes a query repeatedly and aggregates what was measured."""

    def __init__(self, interpreter: PlanInterpreter | None = None):
        """Initialize the engine."""
        self.interpreter = interpreter or PlanInterpreter()

    async def benchmark(
        self,
        session: DatabaseSession,
        query: str,
        iterations: int = 3,
        warmup: int = 1,
        collect_statistics: bool = True,
        timeout: float | None = None,
    ) -> PerformanceMetrics:
        """
        Benchmark a query.

        Warmup runs are unmeasured and their failures are only logged.
        Measured runs are strictly sequential.

        Args:
            session: Open database session
            query: SQL text, possibly with @placeholders
            iterations: Number of measured runs (>= 1)
            warmup: Number of unmeasured runs first (>= 0)
            collect_statistics: Also read per-query DMV statistics
            timeout: Per round-trip timeout in seconds

        Returns:
            Mean metrics across the measured runs

        Raises:
            InvalidInputError: On bad iteration counts, before any I/O
            FatalExecutionError: If a measured run cannot execute
        """
        if iterations < 1:
            raise InvalidInputError(f"iterations must be at least 1, got {iterations}")
        if warmup < 0:
            raise InvalidInputError(f"warmup must not be negative, got {warmup}")
        if not query or not query.strip():
            raise InvalidInputError("Query text must not be empty")

        sql = substitute_parameters(query)
        logger.info(f"Benchmarking query: {iterations} iterations, {warmup} warmup")

        if collect_statistics:
            await run_best_effort(
                "session statistics", session.execute(STATISTICS_ON_SQL), None, timeout
            )

        warmup_failures = 0
        for _ in range(warmup):
            try:
                await run_mandatory("warmup execution", session.fetch_all(sql), timeout)
            except FatalExecutionError as e:
                warmup_failures += 1
                logger.warning(f"Warmup run failed: {e}")
        if warmup_failures:
            logger.info(f"{warmup_failures}/{warmup} warmup runs failed")

        runs = []
        for iteration in range(iterations):
            runs.append(await self._measure(session, sql, collect_statistics, timeout))
            logger.debug(
                f"Iteration {iteration + 1}/{iterations}: "
                f"{runs[-1].execution_time_ms:.2f} ms"
            )

        return aggregate_metrics(runs)

    async def collect_metrics(
        self,
        session: DatabaseSession,
        query: str,
        collect_statistics: bool = True,
        timeout: float | None = None,
    ) -> PerformanceMetrics:
        """Measure a single run with no warmup."""
        return await self.benchmark(
            session,
            query,
            iterations=1,
            warmup=0,
            collect_statistics=collect_statistics,
            timeout=timeout,
        )

    async def _measure(
        self,
        session: DatabaseSession,
        sql: str,
        collect_statistics: bool,
        timeout: float | None,
    ) -> PerformanceMetrics:
        plan_xml = await run_mandatory(
            "actual plan retrieval", session.fetch_plan(sql, PlanMode.ACTUAL), timeout
        )
        plan = self.interpreter.interpret(plan_xml, PlanMode.ACTUAL)
        if plan.is_empty:
            logger.warning("No usable actual plan returned; plan cost recorded as 0")

        started = time.perf_counter()
        rows = await run_mandatory("benchmark execution", session.fetch_all(sql), timeout)
        elapsed_ms = (time.perf_counter() - started) * 1000.0

        stats = {}
        if collect_statistics:
            stats_rows = await run_best_effort(
                "query statistics",
                session.fetch_all(QUERY_STATS_SQL, (f"%{escape_like(sql)}%",)),
                [],
                timeout,
            )
            if stats_rows:
                stats = stats_rows[0]

        execution_count = int(stats.get("execution_count") or 0)
        reuse_count = max(execution_count - 1, 0)
        return PerformanceMetrics(
            execution_time_ms=elapsed_ms,
            cpu_time_ms=float(stats.get("avg_cpu_time_us") or 0) / 1000.0,
            logical_reads=float(stats.get("avg_logical_reads") or 0),
            physical_reads=float(stats.get("avg_physical_reads") or 0),
            rows_returned=float(len(rows)),
            rows_scanned=float(stats.get("avg_rows") or 0),
            execution_plan=plan.plan_xml,
            estimated_plan_cost=plan.estimated_cost,
            is_plan_cached=reuse_count > 0,
            plan_reuse_count=reuse_count,
        )
