"""Main CLI entry point for SQL Advisor."""

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.syntax import Syntax

from sql_advisor import __version__
from sql_advisor.config import get_settings, ConnectionNotConfiguredError
from sql_advisor.detector import PatternDetector
from sql_advisor.orchestrator import AnalysisOptions, AnalysisResult, QueryAnalyzer, QueryRewriter

console = Console()
logger = logging.getLogger(__name__)

_SEVERITY_STYLES = {
    "critical": "bold red",
    "major": "red",
    "medium": "yellow",
    "minor": "cyan",
    "info": "dim",
}
_PRIORITY_STYLES = {
    "critical": "bold red",
    "high": "red",
    "medium": "yellow",
    "low": "dim",
}


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else getattr(
        logging, get_settings().log_level.upper(), logging.INFO
    )
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def query_input(func):
    """Add --query / --query-file options to a command."""
    func = click.option(
        "--query-file",
        "-f",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help="File containing the SQL query",
    )(func)
    func = click.option("--query", "-q", help="SQL query text (or pipe it on stdin)")(func)
    return func


def connection_input(func):
    """Add the --connection-string option to a command."""
    return click.option(
        "--connection-string",
        "-c",
        help="ODBC connection string (defaults to SQL_ADVISOR_CONNECTION_STRING)",
    )(func)


def _read_query(query: str | None, query_file: Path | None) -> str:
    if query:
        return query
    if query_file:
        return query_file.read_text(encoding="utf-8")
    if not sys.stdin.isatty():
        return sys.stdin.read()
    raise click.UsageError("Provide --query, --query-file, or pipe SQL on stdin")


def _connection(connection_string: str | None) -> str:
    if connection_string:
        return connection_string
    try:
        return get_settings().require_connection_string()
    except ConnectionNotConfiguredError as e:
        console.print(f"[red]{e.message}[/red]")
        sys.exit(1)


def _fail(message: str, error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {error}")
    logger.exception(message)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
def cli(verbose: bool) -> None:
    """SQL Advisor - Query Analysis and Index Recommendations.

    Detect query anti-patterns, read the optimizer's execution plan,
    recommend indexes and benchmark rewrites against SQL Server.
    """
    setup_logging(verbose)


@cli.command()
@query_input
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format",
)
def detect(query: str | None, query_file: Path | None, output_format: str) -> None:
    """Detect anti-patterns in a query (no database needed)."""
    sql = _read_query(query, query_file)
    try:
        issues = PatternDetector().detect(sql)
    except Exception as e:
        _fail("Detection failed", e)

    if output_format == "json":
        console.print_json(data=[issue.to_dict() for issue in issues])
        return

    if not issues:
        console.print("[green]✓ No issues detected[/green]")
        return

    table = Table(title="Detected Issues")
    table.add_column("#", style="dim")
    table.add_column("Issue", style="cyan")
    table.add_column("Severity")
    table.add_column("Fragment", style="magenta")
    table.add_column("Description")

    for number, issue in enumerate(issues, start=1):
        style = _SEVERITY_STYLES.get(issue.severity.value, "")
        table.add_row(
            str(number),
            issue.issue_type.value,
            f"[{style}]{issue.severity.value}[/{style}]",
            issue.fragment,
            issue.description,
        )

    console.print(table)


@cli.command()
@query_input
@click.option("--pretty/--no-pretty", default=True, help="Pretty-print the rewritten SQL")
def rewrite(query: str | None, query_file: Path | None, pretty: bool) -> None:
    """Rewrite a query for the issues that have safe fixes (no database needed)."""
    sql = _read_query(query, query_file)
    settings = get_settings()
    rewriter = QueryRewriter(settings.sql_dialect)

    try:
        optimized = asyncio.run(QueryAnalyzer(settings=settings, rewriter=rewriter).optimize_query(sql))
    except Exception as e:
        _fail("Rewrite failed", e)

    if optimized == sql:
        console.print("[dim]No rewrite applies; query unchanged.[/dim]")
    text = rewriter.format(optimized) if pretty else optimized
    console.print(Syntax(text, "sql", word_wrap=True))


@cli.command()
@query_input
@connection_input
@click.option("--no-syntax", is_flag=True, default=False, help="Skip anti-pattern detection")
@click.option("--no-metrics", is_flag=True, default=False, help="Skip benchmarking")
@click.option("--no-indexes", is_flag=True, default=False, help="Skip index analysis")
@click.option("--no-plan", is_flag=True, default=False, help="Skip plan cost extraction")
@click.option("--no-rewrite", is_flag=True, default=False, help="Skip query rewrite")
@click.option(
    "--max-recommendations",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum number of suggestions to keep",
)
@click.option(
    "--timeout-ms",
    type=click.IntRange(min=0),
    default=None,
    help="Per round-trip timeout in milliseconds (0 = unlimited)",
)
@click.option(
    "--output",
    type=click.Path(path_type=Path),
    help="Output file for results (JSON)",
)
def analyze(
    query: str | None,
    query_file: Path | None,
    connection_string: str | None,
    no_syntax: bool,
    no_metrics: bool,
    no_indexes: bool,
    no_plan: bool,
    no_rewrite: bool,
    max_recommendations: int | None,
    timeout_ms: int | None,
    output: Path | None,
) -> None:
    """Run a full analysis of a query against a live database.

    Detects anti-patterns, benchmarks the query, reads the estimated plan
    for missing indexes, checks for redundant indexes, rewrites the query
    where safe and ranks everything into suggestions.
    """
    sql = _read_query(query, query_file)
    conn = _connection(connection_string)
    settings = get_settings()
    defaults = settings.default_options()

    options = AnalysisOptions(
        analyze_syntax=not no_syntax,
        analyze_plan=not no_plan,
        analyze_indexes=not no_indexes,
        collect_metrics=not no_metrics,
        attempt_rewrite=not no_rewrite,
        max_execution_time_ms=(
            defaults.max_execution_time_ms if timeout_ms is None else timeout_ms
        ),
        max_recommendations=max_recommendations or defaults.max_recommendations,
        comparison_iterations=defaults.comparison_iterations,
        comparison_warmup=defaults.comparison_warmup,
    )

    console.print(Panel.fit(
        "[bold blue]SQL Advisor Analysis[/bold blue]",
        title="Starting Analysis",
    ))

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Analyzing query...", total=None)
            analyzer = QueryAnalyzer(settings=settings)
            result = asyncio.run(analyzer.analyze(sql, conn, options))
            progress.update(task, completed=True)
    except Exception as e:
        _fail("Analysis failed", e)

    _display_analysis(result)

    if output:
        with open(output, "w") as f:
            json.dump(result.to_dict(), f, indent=2)
        console.print(f"\n[green]Results saved to {output}[/green]")

    console.print("\n[bold green]✓ Analysis complete![/bold green]")


@cli.command()
@query_input
@connection_input
@click.option("--iterations", "-n", type=click.IntRange(min=1), default=None, help="Measured runs")
@click.option("--warmup", type=click.IntRange(min=0), default=None, help="Unmeasured warmup runs")
def benchmark(
    query: str | None,
    query_file: Path | None,
    connection_string: str | None,
    iterations: int | None,
    warmup: int | None,
) -> None:
    """Benchmark a query and show averaged metrics."""
    sql = _read_query(query, query_file)
    conn = _connection(connection_string)

    try:
        metrics = asyncio.run(
            QueryAnalyzer().benchmark_query(sql, conn, iterations=iterations, warmup=warmup)
        )
    except Exception as e:
        _fail("Benchmark failed", e)

    table = Table(title="Benchmark Results (mean)")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")
    for name, value in metrics.to_dict().items():
        table.add_row(name, f"{value:.2f}" if isinstance(value, float) else str(value))
    console.print(table)


@cli.command()
@click.option(
    "--original",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="File containing the original query",
)
@click.option(
    "--optimized",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="File containing the optimized query",
)
@connection_input
@click.option("--iterations", "-n", type=click.IntRange(min=1), default=None, help="Measured runs")
def compare(
    original: Path,
    optimized: Path,
    connection_string: str | None,
    iterations: int | None,
) -> None:
    """Benchmark two versions of a query side by side."""
    conn = _connection(connection_string)

    try:
        comparison = asyncio.run(
            QueryAnalyzer().compare_queries(
                original.read_text(encoding="utf-8"),
                optimized.read_text(encoding="utf-8"),
                conn,
                iterations=iterations,
            )
        )
    except Exception as e:
        _fail("Comparison failed", e)

    table = Table(title="Performance Comparison")
    table.add_column("Metric", style="cyan")
    table.add_column("Original", justify="right")
    table.add_column("Optimized", justify="right")
    table.add_column("Improvement", justify="right", style="green")
    table.add_row(
        "Execution time (ms)",
        f"{comparison.original_metrics.execution_time_ms:.2f}",
        f"{comparison.optimized_metrics.execution_time_ms:.2f}",
        f"{comparison.execution_time_improvement:.1f}%",
    )
    table.add_row(
        "CPU time (ms)",
        f"{comparison.original_metrics.cpu_time_ms:.2f}",
        f"{comparison.optimized_metrics.cpu_time_ms:.2f}",
        f"{comparison.cpu_time_improvement:.1f}%",
    )
    table.add_row(
        "Logical reads",
        f"{comparison.original_metrics.logical_reads:.0f}",
        f"{comparison.optimized_metrics.logical_reads:.0f}",
        f"{comparison.logical_reads_improvement:.1f}%",
    )
    console.print(table)


@cli.command()
@query_input
@connection_input
def indexes(query: str | None, query_file: Path | None, connection_string: str | None) -> None:
    """Recommend missing indexes and list redundant ones."""
    sql = _read_query(query, query_file)
    conn = _connection(connection_string)

    try:
        recommendations, redundant = asyncio.run(QueryAnalyzer().recommend_indexes(sql, conn))
    except Exception as e:
        _fail("Index analysis failed", e)

    _display_indexes(recommendations, redundant)


@cli.command()
def config() -> None:
    """Show current configuration.

    Display the current configuration settings including
    connection status and analysis defaults.
    """
    settings = get_settings()

    console.print(Panel.fit(
        "[bold]SQL Advisor Configuration[/bold]",
        title="Config",
    ))

    table = Table(show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Connection", "✓ Configured" if settings.has_connection_string() else "✗ Not set")
    table.add_row("Command Timeout (s)", str(settings.command_timeout_seconds))
    table.add_row("Benchmark Iterations", str(settings.benchmark_iterations))
    table.add_row("Warmup Iterations", str(settings.warmup_iterations))
    table.add_row("Max Recommendations", str(settings.max_recommendations))
    table.add_row("SQL Dialect", settings.sql_dialect)
    table.add_row("Log Level", settings.log_level)

    console.print(table)


def _display_analysis(result: AnalysisResult) -> None:
    """Display a summary of an analysis result."""
    console.print(f"\n[bold]Server:[/bold] {result.server_info}")
    console.print(
        f"[bold]Complexity:[/bold] {result.complexity_rating}/10   "
        f"[bold]Estimated plan cost:[/bold] {result.estimated_plan_cost:.4f}"
    )

    if result.performance_metrics:
        m = result.performance_metrics
        console.print(
            f"[bold]Execution:[/bold] {m.execution_time_ms:.2f} ms, "
            f"{m.cpu_time_ms:.2f} ms CPU, {m.logical_reads:.0f} logical reads, "
            f"{m.rows_returned:.0f} rows"
        )

    if result.suggestions:
        table = Table(title="Suggestions")
        table.add_column("Priority")
        table.add_column("Title", style="cyan")
        table.add_column("Impact", justify="right")
        table.add_column("Description")
        for suggestion in result.suggestions:
            style = _PRIORITY_STYLES.get(suggestion.priority.value, "")
            table.add_row(
                f"[{style}]{suggestion.priority.value}[/{style}]",
                suggestion.title,
                f"{suggestion.estimated_impact:.0f}%",
                suggestion.description,
            )
        console.print(table)
    else:
        console.print("[green]✓ No suggestions[/green]")

    _display_indexes(list(result.index_recommendations), list(result.redundant_indexes))

    if result.was_rewritten:
        console.print("\n[bold]Optimized query:[/bold]")
        console.print(Syntax(result.optimized_query, "sql", word_wrap=True))
        console.print(f"  Measured improvement: {result.improvement_percentage:.1f}%")


def _display_indexes(recommendations, redundant) -> None:
    if recommendations:
        console.print("\n[bold]Recommended indexes:[/bold]")
        for rec in recommendations:
            console.print(f"  [green]{rec.create_statement}[/green]  [dim]({rec.estimated_impact:.1f}%)[/dim]")

    if redundant:
        table = Table(title="Redundant Indexes")
        table.add_column("Table", style="cyan")
        table.add_column("Index")
        table.add_column("Reason")
        table.add_column("Usage", justify="right")
        table.add_column("Size (MB)", justify="right")
        for info in redundant:
            table.add_row(
                f"{info.schema}.{info.table}",
                info.index_name,
                info.reason,
                str(info.usage_count),
                f"{info.size_mb:.1f}",
            )
        console.print(table)
        for info in redundant:
            console.print(f"  [dim]{info.drop_statement}[/dim]")


if __name__ == "__main__":
    cli()
