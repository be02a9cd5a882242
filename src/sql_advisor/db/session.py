"""Async database session protocol and time-bounded round-trip helpers.

Every round trip to the server goes through one of two wrappers:

- run_mandatory: a timeout or driver error aborts the analysis with
  FatalExecutionError naming the stage.
- run_best_effort: a timeout or driver error is logged and replaced by a
  caller-supplied default.

Cancellation is never converted; CancelledError always propagates.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Protocol, Sequence, TypeVar

from sql_advisor.exceptions import (
    AdvisorError,
    FatalExecutionError,
    TransientCollectionError,
)
from sql_advisor.plan.models import PlanMode

logger = logging.getLogger(__name__)

T = TypeVar("T")

Row = dict[str, Any]


class DatabaseSession(Protocol):
    """Minimal async surface the analysis pipeline needs from a database."""

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[Row]:
        """Run a statement and return the rows of its first result set."""
        ...

    async def execute(self, sql: str) -> None:
        """Run a statement, discarding any result."""
        ...

    async def fetch_plan(self, sql: str, mode: PlanMode) -> str | None:
        """Return the showplan XML for a statement, or None if none was produced."""
        ...

    async def close(self) -> None:
        ...


SessionFactory = Callable[[str], Awaitable[DatabaseSession]]


def timeout_seconds(max_execution_time_ms: int) -> float | None:
    """Convert a millisecond budget to a wait_for timeout (0 means unlimited)."""
    if max_execution_time_ms <= 0:
        return None
    return max_execution_time_ms / 1000.0


async def run_mandatory(
    stage: str,
    awaitable: Awaitable[T],
    timeout: float | None,
) -> T:
    """
    Await one round trip that the analysis cannot do without.

    Args:
        stage: Human-readable stage name used in the error
        awaitable: The round trip
        timeout: Seconds before giving up, or None for no limit

    Returns:
        The round trip's result

    Raises:
        FatalExecutionError: On timeout or any driver error
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise FatalExecutionError(
            stage, TimeoutError(f"timed out after {timeout}s")
        ) from e
    except AdvisorError:
        raise
    except Exception as e:
        raise FatalExecutionError(stage, e) from e


async def run_best_effort(
    stage: str,
    awaitable: Awaitable[T],
    default: T,
    timeout: float | None,
) -> T:
    """
    Await one optional round trip, degrading to a default on failure.

    Args:
        stage: Human-readable stage name used in the log message
        awaitable: The round trip
        default: Value returned on timeout or error
        timeout: Seconds before giving up, or None for no limit

    Returns:
        The round trip's result, or default
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        error = TransientCollectionError(stage, TimeoutError(f"timed out after {timeout}s"))
    except Exception as e:
        error = TransientCollectionError(stage, e)
    logger.warning(str(error))
    return default


async def open_session(
    factory: SessionFactory,
    connection_string: str,
    timeout: float | None,
) -> DatabaseSession:
    """Open a session through the factory; failure is fatal."""
    return await run_mandatory("open session", factory(connection_string), timeout)


async def close_session(session: DatabaseSession) -> None:
    """Close a session, logging rather than masking the caller's outcome."""
    try:
        await session.close()
    except Exception as e:
        logger.warning(f"Failed to close database session: {e}")
