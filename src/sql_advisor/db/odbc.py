"""pyodbc-backed DatabaseSession for SQL Server."""

import asyncio
import logging
from typing import Any, Sequence

from sql_advisor.plan.models import PlanMode

logger = logging.getLogger(__name__)

_PLAN_TOGGLES = {
    PlanMode.ESTIMATED: "SET SHOWPLAN_XML",
    PlanMode.ACTUAL: "SET STATISTICS XML",
}


def _rows(cursor) -> list[dict[str, Any]]:
    if cursor.description is None:
        return []
    columns = [column[0] for column in cursor.description]
    return [dict(zip(columns, row)) for row in cursor.fetchall()]


def _fetch_all(cursor, sql: str, params: Sequence[Any]) -> list[dict[str, Any]]:
    try:
        cursor.execute(sql, *params)
        return _rows(cursor)
    finally:
        cursor.close()


def _execute(cursor, sql: str) -> None:
    try:
        cursor.execute(sql)
        while cursor.nextset():
            pass
    finally:
        cursor.close()


def _fetch_plan(cursor, sql: str, mode: PlanMode) -> str | None:
    toggle = _PLAN_TOGGLES[mode]
    try:
        cursor.execute(f"{toggle} ON")
        try:
            cursor.execute(sql)
            plan = None
            # The plan is the single-column XML result set; with STATISTICS XML
            # it follows the query's own result sets.
            while True:
                if cursor.description is not None:
                    for row in cursor.fetchall():
                        value = row[0] if len(row) == 1 else None
                        if isinstance(value, str) and "ShowPlanXML" in value:
                            plan = value
                if not cursor.nextset():
                    break
            return plan
        finally:
            cursor.execute(f"{toggle} OFF")
    finally:
        cursor.close()


class OdbcSession:
    """DatabaseSession over a pyodbc connection.

    pyodbc is blocking, so each call runs in a worker thread. Cancelling the
    awaiting task asks the driver to cancel the running statement.
    """

    def __init__(self, connection):
        self._connection = connection

    @classmethod
    async def connect(cls, connection_string: str) -> "OdbcSession":
        """
        Open a connection.

        Raises:
            RuntimeError: If pyodbc is not installed
        """
        try:
            import pyodbc
        except ImportError as e:
            raise RuntimeError(
                "pyodbc not installed. Install with: pip install 'sql-advisor[mssql]'"
            ) from e

        connection = await asyncio.to_thread(
            pyodbc.connect, connection_string, autocommit=True
        )
        logger.debug("Opened ODBC connection")
        return cls(connection)

    async def _run(self, func, *args):
        cursor = self._connection.cursor()
        try:
            return await asyncio.to_thread(func, cursor, *args)
        except asyncio.CancelledError:
            try:
                cursor.cancel()
            except Exception as e:
                logger.debug(f"Statement cancel failed: {e}")
            raise

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        return await self._run(_fetch_all, sql, tuple(params))

    async def execute(self, sql: str) -> None:
        await self._run(_execute, sql)

    async def fetch_plan(self, sql: str, mode: PlanMode) -> str | None:
        return await self._run(_fetch_plan, sql, mode)

    async def close(self) -> None:
        await asyncio.to_thread(self._connection.close)
        logger.debug("Closed ODBC connection")
