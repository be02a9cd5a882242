"""Redundant index finder - compares existing index column signatures."""

import logging
from collections import defaultdict
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from sql_advisor.advisor.index_advisor import extract_table_names
from sql_advisor.advisor.models import RedundantIndexInfo
from sql_advisor.db.session import DatabaseSession, run_best_effort, run_mandatory

logger = logging.getLogger(__name__)

INDEX_COLUMNS_SQL = """
SELECT
    s.name AS schema_name,
    t.name AS table_name,
    i.index_id,
    i.name AS index_name,
    c.name AS column_name,
    ic.key_ordinal,
    ic.is_included_column,
    ic.is_descending_key
FROM sys.indexes AS i
INNER JOIN sys.tables AS t ON t.object_id = i.object_id
INNER JOIN sys.schemas AS s ON s.schema_id = t.schema_id
INNER JOIN sys.index_columns AS ic
    ON ic.object_id = i.object_id AND ic.index_id = i.index_id
INNER JOIN sys.columns AS c
    ON c.object_id = ic.object_id AND c.column_id = ic.column_id
WHERE t.name = ?
    AND i.index_id > 0
    AND i.is_hypothetical = 0
ORDER BY s.name, i.index_id, ic.key_ordinal, ic.index_column_id
"""

INDEX_USAGE_SQL = """
SELECT
    i.name AS index_name,
    ISNULL(us.user_seeks, 0) + ISNULL(us.user_scans, 0) + ISNULL(us.user_lookups, 0) AS usage_count,
    us.last_user_seek,
    us.last_user_scan,
    us.last_user_lookup,
    ISNULL(ps.used_page_count, 0) * 8 / 1024.0 AS size_mb
FROM sys.indexes AS i
INNER JOIN sys.tables AS t ON t.object_id = i.object_id
INNER JOIN sys.schemas AS s ON s.schema_id = t.schema_id
LEFT JOIN sys.dm_db_index_usage_stats AS us
    ON us.object_id = i.object_id
    AND us.index_id = i.index_id
    AND us.database_id = DB_ID()
LEFT JOIN (
    SELECT object_id, index_id, SUM(used_page_count) AS used_page_count
    FROM sys.dm_db_partition_stats
    GROUP BY object_id, index_id
) AS ps ON ps.object_id = i.object_id AND ps.index_id = i.index_id
WHERE s.name = ? AND t.name = ?
"""

REDUNDANT_RECOMMENDATION = "Consider combining or removing. Validate actual usage first."


@dataclass
class _ExistingIndex:
    schema: str
    table: str
    index_id: int
    name: str
    columns: list[tuple[str, int, bool, bool]]

    @property
    def signature(self) -> tuple:
        """Key columns in key order, then included columns by name."""
        keys = sorted((c for c in self.columns if not c[2]), key=lambda c: c[1])
        includes = sorted((c for c in self.columns if c[2]), key=lambda c: c[0])
        return tuple(
            (name.lower(), ordinal, included, descending)
            for name, ordinal, included, descending in (*keys, *includes)
        )


def _group_indexes(rows: list[dict[str, Any]]) -> list[_ExistingIndex]:
    indexes: dict[tuple[str, str, int], _ExistingIndex] = {}
    for row in rows:
        key = (row["schema_name"], row["table_name"], int(row["index_id"]))
        if key not in indexes:
            indexes[key] = _ExistingIndex(
                schema=row["schema_name"],
                table=row["table_name"],
                index_id=int(row["index_id"]),
                name=row["index_name"],
                columns=[],
            )
        indexes[key].columns.append(
            (
                row["column_name"],
                int(row["key_ordinal"] or 0),
                bool(row["is_included_column"]),
                bool(row["is_descending_key"]),
            )
        )
    return list(indexes.values())


def find_duplicates(rows: list[dict[str, Any]]) -> list[RedundantIndexInfo]:
    """
    Pair indexes with identical column signatures.

    Each index with a higher id than a matching one is reported once,
    citing the lowest-id index with the same signature.

    Args:
        rows: Catalog rows as returned by INDEX_COLUMNS_SQL

    Returns:
        Redundant indexes, ordered by schema, table and index id
    """
    by_table: dict[tuple[str, str], list[_ExistingIndex]] = defaultdict(list)
    for index in _group_indexes(rows):
        by_table[(index.schema, index.table)].append(index)

    redundant = []
    for (schema, table), indexes in by_table.items():
        first_seen: dict[tuple, _ExistingIndex] = {}
        for index in sorted(indexes, key=lambda i: i.index_id):
            original = first_seen.setdefault(index.signature, index)
            if original is index:
                continue
            redundant.append(
                RedundantIndexInfo(
                    schema=schema,
                    table=table,
                    index_name=index.name,
                    reason=f"Potentially redundant with {original.name}",
                    recommendation=REDUNDANT_RECOMMENDATION,
                    drop_statement=f"DROP INDEX [{index.name}] ON [{schema}].[{table}]",
                )
            )
    return redundant


def _last_used(row: dict[str, Any]) -> datetime | None:
    stamps = [
        row.get(column)
        for column in ("last_user_seek", "last_user_scan", "last_user_lookup")
    ]
    stamps = [s for s in stamps if isinstance(s, datetime)]
    return max(stamps) if stamps else None


class RedundantIndexFinder:
    """Finds duplicate indexes on the tables a query touches."""

    async def find_redundant_indexes(
        self,
        session: DatabaseSession,
        query: str,
        timeout: float | None = None,
    ) -> list[RedundantIndexInfo]:
        """
        Find redundant indexes on every table named in the query.

        Args:
            session: Open database session
            query: SQL text whose FROM/JOIN tables are inspected
            timeout: Per round-trip timeout in seconds

        Returns:
            Redundant indexes, enriched with usage statistics where available

        Raises:
            FatalExecutionError: If the index catalog cannot be read
        """
        tables = extract_table_names(query)
        if not tables:
            logger.warning("No table names found in query")
            return []

        results: list[RedundantIndexInfo] = []
        for table in tables:
            rows = await run_mandatory(
                "index catalog read",
                session.fetch_all(INDEX_COLUMNS_SQL, (table,)),
                timeout,
            )
            for info in find_duplicates(rows):
                results.append(await self._enrich(session, info, timeout))

        logger.info(f"Found {len(results)} redundant indexes across {len(tables)} tables")
        return results

    async def _enrich(
        self,
        session: DatabaseSession,
        info: RedundantIndexInfo,
        timeout: float | None,
    ) -> RedundantIndexInfo:
        """Attach size and usage figures; leaves defaults if unavailable."""
        rows = await run_best_effort(
            "index usage statistics",
            session.fetch_all(INDEX_USAGE_SQL, (info.schema, info.table)),
            [],
            timeout,
        )
        for row in rows:
            if row.get("index_name") == info.index_name:
                return replace(
                    info,
                    size_mb=float(row.get("size_mb") or 0.0),
                    usage_count=int(row.get("usage_count") or 0),
                    last_used=_last_used(row),
                )
        return info
