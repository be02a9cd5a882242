"""Tests for advisor module."""

from datetime import datetime

import pytest

from sql_advisor.advisor import (
    IndexAdvisor,
    IndexColumn,
    IndexKind,
    IndexRecommendation,
    RedundantIndexFinder,
    SortDirection,
    estimate_impact,
    extract_table_names,
    find_duplicates,
    generate_create_statement,
)
from sql_advisor.exceptions import FatalExecutionError
from sql_advisor.plan import MissingIndexAdvisory, PlanExtraction, PlanMode


def catalog_row(index_id, name, column, ordinal=1, included=False, descending=False):
    return {
        "schema_name": "dbo",
        "table_name": "Orders",
        "index_id": index_id,
        "index_name": name,
        "column_name": column,
        "key_ordinal": ordinal,
        "is_included_column": included,
        "is_descending_key": descending,
    }


DUPLICATE_ROWS = [
    catalog_row(1, "PK_Orders", "Id"),
    catalog_row(2, "IX_Orders_Customer", "CustomerId"),
    catalog_row(2, "IX_Orders_Customer", "Total", ordinal=0, included=True),
    catalog_row(3, "IX_Orders_Customer2", "CustomerId"),
    catalog_row(3, "IX_Orders_Customer2", "Total", ordinal=0, included=True),
    catalog_row(4, "IX_Orders_CustomerDesc", "CustomerId", descending=True),
    catalog_row(5, "IX_Orders_Customer3", "Total", ordinal=0, included=True),
    catalog_row(5, "IX_Orders_Customer3", "CustomerId"),
]


class TestCreateStatement:
    """Tests for generate_create_statement."""

    def test_nonclustered_with_include(self):
        """Test DDL for key columns with directions and an INCLUDE list."""
        rec = IndexRecommendation(
            database="Sales",
            schema="dbo",
            table="Orders",
            key_columns=(
                IndexColumn("CustomerId", SortDirection.ASC),
                IndexColumn("OrderDate", SortDirection.DESC),
            ),
            included_columns=("Total",),
        )
        assert generate_create_statement(rec) == (
            "CREATE NONCLUSTERED INDEX [IX_Orders_Cus_Ord] ON [Sales].[dbo].[Orders] "
            "(CustomerId ASC, OrderDate DESC) INCLUDE (Total)"
        )

    def test_unique_clustered_filtered(self):
        """Test UNIQUE, CLUSTERED and a filter predicate."""
        rec = IndexRecommendation(
            database="Sales",
            schema="dbo",
            table="Orders",
            key_columns=(IndexColumn("Id"),),
            is_unique=True,
            index_kind=IndexKind.CLUSTERED,
            filter_predicate="Id > 0",
        )
        assert generate_create_statement(rec) == (
            "CREATE UNIQUE CLUSTERED INDEX [CIX_Orders_Id] ON [Sales].[dbo].[Orders] "
            "(Id ASC) WHERE Id > 0"
        )

    def test_no_key_columns(self):
        """Test an empty key list yields no DDL."""
        rec = IndexRecommendation(database="d", schema="s", table="t", included_columns=("a",))
        assert generate_create_statement(rec) == ""


class TestEstimateImpact:
    """Tests for estimate_impact."""

    def test_known_values(self):
        """Test the heuristic's base and increments."""
        assert estimate_impact(0, 0) == 25.0
        assert estimate_impact(1, 1) == 33.0
        assert estimate_impact(2, 1) == 38.0

    def test_monotonic_and_capped(self):
        """Test impact never decreases with more columns and never exceeds 90."""
        for includes in range(0, 12):
            previous = 0.0
            for keys in range(0, 12):
                impact = estimate_impact(keys, includes)
                assert impact >= previous
                assert impact <= 90.0
                previous = impact
        for keys in range(0, 12):
            previous = 0.0
            for includes in range(0, 12):
                impact = estimate_impact(keys, includes)
                assert impact >= previous
                previous = impact


class TestIndexAdvisor:
    """Tests for IndexAdvisor."""

    def test_recommendation_from_plan(self, sample_plan):
        """Test one recommendation per advisory with plan impact and DDL."""
        advisor = IndexAdvisor()
        extraction = advisor.interpreter.interpret(sample_plan)
        recs = advisor.build_recommendations(extraction)

        assert len(recs) == 1
        rec = recs[0]
        assert [c.name for c in rec.key_columns] == ["CustomerId", "OrderDate"]
        assert all(c.sort_direction == SortDirection.ASC for c in rec.key_columns)
        assert rec.included_columns == ("Total",)
        assert rec.estimated_impact == 87.5
        assert rec.index_kind == IndexKind.NONCLUSTERED
        assert not rec.is_unique
        assert rec.create_statement == (
            "CREATE NONCLUSTERED INDEX [IX_Orders_Cus_Ord] ON [Sales].[dbo].[Orders] "
            "(CustomerId ASC, OrderDate ASC) INCLUDE (Total)"
        )

    def test_heuristic_impact_when_plan_has_none(self):
        """Test the heuristic fills in a missing impact figure."""
        advisory = MissingIndexAdvisory(
            database="Sales",
            schema="dbo",
            table="Orders",
            equality_columns=("CustomerId",),
            inequality_columns=("OrderDate",),
            include_columns=("Total",),
        )
        rec = IndexAdvisor().build_recommendation(advisory)
        assert rec.estimated_impact == 38.0

    def test_column_in_both_groups_is_kept_twice(self):
        """Regression: a column used for equality and inequality appears twice in the key."""
        advisory = MissingIndexAdvisory(
            database="Sales",
            schema="dbo",
            table="Orders",
            equality_columns=("Status",),
            inequality_columns=("Status",),
            impact=50.0,
        )
        rec = IndexAdvisor().build_recommendation(advisory)
        assert [c.name for c in rec.key_columns] == ["Status", "Status"]
        assert "(Status ASC, Status ASC)" in rec.create_statement

    def test_empty_extraction(self):
        """Test no advisories means no recommendations."""
        assert IndexAdvisor().build_recommendations(PlanExtraction()) == []

    @pytest.mark.asyncio
    async def test_recommend_indexes_fetches_estimated_plan(self, fake_session):
        """Test the advisor asks for the estimated plan."""
        recs = await IndexAdvisor().recommend_indexes(fake_session, "SELECT Total FROM Orders")
        assert len(recs) == 1
        assert fake_session.plan_requests(PlanMode.ESTIMATED) == 1

    @pytest.mark.asyncio
    async def test_recommend_indexes_plan_failure_is_fatal(self, make_session):
        """Test a failed plan round trip aborts with the stage named."""
        session = make_session(estimated_plan=RuntimeError("login failed"))
        with pytest.raises(FatalExecutionError) as exc_info:
            await IndexAdvisor().recommend_indexes(session, "SELECT 1")
        assert exc_info.value.stage == "estimated plan retrieval"

    @pytest.mark.asyncio
    async def test_recommend_indexes_substitutes_parameters(self, fake_session):
        """Test placeholders are replaced before the plan is requested."""
        query = "SELECT Total FROM Orders WHERE CustomerId = @c AND Name LIKE @name"
        recs = await IndexAdvisor().recommend_indexes(fake_session, query)

        assert len(recs) == 1
        planned = [c[1] for c in fake_session.calls if c[0] == "fetch_plan"]
        assert planned == ["SELECT Total FROM Orders WHERE CustomerId = 1 AND Name LIKE '1'"]


class TestExtractTableNames:
    """Tests for extract_table_names."""

    def test_from_and_join(self):
        """Test bare, schema-qualified and bracketed names, de-duplicated in order."""
        query = (
            "SELECT * FROM dbo.Orders o JOIN [Order Details] d ON d.OrderId = o.Id "
            "LEFT JOIN Orders x ON x.Id = o.ParentId"
        )
        assert extract_table_names(query) == ["Orders", "Order Details"]

    def test_no_tables(self):
        """Test a query without FROM yields nothing."""
        assert extract_table_names("SELECT 1") == []


class TestRedundantIndexes:
    """Tests for redundant index detection."""

    def test_find_duplicates(self):
        """Test identical signatures are paired against the lowest index id."""
        redundant = find_duplicates(DUPLICATE_ROWS)

        assert [r.index_name for r in redundant] == ["IX_Orders_Customer2", "IX_Orders_Customer3"]
        assert all(r.reason == "Potentially redundant with IX_Orders_Customer" for r in redundant)
        assert redundant[0].drop_statement == "DROP INDEX [IX_Orders_Customer2] ON [dbo].[Orders]"
        assert redundant[0].recommendation.startswith("Consider combining or removing")

    def test_descending_key_differs(self):
        """Test a descending key is a different signature."""
        names = [r.index_name for r in find_duplicates(DUPLICATE_ROWS)]
        assert "IX_Orders_CustomerDesc" not in names

    @pytest.mark.asyncio
    async def test_enriched_with_usage(self, make_session):
        """Test usage statistics are attached when available."""
        last_seek = datetime(2024, 5, 1, 12, 0)
        session = make_session(responses={
            "sys.index_columns": DUPLICATE_ROWS,
            "dm_db_index_usage_stats": [
                {
                    "index_name": "IX_Orders_Customer2",
                    "usage_count": 7,
                    "last_user_seek": last_seek,
                    "last_user_scan": None,
                    "last_user_lookup": datetime(2024, 4, 1),
                    "size_mb": 12.5,
                },
            ],
        })

        redundant = await RedundantIndexFinder().find_redundant_indexes(
            session, "SELECT Total FROM Orders WHERE CustomerId = 1"
        )

        assert redundant[0].usage_count == 7
        assert redundant[0].size_mb == 12.5
        assert redundant[0].last_used == last_seek
        assert redundant[1].usage_count == 0
        assert redundant[1].last_used is None

    @pytest.mark.asyncio
    async def test_usage_failure_keeps_defaults(self, make_session):
        """Test a failing usage lookup degrades to zeros."""
        session = make_session(responses={
            "sys.index_columns": DUPLICATE_ROWS,
            "dm_db_index_usage_stats": PermissionError("VIEW SERVER STATE denied"),
        })
        redundant = await RedundantIndexFinder().find_redundant_indexes(
            session, "SELECT Total FROM Orders"
        )
        assert len(redundant) == 2
        assert redundant[0].usage_count == 0
        assert redundant[0].size_mb == 0.0

    @pytest.mark.asyncio
    async def test_catalog_failure_is_fatal(self, make_session):
        """Test an unreadable index catalog aborts."""
        session = make_session(responses={"sys.index_columns": RuntimeError("timeout")})
        with pytest.raises(FatalExecutionError) as exc_info:
            await RedundantIndexFinder().find_redundant_indexes(session, "SELECT * FROM Orders")
        assert exc_info.value.stage == "index catalog read"

    @pytest.mark.asyncio
    async def test_no_tables_no_queries(self, fake_session):
        """Test a query with no tables makes no catalog round trips."""
        assert await RedundantIndexFinder().find_redundant_indexes(fake_session, "SELECT 1") == []
        assert fake_session.calls == []
