"""Pytest configuration and fixtures."""

import asyncio

import pytest

from sql_advisor.config import Settings
from sql_advisor.plan.models import PlanMode


SAMPLE_PLAN = """<?xml version="1.0" encoding="utf-16"?>
<ShowPlanXML xmlns="http://schemas.microsoft.com/sqlserver/2004/07/showplan" Version="1.564" Build="16.0.1000.6">
  <BatchSequence>
    <Batch>
      <Statements>
        <StmtSimple StatementText="SELECT Total FROM Orders WHERE CustomerId = 1 AND OrderDate &gt; '2024-01-01'" StatementId="1" StatementSubTreeCost="0.0328" StatementType="SELECT">
          <QueryPlan DegreeOfParallelism="1" CachedPlanSize="24">
            <MissingIndexes>
              <MissingIndexGroup Impact="87.5">
                <MissingIndex Database="[Sales]" Schema="[dbo]" Table="[Orders]">
                  <ColumnGroup Usage="EQUALITY">
                    <Column Name="[CustomerId]" ColumnId="2" />
                  </ColumnGroup>
                  <ColumnGroup Usage="INEQUALITY">
                    <Column Name="[OrderDate]" ColumnId="3" />
                  </ColumnGroup>
                  <ColumnGroup Usage="INCLUDE">
                    <Column Name="[Total]" ColumnId="4" />
                  </ColumnGroup>
                </MissingIndex>
              </MissingIndexGroup>
            </MissingIndexes>
            <RelOp NodeId="0" PhysicalOp="Clustered Index Scan" LogicalOp="Clustered Index Scan" EstimateRows="12" EstimatedTotalSubtreeCost="0.0328">
              <IndexScan Ordered="false">
                <Object Database="[Sales]" Schema="[dbo]" Table="[Orders]" Index="[PK_Orders]" />
              </IndexScan>
            </RelOp>
          </QueryPlan>
        </StmtSimple>
      </Statements>
    </Batch>
  </BatchSequence>
</ShowPlanXML>"""

ACTUAL_PLAN = """<ShowPlanXML xmlns="http://schemas.microsoft.com/sqlserver/2004/07/showplan">
  <BatchSequence><Batch><Statements>
    <StmtSimple StatementSubTreeCost="1.25">
      <QueryPlan>
        <RelOp NodeId="0" PhysicalOp="Index Seek" EstimatedTotalSubtreeCost="1.25" />
      </QueryPlan>
    </StmtSimple>
  </Statements></Batch></BatchSequence>
</ShowPlanXML>"""

SERVER_ROW = {"Version": "16.0.1000.6", "Level": "RTM", "Edition": "Developer Edition (64-bit)"}


class FakeSession:
    """In-memory DatabaseSession scripted by SQL substrings.

    Statements containing a key of `responses` get that value (rows, or an
    exception to raise). Anything else is treated as the query under test
    and returns `query_rows`.
    """

    def __init__(
        self,
        estimated_plan=SAMPLE_PLAN,
        actual_plan=ACTUAL_PLAN,
        query_rows=None,
        responses=None,
        delay: float = 0.0,
        query_failures: int = 0,
    ):
        self.estimated_plan = estimated_plan
        self.actual_plan = actual_plan
        self.query_rows = query_rows if query_rows is not None else [{"Id": 1}, {"Id": 2}]
        self.responses = {
            "SERVERPROPERTY": [SERVER_ROW],
            "dm_exec_query_stats": [],
            "sys.index_columns": [],
            "dm_db_index_usage_stats": [],
            "SET STATISTICS IO": [],
        }
        self.responses.update(responses or {})
        self.delay = delay
        self.query_failures = query_failures
        self.calls: list[tuple] = []
        self.query_executions = 0
        self.closed = False

    async def _pause(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)

    def _scripted(self, sql: str):
        for marker, response in self.responses.items():
            if marker in sql:
                if isinstance(response, BaseException):
                    raise response
                return list(response)
        return None

    async def fetch_all(self, sql, params=()):
        self.calls.append(("fetch_all", sql, tuple(params)))
        await self._pause()
        scripted = self._scripted(sql)
        if scripted is not None:
            return scripted
        self.query_executions += 1
        if self.query_executions <= self.query_failures:
            raise RuntimeError("deadlock victim")
        return list(self.query_rows)

    async def execute(self, sql):
        self.calls.append(("execute", sql, ()))
        await self._pause()
        self._scripted(sql)

    async def fetch_plan(self, sql, mode):
        self.calls.append(("fetch_plan", sql, mode))
        await self._pause()
        plan = self.estimated_plan if mode is PlanMode.ESTIMATED else self.actual_plan
        if isinstance(plan, BaseException):
            raise plan
        return plan

    async def close(self):
        self.closed = True

    def plan_requests(self, mode: PlanMode) -> int:
        return sum(1 for call in self.calls if call[0] == "fetch_plan" and call[2] is mode)


@pytest.fixture
def sample_plan():
    """Estimated showplan with one missing-index advisory."""
    return SAMPLE_PLAN


@pytest.fixture
def actual_plan():
    """Actual showplan with no advisories."""
    return ACTUAL_PLAN


@pytest.fixture
def fake_session():
    """A FakeSession with default scripting."""
    return FakeSession()


@pytest.fixture
def make_session():
    """Factory for FakeSession with custom scripting."""
    return FakeSession


@pytest.fixture
def settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(_env_file=None, connection_string="Driver={Fake};Server=test")


@pytest.fixture
def factory_for():
    """Build a SessionFactory that hands out a given session and counts opens."""

    def _build(session):
        opened = []

        async def factory(connection_string: str):
            opened.append(connection_string)
            return session

        factory.opened = opened
        return factory

    return _build
