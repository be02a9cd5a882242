"""Database module: session protocol, round-trip helpers and drivers."""

from sql_advisor.db.odbc import OdbcSession
from sql_advisor.db.session import (
    DatabaseSession,
    SessionFactory,
    close_session,
    open_session,
    run_best_effort,
    run_mandatory,
    timeout_seconds,
)

__all__ = [
    "OdbcSession",
    "DatabaseSession",
    "SessionFactory",
    "close_session",
    "open_session",
    "run_best_effort",
    "run_mandatory",
    "timeout_seconds",
]
