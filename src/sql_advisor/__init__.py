"""SQL Advisor - Query anti-pattern detection, index advice and benchmarking.

Analyzes SQL Server queries against a live connection and produces a ranked
list of actionable suggestions.
"""

__version__ = "1.0.0"
__author__ = "Karthik Raghavan"

from sql_advisor.config import get_settings

__all__ = ["__version__", "get_settings"]
