"""Plan module for reading optimizer execution plans."""

from sql_advisor.plan.interpreter import PlanInterpreter
from sql_advisor.plan.models import MissingIndexAdvisory, PlanExtraction, PlanMode

__all__ = [
    "PlanInterpreter",
    "MissingIndexAdvisory",
    "PlanExtraction",
    "PlanMode",
]
