"""Showplan XML interpreter - extracts missing-index advisories and cost."""

import logging
import re
import xml.etree.ElementTree as ET

from sql_advisor.plan.models import MissingIndexAdvisory, PlanExtraction, PlanMode

logger = logging.getLogger(__name__)

_XML_DECLARATION = re.compile(r"^\s*<\?xml[^>]*\?>")

# ColumnGroup Usage values
EQUALITY = "EQUALITY"
INEQUALITY = "INEQUALITY"
INCLUDE = "INCLUDE"


def _local_name(tag: str) -> str:
    """Strip the '{namespace}' prefix ElementTree puts on qualified tags."""
    return tag.rsplit("}", 1)[-1]


def _unbracket(value: str | None) -> str:
    if not value:
        return ""
    value = value.strip()
    if value.startswith("[") and value.endswith("]"):
        return value[1:-1]
    return value


def _parse_float(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class PlanInterpreter:
    """Reads the optimizer's plan document. Never raises on bad input."""

    def interpret(
        self,
        plan_xml: str | None,
        mode: PlanMode = PlanMode.ESTIMATED,
    ) -> PlanExtraction:
        """
        Extract missing-index advisories and the estimated cost from a plan.

        The showplan namespace is matched by local name, so documents with
        or without the default namespace are handled alike.

        Args:
            plan_xml: Showplan XML text (may be empty or None)
            mode: Whether the plan was estimated or actual

        Returns:
            PlanExtraction; empty when the plan is missing or malformed
        """
        if not plan_xml or not plan_xml.strip():
            return PlanExtraction(mode=mode)

        try:
            # Plans arrive as str; a utf-16 declaration would contradict that
            root = ET.fromstring(_XML_DECLARATION.sub("", plan_xml, count=1))
        except (ET.ParseError, ValueError) as e:
            logger.warning(f"Could not parse {mode.value} plan: {e}")
            return PlanExtraction(mode=mode)

        return PlanExtraction(
            mode=mode,
            estimated_cost=self._first_subtree_cost(root),
            missing_indexes=tuple(self._missing_indexes(root)),
            plan_xml=plan_xml,
        )

    def extract_cost(self, plan_xml: str | None) -> float:
        """Estimated total subtree cost of the first costed element, or 0."""
        return self.interpret(plan_xml).estimated_cost

    def _first_subtree_cost(self, root: ET.Element) -> float:
        for element in root.iter():
            cost = _parse_float(element.get("EstimatedTotalSubtreeCost"))
            if cost is not None:
                return cost
        return 0.0

    def _missing_indexes(self, root: ET.Element) -> list[MissingIndexAdvisory]:
        advisories = []
        for element in root.iter():
            if _local_name(element.tag) != "MissingIndexGroup":
                continue
            group_impact = _parse_float(element.get("Impact"))
            for child in element:
                if _local_name(child.tag) == "MissingIndex":
                    advisories.append(self._read_missing_index(child, group_impact))

        # Some producers emit bare MissingIndex elements outside a group
        if not advisories:
            for element in root.iter():
                if _local_name(element.tag) == "MissingIndex":
                    advisories.append(self._read_missing_index(element, None))

        return advisories

    def _read_missing_index(
        self,
        element: ET.Element,
        group_impact: float | None,
    ) -> MissingIndexAdvisory:
        groups: dict[str, list[str]] = {EQUALITY: [], INEQUALITY: [], INCLUDE: []}

        for column_group in element:
            if _local_name(column_group.tag) != "ColumnGroup":
                continue
            usage = (column_group.get("Usage") or "").upper()
            if usage not in groups:
                continue
            for column in column_group:
                if _local_name(column.tag) == "Column":
                    name = _unbracket(column.get("Name"))
                    if name:
                        groups[usage].append(name)

        impact = _parse_float(element.get("Impact"))
        if impact is None:
            impact = group_impact

        return MissingIndexAdvisory(
            database=_unbracket(element.get("Database")),
            schema=_unbracket(element.get("Schema")),
            table=_unbracket(element.get("Table")),
            equality_columns=tuple(groups[EQUALITY]),
            inequality_columns=tuple(groups[INEQUALITY]),
            include_columns=tuple(groups[INCLUDE]),
            impact=impact,
        )
