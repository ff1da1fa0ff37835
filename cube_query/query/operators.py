"""
Cube filter operator vocabulary and the mapping from dashboard ad-hoc
operator symbols onto it.
"""
from __future__ import annotations

from enum import Enum


class Operator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    STARTS_WITH = "startsWith"
    NOT_STARTS_WITH = "notStartsWith"
    ENDS_WITH = "endsWith"
    NOT_ENDS_WITH = "notEndsWith"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    SET = "set"
    NOT_SET = "notSet"
    IN_DATE_RANGE = "inDateRange"
    NOT_IN_DATE_RANGE = "notInDateRange"
    BEFORE_DATE = "beforeDate"
    BEFORE_OR_ON_DATE = "beforeOrOnDate"
    AFTER_DATE = "afterDate"
    AFTER_OR_ON_DATE = "afterOrOnDate"
    MEASURE_FILTER = "measureFilter"


# Operators that take no comparison value (null checks).
UNARY_OPERATORS: frozenset[str] = frozenset({Operator.SET.value, Operator.NOT_SET.value})

# Operators the visual query builder can edit.
VISUAL_BUILDER_OPERATORS: frozenset[str] = frozenset(
    {Operator.EQUALS.value, Operator.NOT_EQUALS.value}
)

# "=|" / "!=|" are the multi-value "one of" / "not one of" variants; Cube's
# equals/notEquals already accept several values.  The regex symbols "=~" and
# "!~" have no faithful Cube counterpart and fall back to (not-)equality.
_HOST_OPERATORS: dict[str, Operator] = {
    "=": Operator.EQUALS,
    "=|": Operator.EQUALS,
    "=~": Operator.EQUALS,
    "!=": Operator.NOT_EQUALS,
    "!=|": Operator.NOT_EQUALS,
    "!~": Operator.NOT_EQUALS,
}


def map_host_operator(symbol: str) -> Operator:
    """Translate a dashboard ad-hoc operator symbol to a Cube operator.

    Unrecognised symbols map to ``equals``.
    """
    return _HOST_OPERATORS.get(symbol, Operator.EQUALS)


def operator_value(operator: str | Operator) -> str:
    """Return the plain string tag for *operator*."""
    return operator.value if isinstance(operator, Operator) else operator


def is_unary(operator: str | Operator) -> bool:
    return operator_value(operator) in UNARY_OPERATORS
