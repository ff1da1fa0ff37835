"""
Capability detection -- decides whether the visual query builder can
represent a query or the editor must fall back to raw JSON.

Checks performed (independent, each reported at most once, in this order):
  1. Time dimensions are present
  2. The filter tree contains AND/OR groups
  3. A filter uses an operator other than equals / notEquals
     (all distinct offenders named in a single reason, first-seen order)
  4. A filter targets one of the selected measures
  5. A filter value references a dashboard variable

The detector never mutates the query and never raises; it is safe to run on
raw, un-normalized input.
"""
from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from cube_query.query.operators import VISUAL_BUILDER_OPERATORS
from cube_query.query.spec import AndFilter, CubeFilter, CubeQuery, FilterItem, OrFilter
from cube_query.query.template import contains_variable

TIME_DIMENSIONS_KEY = "timeDimensions"
FILTERS_KEY = "filters"

_TIME_DIMENSIONS_REASON = "Time dimensions are not supported in the visual query builder."
_LOGICAL_GROUPS_REASON = "AND/OR filter groups are not supported in the visual query builder."
_MEASURE_FILTERS_REASON = "Filters on measures are not supported in the visual query builder."
_VARIABLE_VALUES_REASON = (
    "Filter values that use dashboard variables are not supported in the visual query builder."
)


@dataclass
class _FilterScan:
    has_groups: bool = False
    operators: list[str] = field(default_factory=list)
    filters_measures: bool = False
    uses_variables: bool = False

    @property
    def flagged(self) -> bool:
        return self.has_groups or bool(self.operators) or self.filters_measures or self.uses_variables


def _walk(items: list[FilterItem]) -> Iterator[FilterItem]:
    """Depth-first walk over every node of a filter tree."""
    for item in items:
        yield item
        if isinstance(item, AndFilter):
            yield from _walk(item.and_)
        elif isinstance(item, OrFilter):
            yield from _walk(item.or_)


def _scan_filters(query: CubeQuery) -> _FilterScan:
    scan = _FilterScan()
    measures = set(query.measures)

    for item in _walk(query.filters):
        if not isinstance(item, CubeFilter):
            scan.has_groups = True
            continue

        if item.operator not in VISUAL_BUILDER_OPERATORS and item.operator not in scan.operators:
            scan.operators.append(item.operator)

        if measures and item.member in measures:
            scan.filters_measures = True

        if any(contains_variable(value) for value in item.values or []):
            scan.uses_variables = True

    return scan


def detect_unsupported_features(query: CubeQuery) -> list[str]:
    """Return human-readable reasons the visual builder cannot show *query*.

    An empty list means the query is fully representable.
    """
    reasons: list[str] = []

    if query.time_dimensions:
        reasons.append(_TIME_DIMENSIONS_REASON)

    scan = _scan_filters(query)

    if scan.has_groups:
        reasons.append(_LOGICAL_GROUPS_REASON)

    if scan.operators:
        names = ", ".join(scan.operators)
        reasons.append(
            f"Filter operators not supported in the visual query builder: {names}."
        )

    if scan.filters_measures:
        reasons.append(_MEASURE_FILTERS_REASON)

    if scan.uses_variables:
        reasons.append(_VARIABLE_VALUES_REASON)

    return reasons


def get_unsupported_query_keys(query: CubeQuery) -> set[str]:
    """Return the top-level query keys implicated by the detector's reasons."""
    keys: set[str] = set()
    if query.time_dimensions:
        keys.add(TIME_DIMENSIONS_KEY)
    if _scan_filters(query).flagged:
        keys.add(FILTERS_KEY)
    return keys


def extract_unsupported_fields(query: CubeQuery, keys: set[str]) -> dict[str, Any]:
    """Return only the implicated keys of *query*, in wire format, for read-only display."""
    payload = query.model_dump(mode="json", by_alias=True, exclude_none=True)
    return {key: payload[key] for key in sorted(keys) if payload.get(key)}
