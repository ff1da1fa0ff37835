"""
Query normalizer -- turns a saved CubeQuery plus dashboard context into the
canonical NormalizedQuery.

Both the execution path (``CubeDataSource.apply_template_variables``) and
the SQL preview path (``build_cube_query_json``) call
``normalize_cube_query``; keeping one implementation is what keeps the
preview SQL identical to what actually runs.

Pipeline:
  1. interpolate dashboard variables in filter values and time dimensions
  2. append the data source's ad-hoc filters after the panel's own filters
  3. drop ``values`` from unary (set / notSet) conditions
  4. prune invalid filters
  5. keep the panel's time dimensions if it has any, otherwise
  6. inject one from the dashboard time-dimension variable and time range
  7. normalize ordering
  8. pass ``limit`` through (0 included)

Nothing in the pipeline raises; unusable fragments are dropped.
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from cube_query.core.config import get_settings
from cube_query.core.logging import get_logger
from cube_query.core.utils import epoch_ms_to_iso
from cube_query.governance.filter_validation import filter_valid_cube_filters
from cube_query.query.operators import Operator, is_unary, map_host_operator
from cube_query.query.order import normalize_order
from cube_query.query.spec import (
    AdHocFilter,
    AndFilter,
    CubeFilter,
    CubeQuery,
    FilterItem,
    NormalizedQuery,
    OrFilter,
    TimeDimension,
)
from cube_query.query.template import (
    FROM_VARIABLE,
    TO_VARIABLE,
    ScopedVars,
    TemplateService,
    get_template_srv,
)

logger = get_logger(__name__)


@dataclass
class NormalizeOptions:
    datasource_name: str
    map_operator: Callable[[str], Operator | str] = map_host_operator
    scoped_vars: ScopedVars = field(default_factory=dict)


# ── Interpolation ────────────────────────────────────────

def _interpolate_filter(item: FilterItem, template_srv: TemplateService, scoped_vars: ScopedVars) -> FilterItem:
    if isinstance(item, CubeFilter):
        if item.values is None:
            return item
        values = [template_srv.replace(value, scoped_vars) for value in item.values]
        return item.model_copy(update={"values": values})

    if isinstance(item, AndFilter):
        return AndFilter(and_=[_interpolate_filter(child, template_srv, scoped_vars) for child in item.and_])

    if isinstance(item, OrFilter):
        return OrFilter(or_=[_interpolate_filter(child, template_srv, scoped_vars) for child in item.or_])

    return item


def _interpolate_value(value: Any, template_srv: TemplateService, scoped_vars: ScopedVars) -> Any:
    if isinstance(value, str):
        return template_srv.replace(value, scoped_vars)
    if isinstance(value, list):
        return [template_srv.replace(v, scoped_vars) if isinstance(v, str) else v for v in value]
    return value


def _interpolate_time_dimensions(
    time_dimensions: list[TimeDimension],
    template_srv: TemplateService,
    scoped_vars: ScopedVars,
) -> list[TimeDimension]:
    interpolated: list[TimeDimension] = []
    for td in time_dimensions:
        raw = td.model_dump(by_alias=True, exclude_none=True)
        interpolated.append(
            TimeDimension.model_validate(
                {key: _interpolate_value(value, template_srv, scoped_vars) for key, value in raw.items()}
            )
        )
    return interpolated


# ── Ad-hoc filters ───────────────────────────────────────

def _get_adhoc_filters(template_srv: TemplateService, datasource_name: str) -> list[AdHocFilter]:
    """Ad-hoc filters for *datasource_name*; hosts without the capability yield none."""
    getter = getattr(template_srv, "get_adhoc_filters", None)
    if getter is None:
        return []
    raw = getter(datasource_name) or []
    return [AdHocFilter.model_validate(f) if isinstance(f, dict) else f for f in raw]


def adhoc_to_cube_filter(adhoc: AdHocFilter, map_operator: Callable[[str], Operator | str]) -> CubeFilter:
    return CubeFilter(
        member=adhoc.key,
        operator=map_operator(adhoc.operator),
        values=adhoc.effective_values(),
    )


# ── Unary stripping ──────────────────────────────────────

def _strip_unary_values(item: FilterItem) -> FilterItem:
    if isinstance(item, CubeFilter):
        if not is_unary(item.operator):
            return item
        return CubeFilter(member=item.member, operator=item.operator)

    if isinstance(item, AndFilter):
        return AndFilter(and_=[_strip_unary_values(child) for child in item.and_])

    if isinstance(item, OrFilter):
        return OrFilter(or_=[_strip_unary_values(child) for child in item.or_])

    return item


# ── Dashboard time dimension ─────────────────────────────

def _resolve(template_srv: TemplateService, name: str, scoped_vars: ScopedVars) -> str | None:
    """Resolve ``$name``; None when unset (the placeholder comes back untouched)."""
    placeholder = f"${name}"
    resolved = template_srv.replace(placeholder, scoped_vars)
    if not resolved or resolved == placeholder:
        return None
    return resolved


def dashboard_time_dimension(template_srv: TemplateService, scoped_vars: ScopedVars) -> TimeDimension | None:
    """Build the dashboard-wide time dimension, or None if any piece is missing or invalid."""
    dimension = _resolve(template_srv, get_settings().time_dimension_variable, scoped_vars)
    if dimension is None:
        return None

    from_raw = _resolve(template_srv, FROM_VARIABLE, scoped_vars)
    to_raw = _resolve(template_srv, TO_VARIABLE, scoped_vars)
    if from_raw is None or to_raw is None:
        logger.debug("Dashboard time dimension %s set but time range unresolved", dimension)
        return None

    from_iso = epoch_ms_to_iso(from_raw)
    to_iso = epoch_ms_to_iso(to_raw)
    if from_iso is None or to_iso is None:
        logger.debug("Unusable dashboard time range from=%r to=%r", from_raw, to_raw)
        return None

    return TimeDimension(dimension=dimension, date_range=[from_iso, to_iso])


# ── Public API ───────────────────────────────────────────

def normalize_cube_query(
    query: CubeQuery,
    options: NormalizeOptions,
    template_srv: TemplateService | None = None,
) -> NormalizedQuery:
    """Produce the canonical query shared by execution and SQL preview."""
    if template_srv is None:
        template_srv = get_template_srv()
    scoped_vars = options.scoped_vars or {}

    panel_filters = [_interpolate_filter(item, template_srv, scoped_vars) for item in query.filters]
    adhoc_filters = [
        adhoc_to_cube_filter(adhoc, options.map_operator)
        for adhoc in _get_adhoc_filters(template_srv, options.datasource_name)
    ]
    merged = [_strip_unary_values(item) for item in panel_filters + adhoc_filters]
    valid_filters = filter_valid_cube_filters(merged)
    if len(valid_filters) != len(merged):
        logger.debug("Dropped %d invalid filter(s)", len(merged) - len(valid_filters))

    time_dimensions = _interpolate_time_dimensions(query.time_dimensions, template_srv, scoped_vars)
    if not time_dimensions:
        injected = dashboard_time_dimension(template_srv, scoped_vars)
        time_dimensions = [injected] if injected else []

    return NormalizedQuery(
        dimensions=query.dimensions or None,
        measures=query.measures or None,
        time_dimensions=time_dimensions or None,
        filters=valid_filters or None,
        order=normalize_order(query.order),
        limit=query.limit,
    )
