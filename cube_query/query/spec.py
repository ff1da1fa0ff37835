"""
CubeQuery -- the stored query shape authored by the visual editor, and the
NormalizedQuery shape sent to Cube for execution and SQL preview.

Python attributes are snake_case; the wire names Cube expects
(``timeDimensions``, ``dateRange``, ``and``/``or``) are aliases.
"""
from __future__ import annotations

from typing import Annotated, Any, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    field_validator,
)

from cube_query.query.operators import operator_value


class _CubeModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ── Filters ──────────────────────────────────────────────


class CubeFilter(_CubeModel):
    """A single member / operator / values condition."""

    member: str = ""
    operator: str
    values: list[str] | None = None

    @field_validator("operator", mode="before")
    @classmethod
    def _plain_operator(cls, value: Any) -> Any:
        return operator_value(value)


class AndFilter(_CubeModel):
    and_: list[FilterItem] = Field(alias="and")


class OrFilter(_CubeModel):
    or_: list[FilterItem] = Field(alias="or")


def _filter_kind(value: Any) -> str:
    if isinstance(value, dict):
        if "and" in value or "and_" in value:
            return "and"
        if "or" in value or "or_" in value:
            return "or"
        return "condition"
    if isinstance(value, AndFilter):
        return "and"
    if isinstance(value, OrFilter):
        return "or"
    return "condition"


FilterItem = Annotated[
    Union[
        Annotated[CubeFilter, Tag("condition")],
        Annotated[AndFilter, Tag("and")],
        Annotated[OrFilter, Tag("or")],
    ],
    Discriminator(_filter_kind),
]

AndFilter.model_rebuild()
OrFilter.model_rebuild()


# ── Time dimensions & ordering ───────────────────────────


class TimeDimension(_CubeModel):
    """A time window: a relative granularity and/or an absolute date range."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    dimension: str
    granularity: str | None = None
    date_range: str | list[str] | None = Field(None, alias="dateRange")


OrderPairs = list[tuple[str, str]]

# Legacy saved queries store order as {member: direction}; current ones use
# an ordered list of [member, direction] pairs.
OrderInput = Union[OrderPairs, dict[str, str]]


# ── Queries ──────────────────────────────────────────────


class CubeQuery(_CubeModel):
    """A panel query as saved by the editor (possibly in a legacy shape)."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    ref_id: str | None = Field(None, alias="refId")
    dimensions: list[str] = Field(default_factory=list)
    measures: list[str] = Field(default_factory=list)
    time_dimensions: list[TimeDimension] = Field(default_factory=list, alias="timeDimensions")
    filters: list[FilterItem] = Field(default_factory=list)
    order: OrderInput | None = None
    limit: int | None = None

    @field_validator("dimensions", "measures", "time_dimensions", "filters", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    def to_payload(self) -> dict[str, Any]:
        """Wire shape: absent fields and empty collections are omitted, extra keys pass through."""
        payload = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        for key in _COLLECTION_KEYS:
            if not payload.get(key, True):
                del payload[key]
        return payload


_COLLECTION_KEYS = ("dimensions", "measures", "timeDimensions", "filters", "order")


class AdHocFilter(_CubeModel):
    """A dashboard-wide ad-hoc filter, as reported by the host."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    key: str
    operator: str
    value: str = ""
    values: list[str] | None = None

    def effective_values(self) -> list[str]:
        """Multi-value operators (=| and !=|) carry ``values``; others carry ``value``."""
        return list(self.values) if self.values else [self.value]


class NormalizedQuery(_CubeModel):
    """Canonical query shared by execution and SQL preview.

    Every field is optional; absent fields are omitted from the payload.
    """

    dimensions: list[str] | None = None
    measures: list[str] | None = None
    time_dimensions: list[TimeDimension] | None = Field(None, alias="timeDimensions")
    filters: list[FilterItem] | None = None
    order: OrderPairs | None = None
    limit: int | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)
