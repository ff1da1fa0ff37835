"""
Unit tests -- CubeQuery / NormalizedQuery models.
"""
from cube_query.query.operators import Operator, map_host_operator
from cube_query.query.spec import (
    AdHocFilter,
    AndFilter,
    CubeFilter,
    CubeQuery,
    NormalizedQuery,
    OrFilter,
    TimeDimension,
)


def test_cube_query_defaults():
    query = CubeQuery()
    assert query.dimensions == []
    assert query.measures == []
    assert query.time_dimensions == []
    assert query.filters == []
    assert query.order is None
    assert query.limit is None


def test_cube_query_from_storage():
    query = CubeQuery.model_validate(
        {
            "refId": "A",
            "datasource": {"type": "cube", "uid": "abc"},
            "dimensions": ["orders.status"],
            "measures": ["orders.count"],
            "timeDimensions": [{"dimension": "orders.created_at", "granularity": "day"}],
            "filters": [
                {"member": "orders.status", "operator": "equals", "values": ["active"]},
                {"and": [{"or": [{"member": "orders.amount", "operator": "gt", "values": ["10"]}]}]},
            ],
            "order": [["orders.count", "desc"]],
            "limit": 50,
        }
    )
    assert query.ref_id == "A"
    assert isinstance(query.filters[0], CubeFilter)
    assert isinstance(query.filters[1], AndFilter)
    assert isinstance(query.filters[1].and_[0], OrFilter)
    assert query.time_dimensions[0].granularity == "day"
    assert query.model_extra["datasource"]["uid"] == "abc"


def test_null_lists_become_empty():
    query = CubeQuery.model_validate({"dimensions": None, "filters": None})
    assert query.dimensions == []
    assert query.filters == []


def test_operator_enum_stored_as_plain_string():
    item = CubeFilter(member="a", operator=Operator.NOT_EQUALS, values=["x"])
    assert type(item.operator) is str
    assert item.operator == "notEquals"


def test_unknown_operator_accepted():
    item = CubeFilter.model_validate({"member": "a", "operator": "regexMatch", "values": ["x"]})
    assert item.operator == "regexMatch"


def test_time_dimension_alias_and_extras():
    td = TimeDimension.model_validate({"dimension": "t", "dateRange": ["a", "b"], "compareDateRange": "x"})
    assert td.date_range == ["a", "b"]
    assert td.model_dump(by_alias=True, exclude_none=True) == {
        "dimension": "t",
        "dateRange": ["a", "b"],
        "compareDateRange": "x",
    }


def test_adhoc_effective_values():
    assert AdHocFilter(key="k", operator="=", value="v").effective_values() == ["v"]
    assert AdHocFilter(key="k", operator="=|", value="", values=["a", "b"]).effective_values() == ["a", "b"]


def test_normalized_payload_omits_absent_fields():
    normalized = NormalizedQuery(
        measures=["orders.count"],
        filters=[OrFilter(or_=[CubeFilter(member="a", operator="set")])],
        limit=0,
    )
    assert normalized.to_payload() == {
        "measures": ["orders.count"],
        "filters": [{"or": [{"member": "a", "operator": "set"}]}],
        "limit": 0,
    }


def test_map_host_operator():
    assert map_host_operator("=") == Operator.EQUALS
    assert map_host_operator("=|") == Operator.EQUALS
    assert map_host_operator("!=") == Operator.NOT_EQUALS
    assert map_host_operator("!=|") == Operator.NOT_EQUALS
    assert map_host_operator("=~") == Operator.EQUALS
    assert map_host_operator("!~") == Operator.NOT_EQUALS
    assert map_host_operator("<") == Operator.EQUALS
    assert map_host_operator("") == Operator.EQUALS
