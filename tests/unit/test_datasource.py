"""
Unit tests -- CubeDataSource: execution shaping, operator mapping and
backend resources.
"""
import json

import httpx
import pytest

from cube_query.client import ResourceClient
from cube_query.datasource import CubeDataSource
from cube_query.query.cache import CompiledSqlCache
from cube_query.query.operators import Operator
from cube_query.query.spec import CubeFilter, CubeQuery, TimeDimension
from cube_query.query.template import DashboardTemplateService

JAN_1 = 1704067200000
JAN_2 = 1704153600000


class _Backend:
    """Records resource calls and answers from a canned table."""

    def __init__(self, responses: dict):
        self.responses = responses
        self.calls: list[tuple[str, dict]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        resource = request.url.path.rsplit("/", 1)[-1]
        self.calls.append((resource, dict(request.url.params)))
        return httpx.Response(200, json=self.responses.get(resource, {}))


def _datasource(backend=None, variables=None, adhoc=None, time_range=None) -> CubeDataSource:
    client = None
    if backend is not None:
        client = ResourceClient(base_url="http://cube.test/resources", transport=httpx.MockTransport(backend))
    return CubeDataSource(
        name="Test Cube",
        uid="test-cube",
        client=client,
        template_srv=DashboardTemplateService(
            variables=variables,
            adhoc_filters={"Test Cube": adhoc or []},
            time_range=time_range,
        ),
        sql_cache=CompiledSqlCache(ttl=60, max_size=16),
    )


def _query(**overrides) -> CubeQuery:
    base = {"refId": "A", "dimensions": ["orders.status"], "measures": ["orders.count"]}
    base.update(overrides)
    return CubeQuery.model_validate(base)


# ── Operator mapping & filter_query ──────────────────────

@pytest.mark.parametrize(
    "symbol, expected",
    [("=", Operator.EQUALS), ("=|", Operator.EQUALS), ("!=", Operator.NOT_EQUALS),
     ("!=|", Operator.NOT_EQUALS), (">", Operator.EQUALS)],
)
def test_map_operator(symbol, expected):
    assert _datasource().map_operator(symbol) == expected


def test_filter_query_needs_dimensions_or_measures():
    ds = _datasource()
    assert ds.filter_query(_query())
    assert ds.filter_query(_query(dimensions=[]))
    assert not ds.filter_query(CubeQuery(ref_id="A"))


# ── apply_template_variables ─────────────────────────────

def test_apply_template_variables_shapes_query():
    ds = _datasource(
        variables={"status": "active", "cubeTimeDimension": "orders.created_at"},
        adhoc=[{"key": "orders.region", "operator": "!=", "value": "EU"}],
        time_range=(JAN_1, JAN_2),
    )
    query = _query(
        filters=[{"member": "orders.status", "operator": "equals", "values": ["$status"]}],
        order={"orders.count": "desc"},
        limit=0,
    )
    result = ds.apply_template_variables(query, {})

    assert result.ref_id == "A"
    assert result.limit == 0
    assert result.filters == [
        CubeFilter(member="orders.status", operator="equals", values=["active"]),
        CubeFilter(member="orders.region", operator="notEquals", values=["EU"]),
    ]
    assert result.time_dimensions == [
        TimeDimension(dimension="orders.created_at", date_range=["2024-01-01T00:00:00.000Z", "2024-01-02T00:00:00.000Z"])
    ]
    assert result.order == [("orders.count", "desc")]


def test_apply_template_variables_keeps_extra_keys():
    query = CubeQuery.model_validate({"refId": "B", "measures": ["m"], "hide": False})
    result = _datasource().apply_template_variables(query, {})
    assert result.model_extra == {"hide": False}
    assert result.order is None


# ── Backend resources ────────────────────────────────────

def test_get_tag_keys_transforms_dimensions():
    backend = _Backend({"metadata": {
        "dimensions": [{"label": "Order Status", "value": "orders.status", "type": "string"}],
        "measures": [],
    }})
    assert _datasource(backend).get_tag_keys() == [{"text": "Order Status", "value": "orders.status"}]


def test_get_tag_values_scopes_by_existing_filters():
    backend = _Backend({"tag-values": [{"text": "US"}]})
    ds = _datasource(backend)
    result = ds.get_tag_values(
        "orders.region",
        [{"key": "orders.status", "operator": "=|", "value": "", "values": ["active", "pending"]}],
    )
    assert result == [{"text": "US"}]
    resource, params = backend.calls[0]
    assert resource == "tag-values"
    assert params["key"] == "orders.region"
    assert json.loads(params["filters"]) == [
        {"member": "orders.status", "operator": "equals", "values": ["active", "pending"]}
    ]


def test_get_tag_values_without_filters_omits_param():
    backend = _Backend({"tag-values": []})
    _datasource(backend).get_tag_values("orders.region")
    assert backend.calls[0][1] == {"key": "orders.region"}


# ── compile_sql ──────────────────────────────────────────

def test_compile_sql_sends_preview_json_and_caches():
    backend = _Backend({"sql": {"sql": "SELECT 1"}})
    ds = _datasource(backend)
    query = _query(limit=10)

    assert ds.compile_sql(query) == "SELECT 1"
    assert ds.compile_sql(query) == "SELECT 1"
    assert len(backend.calls) == 1
    sent = json.loads(backend.calls[0][1]["query"])
    assert sent == {"dimensions": ["orders.status"], "measures": ["orders.count"], "limit": 10}


def test_compile_sql_empty_query_skips_backend():
    backend = _Backend({})
    assert _datasource(backend).compile_sql(CubeQuery(ref_id="A")) == ""
    assert backend.calls == []


# ── Client lifecycle ─────────────────────────────────────

def test_close_releases_client_it_created():
    ds = CubeDataSource(name="Test Cube", uid="test-cube")
    client = ds.client
    ds.close()
    assert client.closed
    assert ds.client is not client
    ds.close()


def test_close_leaves_injected_client_open():
    ds = _datasource(backend=_Backend({}))
    ds.close()
    assert not ds.client.closed
