"""POST /query/* -- normalization, preview JSON, SQL compilation and capability checks."""
from __future__ import annotations

from typing import Any, Iterator

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from cube_query.client import ResourceClient, ResourceError
from cube_query.core.logging import get_logger
from cube_query.core.utils import timer
from cube_query.datasource import CubeDataSource
from cube_query.governance.unsupported import (
    detect_unsupported_features,
    extract_unsupported_fields,
    get_unsupported_query_keys,
)
from cube_query.preview import build_cube_query_json
from cube_query.query.cache import get_sql_cache
from cube_query.query.spec import AdHocFilter, CubeQuery
from cube_query.query.template import DashboardTemplateService

logger = get_logger(__name__)
router = APIRouter()


def get_resource_client() -> Iterator[ResourceClient]:
    """One backend client per request, closed once the response is sent."""
    client = ResourceClient()
    try:
        yield client
    finally:
        client.close()


class DashboardContext(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    datasource_name: str | None = Field(None, alias="datasourceName")
    variables: dict[str, Any] = Field(default_factory=dict, description="Dashboard variables, name -> value")
    adhoc_filters: list[AdHocFilter] = Field(default_factory=list, alias="adhocFilters")
    time_range: tuple[int, int] | None = Field(
        None, alias="timeRange", description="Dashboard time range as epoch milliseconds [from, to]"
    )
    scoped_vars: dict[str, Any] = Field(default_factory=dict, alias="scopedVars")


class QueryRequest(BaseModel):
    query: CubeQuery
    context: DashboardContext = Field(default_factory=DashboardContext)


class CapabilitiesRequest(BaseModel):
    query: CubeQuery


class CapabilitiesResponse(BaseModel):
    supported: bool
    reasons: list[str]
    unsupported_keys: list[str]
    unsupported_fields: dict[str, Any]


class SqlResponse(BaseModel):
    sql: str


def _datasource_for(context: DashboardContext, client: ResourceClient | None = None) -> CubeDataSource:
    """Build a data source whose template service reflects the request's dashboard state."""
    datasource = CubeDataSource(name=context.datasource_name, client=client)
    datasource.template_srv = DashboardTemplateService(
        variables=context.variables,
        adhoc_filters={datasource.name: list(context.adhoc_filters)},
        time_range=context.time_range,
    )
    return datasource


@router.post("/normalize")
def normalize_endpoint(req: QueryRequest) -> dict[str, Any]:
    """Return the canonical query exactly as execution would send it."""
    datasource = _datasource_for(req.context)
    with timer() as t:
        normalized = datasource.normalize(req.query, req.context.scoped_vars)
    logger.info("Normalized query refId=%s in %.3f ms", req.query.ref_id, t["elapsed_ms"])
    return {"query": normalized.to_payload(), "elapsed_ms": t["elapsed_ms"]}


@router.post("/preview")
def preview_endpoint(req: QueryRequest) -> dict[str, str]:
    """Return the Cube query JSON the SQL preview compiles ('' when empty)."""
    datasource = _datasource_for(req.context)
    return {"json": build_cube_query_json(req.query, datasource, req.context.scoped_vars)}


@router.post("/sql", response_model=SqlResponse)
def sql_endpoint(req: QueryRequest, client: ResourceClient = Depends(get_resource_client)):
    """Compile the preview query to SQL through the plugin backend."""
    datasource = _datasource_for(req.context, client=client)
    try:
        sql = datasource.compile_sql(req.query, req.context.scoped_vars)
    except ResourceError as exc:
        logger.exception("SQL compilation failed")
        raise HTTPException(status_code=502, detail=str(exc))
    return SqlResponse(sql=sql)


@router.post("/capabilities", response_model=CapabilitiesResponse)
def capabilities_endpoint(req: CapabilitiesRequest):
    """Can the visual builder show this query, and if not, why."""
    reasons = detect_unsupported_features(req.query)
    keys = get_unsupported_query_keys(req.query)
    return CapabilitiesResponse(
        supported=not reasons,
        reasons=reasons,
        unsupported_keys=sorted(keys),
        unsupported_fields=extract_unsupported_fields(req.query, keys),
    )


@router.get("/cache/stats")
def cache_stats_endpoint() -> dict[str, Any]:
    """Return compiled-SQL cache statistics."""
    return get_sql_cache().stats()


@router.post("/cache/clear")
def cache_clear_endpoint():
    """Flush the compiled-SQL cache."""
    removed = get_sql_cache().invalidate()
    return {"cleared": removed}
