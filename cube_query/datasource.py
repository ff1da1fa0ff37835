"""
Cube data source -- the execution boundary.

Owns the data-source identity (name / uid) that ad-hoc filters are keyed
by, the operator mapping, and the calls out to the plugin backend's
resources.  Query shaping itself is delegated to ``normalize_cube_query``.
"""
from __future__ import annotations

import json
from typing import Any

from cube_query.client import ResourceClient
from cube_query.core.config import get_settings
from cube_query.core.logging import get_logger
from cube_query.preview import build_cube_query_json
from cube_query.query.cache import CompiledSqlCache, get_sql_cache
from cube_query.query.normalizer import NormalizeOptions, adhoc_to_cube_filter, normalize_cube_query
from cube_query.query.operators import Operator, map_host_operator
from cube_query.query.spec import AdHocFilter, CubeQuery, NormalizedQuery
from cube_query.query.template import ScopedVars, TemplateService

logger = get_logger(__name__)


class CubeDataSource:
    """One configured Cube data-source instance.

    Parameters
    ----------
    name, uid : str, optional
        Data-source identity; default to the configured settings.
    client : ResourceClient, optional
        Backend resource client; created on first use if omitted.
    template_srv : TemplateService, optional
        Variable service; the process-wide one is used if omitted.
    sql_cache : CompiledSqlCache, optional
        Cache for compiled preview SQL; the global cache if omitted.
    """

    def __init__(
        self,
        name: str | None = None,
        uid: str | None = None,
        client: ResourceClient | None = None,
        template_srv: TemplateService | None = None,
        sql_cache: CompiledSqlCache | None = None,
    ):
        settings = get_settings()
        self.name = name or settings.datasource_name
        self.uid = uid or settings.datasource_uid
        self.template_srv = template_srv
        self._client = client
        self._owns_client = False
        self._sql_cache = sql_cache

    @property
    def client(self) -> ResourceClient:
        if self._client is None:
            self._client = ResourceClient()
            self._owns_client = True
        return self._client

    def close(self) -> None:
        """Close the backend client if this data source created it."""
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None
            self._owns_client = False

    @property
    def sql_cache(self) -> CompiledSqlCache:
        return self._sql_cache if self._sql_cache is not None else get_sql_cache()

    # ── Query shaping ────────────────────────────────

    def map_operator(self, symbol: str) -> Operator:
        return map_host_operator(symbol)

    def normalize(self, query: CubeQuery, scoped_vars: ScopedVars | None = None) -> NormalizedQuery:
        """The one normalization call shared by execution and SQL preview."""
        options = NormalizeOptions(
            datasource_name=self.name,
            map_operator=self.map_operator,
            scoped_vars=scoped_vars or {},
        )
        return normalize_cube_query(query, options, template_srv=self.template_srv)

    def apply_template_variables(self, query: CubeQuery, scoped_vars: ScopedVars | None = None) -> CubeQuery:
        """Return *query* with time dimensions, filters and order as they will execute.

        ``result.to_payload()`` is the request body; apart from ``refId`` and
        extra keys it equals the SQL preview JSON.
        """
        normalized = self.normalize(query, scoped_vars)
        return query.model_copy(
            update={
                "time_dimensions": normalized.time_dimensions or [],
                "filters": normalized.filters or [],
                "order": normalized.order,
            }
        )

    def filter_query(self, query: CubeQuery) -> bool:
        """A query with neither dimensions nor measures is not executed."""
        return bool(query.dimensions or query.measures)

    # ── Backend resources ────────────────────────────

    def get_metadata(self) -> dict[str, Any]:
        return self.client.get_resource("metadata")

    def get_tag_keys(self) -> list[dict[str, str]]:
        """Dimensions offered as ad-hoc filter keys."""
        metadata = self.get_metadata()
        return [
            {"text": dimension["label"], "value": dimension["value"]}
            for dimension in metadata.get("dimensions", [])
        ]

    def get_tag_values(self, key: str, filters: list[AdHocFilter | dict[str, Any]] | None = None) -> Any:
        """Values for ad-hoc key *key*, scoped by the ad-hoc filters already applied."""
        scoping: str | None = None
        if filters:
            converted = [
                adhoc_to_cube_filter(
                    AdHocFilter.model_validate(f) if isinstance(f, dict) else f,
                    self.map_operator,
                ).model_dump(exclude_none=True)
                for f in filters
            ]
            scoping = json.dumps(converted, separators=(",", ":"))
        return self.client.get_resource("tag-values", {"key": key, "filters": scoping})

    def compile_sql(self, query: CubeQuery, scoped_vars: ScopedVars | None = None) -> str:
        """Compile *query* to SQL through the backend, using the preview JSON."""
        query_json = build_cube_query_json(query, self, scoped_vars)
        if not query_json:
            return ""

        cached = self.sql_cache.get(self.uid, query_json)
        if cached is not None:
            return cached

        response = self.client.get_resource("sql", {"query": query_json})
        sql = response.get("sql", "") if isinstance(response, dict) else ""
        self.sql_cache.put(self.uid, query_json, sql)
        logger.info("Compiled SQL for datasource=%s (%d chars)", self.uid, len(sql))
        return sql
