"""
SQL preview -- builds the Cube query JSON the preview panel sends for
compilation.  It must match what execution sends, so it goes through the
same ``normalize_cube_query`` call as
``CubeDataSource.apply_template_variables``.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from cube_query.query.spec import CubeQuery
from cube_query.query.template import ScopedVars

if TYPE_CHECKING:
    from cube_query.datasource import CubeDataSource


def build_cube_query_json(
    query: CubeQuery,
    datasource: CubeDataSource,
    scoped_vars: ScopedVars | None = None,
) -> str:
    """Return compact Cube query JSON, or ``""`` when there is nothing to compile."""
    if not query.dimensions and not query.measures:
        return ""
    return datasource.normalize(query, scoped_vars).to_json()
