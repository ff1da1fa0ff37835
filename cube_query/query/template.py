"""
Dashboard variable substitution.

The host dashboard owns the real template service; this module defines the
interface the engine relies on and a self-contained implementation used by
the HTTP API and the tests.

Supported placeholder syntaxes:

  $name
  ${name}   ${name.field}   ${name:format}
  [[name]]  [[name:format]]

Variable names start with a letter or underscore, so currency amounts
like ``$100`` are never treated as placeholders.
"""
from __future__ import annotations

import json
import re
from typing import Any, Protocol

from cube_query.query.spec import AdHocFilter
from cube_query.core.logging import get_logger

logger = get_logger(__name__)

ScopedVars = dict[str, Any]

_NAME = r"[A-Za-z_]\w*"

VARIABLE_RE = re.compile(
    r"\$(?P<simple>" + _NAME + r")"
    r"|\[\[(?P<bracket>" + _NAME + r")(?::(?P<bracket_fmt>\w+))?\]\]"
    r"|\$\{(?P<braced>" + _NAME + r")(?:\.(?P<field>[^:}]+))?(?::(?P<braced_fmt>[^}]+))?\}"
)

FROM_VARIABLE = "__from"
TO_VARIABLE = "__to"


def contains_variable(value: str) -> bool:
    """True if *value* holds at least one dashboard-variable placeholder."""
    return VARIABLE_RE.search(value) is not None


class TemplateService(Protocol):
    """What the engine needs from the host's variable service.

    Hosts may additionally provide ``get_adhoc_filters(datasource_name)``;
    callers must treat it as optional.
    """

    def replace(self, target: str, scoped_vars: ScopedVars | None = None) -> str: ...


# ── Value formatting ─────────────────────────────────────

def _unwrap(value: Any) -> Any:
    """Scoped vars arrive either bare or as ``{"text": ..., "value": ...}``."""
    if isinstance(value, dict) and "value" in value:
        return value["value"]
    return value


def _format_value(value: Any, fmt: str | None) -> str:
    if isinstance(value, (list, tuple)):
        items = [str(v) for v in value]
        if fmt == "pipe":
            return "|".join(items)
        if fmt == "json":
            return json.dumps(items)
        return ",".join(items)
    if fmt == "json":
        return json.dumps(value)
    return str(value)


# ── Implementation ───────────────────────────────────────

class DashboardTemplateService:
    """In-process template service backed by plain dictionaries.

    Parameters
    ----------
    variables : dict, optional
        Dashboard variables, name -> value (a string, a list for
        multi-value variables, or a ``{"text", "value"}`` dict).
    adhoc_filters : dict, optional
        Data-source name -> list of ad-hoc filters.
    time_range : (int, int), optional
        Dashboard time range as epoch milliseconds; exposed as the
        built-in ``$__from`` / ``$__to`` variables.
    """

    def __init__(
        self,
        variables: dict[str, Any] | None = None,
        adhoc_filters: dict[str, list[AdHocFilter | dict[str, Any]]] | None = None,
        time_range: tuple[int, int] | None = None,
    ):
        self._variables: dict[str, Any] = dict(variables or {})
        self._adhoc: dict[str, list[AdHocFilter]] = {
            name: [AdHocFilter.model_validate(f) if isinstance(f, dict) else f for f in filters]
            for name, filters in (adhoc_filters or {}).items()
        }
        if time_range is not None:
            self._variables[FROM_VARIABLE] = str(time_range[0])
            self._variables[TO_VARIABLE] = str(time_range[1])

    def replace(self, target: str, scoped_vars: ScopedVars | None = None) -> str:
        """Substitute every known placeholder in *target*; unknown ones stay literal."""
        if not target:
            return target
        scoped = scoped_vars or {}

        def _substitute(match: re.Match) -> str:
            name = match.group("simple") or match.group("bracket") or match.group("braced")
            fmt = match.group("bracket_fmt") or match.group("braced_fmt")
            if name in scoped:
                value = _unwrap(scoped[name])
            elif name in self._variables:
                value = _unwrap(self._variables[name])
            else:
                return match.group(0)

            field = match.group("field")
            if field:
                if not isinstance(value, dict) or field not in value:
                    return match.group(0)
                value = value[field]
            return _format_value(value, fmt)

        return VARIABLE_RE.sub(_substitute, target)

    def get_adhoc_filters(self, datasource_name: str) -> list[AdHocFilter]:
        return list(self._adhoc.get(datasource_name, []))


# ── Module-level singleton ──────────────────────────────

_template_srv: TemplateService = DashboardTemplateService()


def get_template_srv() -> TemplateService:
    """Return the process-wide template service."""
    return _template_srv


def set_template_srv(template_srv: TemplateService) -> None:
    """Install the host's template service."""
    global _template_srv
    _template_srv = template_srv
    logger.info("Template service set to %s", type(template_srv).__name__)
