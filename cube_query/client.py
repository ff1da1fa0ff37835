"""
HTTP client for the plugin backend's resource endpoints
(``metadata``, ``tag-values``, ``sql``).

Configuration is read from Settings (env / .env).
"""
from __future__ import annotations

from typing import Any

import httpx

from cube_query.core.config import get_settings
from cube_query.core.logging import get_logger

logger = get_logger(__name__)


class ResourceError(RuntimeError):
    """A resource call failed in transport or returned a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ResourceClient:
    """Thin synchronous wrapper around ``httpx.Client``.

    Parameters
    ----------
    base_url : str, optional
        Resource root; defaults to ``settings.resource_base_url``.
    timeout : float, optional
        Request timeout in seconds; defaults to
        ``settings.resource_timeout_seconds``.
    transport : httpx.BaseTransport, optional
        Injected transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        settings = get_settings()
        self._client = httpx.Client(
            base_url=base_url or settings.resource_base_url,
            timeout=timeout if timeout is not None else settings.resource_timeout_seconds,
            transport=transport,
        )

    def get_resource(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET ``<base_url>/<path>`` and return the decoded JSON body."""
        query = {k: v for k, v in (params or {}).items() if v is not None}
        logger.info("GET resource path=%s params=%s", path, sorted(query))
        try:
            response = self._client.get(f"/{path}", params=query)
        except httpx.HTTPError as exc:
            raise ResourceError(f"Resource '{path}' request failed: {exc}") from exc

        if response.is_error:
            raise ResourceError(
                f"Resource '{path}' returned HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        return response.json()

    @property
    def closed(self) -> bool:
        return self._client.is_closed

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> ResourceClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
