"""
Small shared utilities.
"""
from __future__ import annotations

import re
import time
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Generator

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


@contextmanager
def timer() -> Generator[dict, None, None]:
    """Context manager that records elapsed wall-clock milliseconds."""
    result: dict = {}
    start = time.perf_counter()
    try:
        yield result
    finally:
        result["elapsed_ms"] = round((time.perf_counter() - start) * 1000, 3)


def epoch_ms_to_iso(raw: str) -> str | None:
    """Convert an epoch-milliseconds string to an ISO-8601 UTC timestamp.

    Output matches ``2024-01-01T00:00:00.000Z``.  Returns None when *raw*
    is not a plain decimal integer or falls outside the representable
    date range.
    """
    if not isinstance(raw, str) or not _INTEGER_RE.fullmatch(raw.strip()):
        return None
    millis = int(raw.strip())
    try:
        moment = _EPOCH + timedelta(milliseconds=millis)
    except OverflowError:
        return None
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
