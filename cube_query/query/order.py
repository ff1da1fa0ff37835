"""
Order normalization.

Saved queries carry ordering in one of two shapes:

  legacy   {"orders.count": "desc"}          (mapping; key order is whatever
                                              the mapping iterates in)
  current  [["orders.count", "desc"], ...]   (ordered pairs)

Both are converted to the ordered-pair list at this boundary; nothing past
here ever sees the mapping shape.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping

from cube_query.query.spec import OrderInput, OrderPairs

_VALID_DIRECTIONS = frozenset({"asc", "desc"})


def normalize_order(order: OrderInput | None) -> OrderPairs | None:
    """Return *order* as a list of ``(member, direction)`` pairs.

    Entries whose direction is not ``asc``/``desc`` (Cube's ``none`` or
    anything unrecognised) are dropped.  Returns None when nothing remains,
    so callers omit the order clause instead of sending ``order: []``.
    """
    if not order:
        return None

    entries: Iterable = order.items() if isinstance(order, Mapping) else order

    pairs: OrderPairs = [
        (member, direction)
        for member, direction in entries
        if direction in _VALID_DIRECTIONS
    ]
    return pairs or None
